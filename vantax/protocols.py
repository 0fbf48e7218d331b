"""Structural protocols for the distance capability."""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable


class DistanceFunction(Protocol):
    """Plain callable returning the distance between two points."""

    def __call__(self, a: Any, b: Any) -> float: ...


@runtime_checkable
class MetricSpace(Protocol):
    """Object exposing a single ``distance`` operation."""

    def distance(self, a: Any, b: Any) -> float: ...


__all__ = ["DistanceFunction", "MetricSpace"]
