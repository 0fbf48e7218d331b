"""Distance functions and metric adapters for vantage-point trees."""

from __future__ import annotations

from collections.abc import Callable, Sequence
from typing import Any

import jax.numpy as jnp
import numpy as np

from .protocols import DistanceFunction, MetricSpace


def resolve_metric(metric: DistanceFunction | MetricSpace) -> Callable[[Any, Any], float]:
    """Return a plain ``(a, b) -> distance`` callable for ``metric``.

    Callables are used as-is. Objects exposing a ``distance(a, b)`` method
    (see :class:`~vantax.protocols.MetricSpace`) are adapted to their bound
    method.
    """

    if callable(metric):
        return metric
    if isinstance(metric, MetricSpace):
        return metric.distance
    raise TypeError(
        "metric must be callable or expose distance(a, b); "
        f"received {type(metric).__name__}"
    )


def _deltas(a, b):
    a_arr = jnp.asarray(a, dtype=jnp.float64)
    b_arr = jnp.asarray(b, dtype=jnp.float64)
    if a_arr.shape != b_arr.shape:
        raise ValueError(
            "points must share the same shape; "
            f"received {a_arr.shape} and {b_arr.shape}"
        )
    return a_arr - b_arr


def euclidean(a, b) -> float:
    """Return the L2 distance between two array-like points."""

    return float(jnp.linalg.norm(jnp.ravel(_deltas(a, b))))


def manhattan(a, b) -> float:
    """Return the L1 distance between two array-like points."""

    return float(jnp.sum(jnp.abs(_deltas(a, b))))


def chebyshev(a, b) -> float:
    """Return the L-infinity distance between two array-like points."""

    deltas = _deltas(a, b)
    if deltas.size == 0:
        return 0.0
    return float(jnp.max(jnp.abs(deltas)))


def hamming(a: Sequence, b: Sequence) -> float:
    """Return the number of positions at which two sequences differ."""

    if len(a) != len(b):
        raise ValueError(
            "hamming distance needs equal-length sequences; "
            f"received {len(a)} and {len(b)}"
        )
    return float(sum(1 for x, y in zip(a, b) if x != y))


def levenshtein(a: Sequence, b: Sequence) -> float:
    """Return the edit distance between two sequences.

    Insertions, deletions and substitutions all cost one. Works on strings
    and on any sequence of comparable items.
    """

    if len(a) < len(b):
        a, b = b, a
    previous = list(range(len(b) + 1))
    for i, x in enumerate(a, start=1):
        current = [i]
        for j, y in enumerate(b, start=1):
            current.append(
                min(
                    previous[j] + 1,
                    current[j - 1] + 1,
                    previous[j - 1] + (x != y),
                )
            )
        previous = current
    return float(previous[-1])


def bounded(metric: DistanceFunction | MetricSpace) -> Callable[[Any, Any], float]:
    """Wrap ``metric`` with the bounded transform ``d / (1 + d)``.

    The result is again a metric, with values in ``[0, 1)``, and preserves
    the neighbour ordering of the wrapped metric.
    """

    base = resolve_metric(metric)

    def bounded_distance(a, b) -> float:
        d = base(a, b)
        return d / (1.0 + d)

    bounded_distance.__name__ = f"bounded_{getattr(base, '__name__', 'metric')}"
    return bounded_distance


def distances_from(
    metric: Callable[[Any, Any], float],
    anchor,
    points: Sequence,
) -> np.ndarray:
    """Return ``metric(anchor, p)`` for every ``p`` as a float64 vector."""

    return np.fromiter(
        (metric(anchor, p) for p in points),
        dtype=np.float64,
        count=len(points),
    )


__all__ = [
    "bounded",
    "chebyshev",
    "distances_from",
    "euclidean",
    "hamming",
    "levenshtein",
    "manhattan",
    "resolve_metric",
]
