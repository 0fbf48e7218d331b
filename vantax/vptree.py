"""Vantage-point tree container and builder for arbitrary metric spaces."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from typing import Any, Literal, NamedTuple, Optional, Union

import jax.numpy as jnp
import numpy as np
from beartype import beartype
from jaxtyping import Array, jaxtyped

from .dtypes import DISTANCE_DTYPE, INDEX_DTYPE
from .median import select_median
from .metrics import distances_from, resolve_metric
from .protocols import MetricSpace

logger = logging.getLogger(__name__)

VantagePolicy = Literal["first", "random", "farthest"]
_VANTAGE_POLICIES = ("first", "random", "farthest")


class VPTreeBuildError(ValueError):
    """Raised when a vantage-point tree cannot be constructed."""


@dataclass(frozen=True)
class VPTreeBuildConfig:
    """Resolved options for vantage-point tree construction.

    ``vantage_policy`` picks the vantage point of every node:

    - ``"first"`` takes the lowest-index point of the working set and needs
      no random source.
    - ``"random"`` draws uniformly from the working set.
    - ``"farthest"`` draws a random candidate, then takes the point of the
      working set farthest from it.

    The random policies use the generator passed to :func:`build_vptree`, or
    one seeded from ``seed``. Equal seeds give identical trees.
    """

    vantage_policy: VantagePolicy = "first"
    seed: Optional[int] = None
    check_distances: bool = True


class VPNode(NamedTuple):
    """Arena entry: vantage point index, split radius and child slots."""

    vantage: int
    threshold: float
    inside: int = -1
    outside: int = -1

    @property
    def is_leaf(self) -> bool:
        return self.inside < 0 and self.outside < 0


@dataclass(frozen=True)
class VPTree:
    """Immutable vantage-point tree stored as a flat node arena.

    ``points`` keeps the input order, so a point's position in the input
    sequence is its index everywhere in the API. ``nodes[root]`` is the root
    node; child links are arena slots with ``-1`` for a missing child.
    """

    points: tuple
    nodes: tuple[VPNode, ...]
    root: int
    depth: int
    metric: Callable[[Any, Any], float] = field(repr=False, compare=False)
    config: VPTreeBuildConfig = field(default_factory=VPTreeBuildConfig)

    @property
    def num_points(self) -> int:
        """Return the number of indexed points."""

        return len(self.points)

    @property
    def num_nodes(self) -> int:
        """Return the number of arena nodes (one per point)."""

        return len(self.nodes)

    @property
    def num_leaves(self) -> int:
        return sum(1 for node in self.nodes if node.is_leaf)

    @property
    def is_empty(self) -> bool:
        return self.root < 0

    @property
    def vantage_index(self) -> Array:
        """Return per-node vantage point indices."""

        return jnp.asarray([node.vantage for node in self.nodes], dtype=INDEX_DTYPE)

    @property
    def threshold(self) -> Array:
        """Return per-node split thresholds (``0`` for leaves)."""

        return jnp.asarray([node.threshold for node in self.nodes], dtype=DISTANCE_DTYPE)

    @property
    def inside_child(self) -> Array:
        return jnp.asarray([node.inside for node in self.nodes], dtype=INDEX_DTYPE)

    @property
    def outside_child(self) -> Array:
        return jnp.asarray([node.outside for node in self.nodes], dtype=INDEX_DTYPE)

    def dump(self) -> str:
        """Render the tree as indented text, one node per line."""

        if self.is_empty:
            return "<empty>"
        lines: list[str] = []
        stack = [(self.root, 0, "root")]
        while stack:
            slot, level, label = stack.pop()
            node = self.nodes[slot]
            point = self.points[node.vantage]
            if node.is_leaf:
                lines.append(f"{'  ' * level}{label}: leaf #{node.vantage} {point!r}")
                continue
            lines.append(
                f"{'  ' * level}{label}: #{node.vantage} {point!r} "
                f"threshold={node.threshold:g}"
            )
            if node.outside >= 0:
                stack.append((node.outside, level + 1, "outside"))
            if node.inside >= 0:
                stack.append((node.inside, level + 1, "inside"))
        return "\n".join(lines)


def _checked(distances: np.ndarray, cfg: VPTreeBuildConfig) -> np.ndarray:
    if cfg.check_distances:
        bad = ~(np.isfinite(distances) & (distances >= 0.0))
        if np.any(bad):
            value = distances[np.argmax(bad)]
            raise VPTreeBuildError(
                f"metric returned {value!r}; distances must be finite and >= 0"
            )
    return distances


def _select_vantage(
    members: np.ndarray,
    points: tuple,
    metric: Callable[[Any, Any], float],
    cfg: VPTreeBuildConfig,
    rng: Optional[np.random.Generator],
) -> int:
    """Return the position within ``members`` of the next vantage point."""

    if cfg.vantage_policy == "first":
        return 0
    candidate = int(rng.integers(members.shape[0]))
    if cfg.vantage_policy == "random":
        return candidate
    spread = _checked(
        distances_from(metric, points[members[candidate]], [points[i] for i in members]),
        cfg,
    )
    # argmax returns the first maximum, i.e. the lowest index on ties.
    return int(np.argmax(spread))


@jaxtyped(typechecker=beartype)
def build_vptree(
    points: Iterable[Any],
    metric: Union[Callable[..., Any], MetricSpace],
    *,
    config: Optional[VPTreeBuildConfig] = None,
    rng: Optional[np.random.Generator] = None,
) -> VPTree:
    """Build a vantage-point tree over ``points``.

    Args:
        points: Points of any type understood by ``metric``. The sequence is
            copied; an empty input produces an empty tree.
        metric: Distance function ``(a, b) -> float`` or an object exposing
            ``distance(a, b)``. Must be a metric for queries to be exact.
        config: Build options, see :class:`VPTreeBuildConfig`.
        rng: Random source for the ``"random"`` and ``"farthest"`` policies.
            Overrides ``config.seed``.

    Returns:
        The immutable tree.

    Raises:
        VPTreeBuildError: For an unknown vantage policy, or when distance
            checking is enabled and the metric returns a negative or
            non-finite value.
    """

    cfg = config or VPTreeBuildConfig()
    if cfg.vantage_policy not in _VANTAGE_POLICIES:
        raise VPTreeBuildError(
            "vantage_policy must be one of: 'first', 'random', 'farthest'; "
            f"received {cfg.vantage_policy!r}"
        )
    distance = resolve_metric(metric)
    items = tuple(points)
    n = len(items)
    if cfg.vantage_policy != "first" and rng is None:
        rng = np.random.default_rng(cfg.seed)

    nodes: list[Optional[VPNode]] = [None] * n
    stack: list[tuple[int, np.ndarray, int]] = []
    if n:
        stack.append((0, np.arange(n, dtype=np.int64), 1))
    next_slot = 1
    depth = 0

    # Each point is placed as exactly one node, so slots are preallocated.
    while stack:
        slot, members, level = stack.pop()
        depth = max(depth, level)
        if members.shape[0] == 1:
            nodes[slot] = VPNode(int(members[0]), 0.0)
            continue

        pos = _select_vantage(members, items, distance, cfg, rng)
        vantage = int(members[pos])
        rest = np.delete(members, pos)
        dists = _checked(
            distances_from(distance, items[vantage], [items[i] for i in rest]),
            cfg,
        )
        threshold = select_median(dists)
        near = dists <= threshold

        inside = outside = -1
        inside_members = rest[near]
        outside_members = rest[~near]
        if inside_members.shape[0]:
            inside = next_slot
            next_slot += 1
            stack.append((inside, inside_members, level + 1))
        if outside_members.shape[0]:
            outside = next_slot
            next_slot += 1
            stack.append((outside, outside_members, level + 1))
        nodes[slot] = VPNode(vantage, threshold, inside, outside)

    tree = VPTree(
        points=items,
        nodes=tuple(nodes),
        root=0 if n else -1,
        depth=depth,
        metric=distance,
        config=cfg,
    )
    logger.debug(
        "built vantage-point tree: points=%d depth=%d leaves=%d policy=%s",
        tree.num_points,
        tree.depth,
        tree.num_leaves,
        cfg.vantage_policy,
    )
    return tree


__all__ = [
    "VPNode",
    "VPTree",
    "VPTreeBuildConfig",
    "VPTreeBuildError",
    "VantagePolicy",
    "build_vptree",
]
