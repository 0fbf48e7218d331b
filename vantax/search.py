"""Exact branch-and-bound k-NN and range search over vantage-point trees.

Both traversals use an explicit stack, so skewed trees (for example many
identical points) cannot exhaust the interpreter recursion limit.

A bounded-radius k-NN query would use ``min(radius, worst kept distance)`` as
the pruning bound of :func:`nearest_neighbors`; it is not provided.
"""

from __future__ import annotations

import heapq
import math
import operator
from numbers import Integral, Real
from typing import Any, NamedTuple, Optional, Union

from beartype import beartype
from jaxtyping import Array, jaxtyped

from .vptree import VPTree

# Scalar arguments may arrive as Python, NumPy or 0-d JAX values.
Count = Union[Integral, Array]
Radius = Union[Real, Array]


class Neighbor(NamedTuple):
    """A result point paired with its distance to the query."""

    point: Any
    distance: float


class SearchStats(NamedTuple):
    """Traversal counters for a single query."""

    nodes_visited: int
    subtrees_pruned: int


class BoundedCandidates:
    """Keep the ``capacity`` best ``(distance, index)`` pairs seen so far.

    Pairs are ordered by distance, then by point index, so equal distances
    resolve to the point that came first in the input.
    """

    def __init__(self, capacity: int):
        self.capacity = capacity
        # Max-heap on (distance, index) via negated keys.
        self._heap: list[tuple[float, int]] = []

    def __len__(self) -> int:
        return len(self._heap)

    @property
    def worst(self) -> float:
        """Return the pruning radius: worst kept distance, or inf if not full."""

        if not self._heap or len(self._heap) < self.capacity:
            return math.inf
        return -self._heap[0][0]

    def offer(self, distance: float, index: int) -> bool:
        """Insert a candidate, evicting the current worst when full."""

        if self.capacity <= 0:
            return False
        entry = (-distance, -index)
        if len(self._heap) < self.capacity:
            heapq.heappush(self._heap, entry)
            return True
        if entry > self._heap[0]:
            heapq.heapreplace(self._heap, entry)
            return True
        return False

    def ordered(self) -> list[tuple[float, int]]:
        """Return kept pairs sorted ascending by ``(distance, index)``."""

        return sorted((-d, -i) for d, i in self._heap)


def _split_sides(tree: VPTree, slot: int, d: float) -> tuple[int, int, float]:
    """Return near child, far child and the far side's distance lower bound."""

    node = tree.nodes[slot]
    if d <= node.threshold:
        return node.inside, node.outside, node.threshold - d
    return node.outside, node.inside, d - node.threshold


def knn_search(tree: VPTree, query, k: int) -> tuple[list[tuple[float, int]], SearchStats]:
    """Return ``(distance, index)`` pairs of the ``k`` nearest points."""

    if k == 0 or tree.is_empty:
        return [], SearchStats(0, 0)

    candidates = BoundedCandidates(k)
    visited = pruned = 0
    # Entries are (slot, gap); the far side is only entered if its gap
    # still fits the pruning radius once the near side is exhausted.
    stack: list[tuple[int, float]] = [(tree.root, -math.inf)]
    while stack:
        slot, gap = stack.pop()
        if gap > candidates.worst:
            pruned += 1
            continue
        node = tree.nodes[slot]
        d = float(tree.metric(query, tree.points[node.vantage]))
        visited += 1
        candidates.offer(d, node.vantage)
        if node.is_leaf:
            continue
        near, far, gap = _split_sides(tree, slot, d)
        if far >= 0:
            stack.append((far, gap))
        if near >= 0:
            stack.append((near, -math.inf))

    return candidates.ordered(), SearchStats(visited, pruned)


def range_search(
    tree: VPTree, query, radius: float
) -> tuple[list[tuple[float, int]], SearchStats]:
    """Return ``(distance, index)`` pairs of all points within ``radius``."""

    if tree.is_empty:
        return [], SearchStats(0, 0)

    hits: list[tuple[float, int]] = []
    visited = pruned = 0
    stack = [tree.root]
    while stack:
        slot = stack.pop()
        node = tree.nodes[slot]
        d = float(tree.metric(query, tree.points[node.vantage]))
        visited += 1
        if d <= radius:
            hits.append((d, node.vantage))
        if node.is_leaf:
            continue
        near, far, gap = _split_sides(tree, slot, d)
        if near >= 0:
            stack.append(near)
        if far >= 0:
            if gap <= radius:
                stack.append(far)
            else:
                pruned += 1

    hits.sort()
    return hits, SearchStats(visited, pruned)


def _as_neighbors(tree: VPTree, pairs: list[tuple[float, int]]) -> list[Neighbor]:
    return [Neighbor(tree.points[index], distance) for distance, index in pairs]


def as_count(k: Count) -> int:
    """Normalize a neighbour count to a non-negative Python ``int``."""

    count = operator.index(k)
    if count < 0:
        raise ValueError(f"k must be >= 0, received {count}")
    return count


def as_radius(radius: Radius) -> float:
    """Normalize a search radius to a non-negative Python ``float``."""

    value = float(radius)
    if not value >= 0:
        raise ValueError(f"radius must be >= 0, received {value}")
    return value


@jaxtyped(typechecker=beartype)
def nearest_neighbors(
    tree: VPTree,
    query: Any,
    k: Count,
    *,
    return_stats: bool = False,
) -> Union[list[Neighbor], tuple[list[Neighbor], SearchStats]]:
    """Return the ``k`` points closest to ``query``.

    Args:
        tree: Tree built by :func:`~vantax.vptree.build_vptree`.
        query: Query point, any value the tree's metric accepts.
        k: Number of neighbours. ``0`` returns an empty list; values above
            ``tree.num_points`` return every point.
        return_stats: If ``True``, also return :class:`SearchStats`.

    Returns:
        ``min(k, tree.num_points)`` neighbours sorted ascending by distance.
        Equal distances are ordered by position in the input sequence.
    """

    pairs, stats = knn_search(tree, query, as_count(k))
    neighbors = _as_neighbors(tree, pairs)
    if return_stats:
        return neighbors, stats
    return neighbors


@jaxtyped(typechecker=beartype)
def nearest_neighbor(tree: VPTree, query: Any) -> Optional[Neighbor]:
    """Return the closest point to ``query``, or ``None`` for an empty tree."""

    pairs, _ = knn_search(tree, query, 1)
    if not pairs:
        return None
    return _as_neighbors(tree, pairs)[0]


@jaxtyped(typechecker=beartype)
def range_query(
    tree: VPTree,
    query: Any,
    radius: Radius,
    *,
    return_stats: bool = False,
) -> Union[list[Neighbor], tuple[list[Neighbor], SearchStats]]:
    """Return every point within ``radius`` of ``query`` (inclusive).

    Results are sorted ascending by distance, then by input position.

    Raises:
        ValueError: If ``radius`` is negative or NaN.
    """

    pairs, stats = range_search(tree, query, as_radius(radius))
    neighbors = _as_neighbors(tree, pairs)
    if return_stats:
        return neighbors, stats
    return neighbors


__all__ = [
    "BoundedCandidates",
    "Count",
    "Neighbor",
    "Radius",
    "SearchStats",
    "as_count",
    "as_radius",
    "knn_search",
    "nearest_neighbor",
    "nearest_neighbors",
    "range_query",
    "range_search",
]
