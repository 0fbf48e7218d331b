"""Batched neighbour queries returning JAX arrays."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from typing import Any, Literal, Optional, Union

import jax
import jax.numpy as jnp
import numpy as np
from beartype import beartype
from jaxtyping import Array, jaxtyped

from .dtypes import DISTANCE_DTYPE, INDEX_DTYPE
from .metrics import distances_from
from .protocols import MetricSpace
from .search import Count, Radius, as_count, as_radius, knn_search, range_search
from .vptree import VPTree, VPTreeBuildConfig, build_vptree

logger = logging.getLogger(__name__)

QueryBackend = Literal["tree", "dense"]
_BACKENDS = ("tree", "dense")


def _validate_backend(backend: str) -> None:
    if backend not in _BACKENDS:
        raise ValueError("backend must be one of: 'tree', 'dense'")


def _distance_rows(tree: VPTree, queries: tuple) -> Array:
    """Return the full ``(n_queries, n_points)`` distance matrix."""

    rows = np.stack([distances_from(tree.metric, q, tree.points) for q in queries])
    return jnp.asarray(rows, dtype=DISTANCE_DTYPE)


def _query_neighbors_dense(tree: VPTree, queries: tuple, *, k: int) -> tuple[Array, Array]:
    distances = _distance_rows(tree, queries)
    point_ids = jnp.broadcast_to(
        jnp.arange(tree.num_points, dtype=INDEX_DTYPE),
        distances.shape,
    )
    # Sorting on (distance, index) keeps the input-order tie-break.
    distances, point_ids = jax.lax.sort(
        (distances, point_ids),
        dimension=1,
        num_keys=2,
    )
    return point_ids[:, :k], distances[:, :k]


def _query_neighbors_tree(tree: VPTree, queries: tuple, *, k: int) -> tuple[Array, Array]:
    indices = np.empty((len(queries), k), dtype=np.int64)
    distances = np.empty((len(queries), k), dtype=np.float64)
    for row, query in enumerate(queries):
        pairs, _ = knn_search(tree, query, k)
        for col, (distance, index) in enumerate(pairs):
            indices[row, col] = index
            distances[row, col] = distance
    return (
        jnp.asarray(indices, dtype=INDEX_DTYPE),
        jnp.asarray(distances, dtype=DISTANCE_DTYPE),
    )


@jaxtyped(typechecker=beartype)
def query_neighbors(
    tree: VPTree,
    queries: Iterable[Any],
    *,
    k: Count = 1,
    backend: QueryBackend = "tree",
) -> tuple[Array, Array]:
    """Return nearest-neighbour indices and distances for each query point.

    Args:
        tree: Tree built by :func:`~vantax.vptree.build_vptree`.
        queries: Query points, any values the tree's metric accepts.
        k: Number of neighbours, capped at ``tree.num_points``.
        backend: ``tree`` runs the pruned vantage-point search per query;
            ``dense`` scans every point and sorts, which is the exact
            reference result.

    Returns:
        Tuple ``(indices, distances)`` with shapes
        ``(n_queries, min(k, tree.num_points))``. Rows are sorted by
        distance, ties by point index.
    """

    k = as_count(k)
    _validate_backend(backend)
    queries_t = tuple(queries)
    width = min(k, tree.num_points)
    logger.debug(
        "query_neighbors: backend=%s queries=%d k=%d",
        backend,
        len(queries_t),
        width,
    )

    if width == 0 or not queries_t:
        return (
            jnp.zeros((len(queries_t), width), dtype=INDEX_DTYPE),
            jnp.zeros((len(queries_t), width), dtype=DISTANCE_DTYPE),
        )
    if backend == "dense":
        return _query_neighbors_dense(tree, queries_t, k=width)
    return _query_neighbors_tree(tree, queries_t, k=width)


@jaxtyped(typechecker=beartype)
def count_neighbors(
    tree: VPTree,
    queries: Iterable[Any],
    *,
    radius: Radius,
    backend: QueryBackend = "tree",
) -> Array:
    """Count points within ``radius`` (inclusive) of each query point."""

    radius = as_radius(radius)
    _validate_backend(backend)
    queries_t = tuple(queries)
    logger.debug("count_neighbors: backend=%s queries=%d", backend, len(queries_t))

    if tree.is_empty or not queries_t:
        return jnp.zeros((len(queries_t),), dtype=INDEX_DTYPE)
    if backend == "dense":
        distances = _distance_rows(tree, queries_t)
        return jnp.sum(distances <= radius, axis=1, dtype=INDEX_DTYPE)
    counts = [len(range_search(tree, q, radius)[0]) for q in queries_t]
    return jnp.asarray(counts, dtype=INDEX_DTYPE)


@jaxtyped(typechecker=beartype)
def build_and_query(
    points: Iterable[Any],
    queries: Iterable[Any],
    metric: Union[Callable[..., Any], MetricSpace],
    *,
    k: Count = 1,
    config: Optional[VPTreeBuildConfig] = None,
    rng: Optional[np.random.Generator] = None,
    backend: QueryBackend = "tree",
) -> tuple[VPTree, Array, Array]:
    """Build a tree and run :func:`query_neighbors` in one call."""

    tree = build_vptree(points, metric, config=config, rng=rng)
    indices, distances = query_neighbors(tree, queries, k=k, backend=backend)
    return tree, indices, distances


__all__ = [
    "QueryBackend",
    "build_and_query",
    "count_neighbors",
    "query_neighbors",
]
