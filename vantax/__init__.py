"""Vantax: vantage-point trees for exact search in arbitrary metric spaces."""

from jax import config as _jax_config

# Distances and point indices are reported as float64 / int64 arrays.
_jax_config.update("jax_enable_x64", True)

from .dtypes import DISTANCE_DTYPE, INDEX_DTYPE, as_distance, as_index
from .median import median_rank, select_median
from .metrics import (
    bounded,
    chebyshev,
    distances_from,
    euclidean,
    hamming,
    levenshtein,
    manhattan,
    resolve_metric,
)
from .protocols import DistanceFunction, MetricSpace
from .queries import QueryBackend, build_and_query, count_neighbors, query_neighbors
from .search import (
    BoundedCandidates,
    Neighbor,
    SearchStats,
    nearest_neighbor,
    nearest_neighbors,
    range_query,
)
from .vptree import (
    VantagePolicy,
    VPNode,
    VPTree,
    VPTreeBuildConfig,
    VPTreeBuildError,
    build_vptree,
)

__all__ = [
    "DISTANCE_DTYPE",
    "INDEX_DTYPE",
    "BoundedCandidates",
    "DistanceFunction",
    "MetricSpace",
    "Neighbor",
    "QueryBackend",
    "SearchStats",
    "VPNode",
    "VPTree",
    "VPTreeBuildConfig",
    "VPTreeBuildError",
    "VantagePolicy",
    "as_distance",
    "as_index",
    "bounded",
    "build_and_query",
    "build_vptree",
    "chebyshev",
    "count_neighbors",
    "distances_from",
    "euclidean",
    "hamming",
    "levenshtein",
    "manhattan",
    "median_rank",
    "nearest_neighbor",
    "nearest_neighbors",
    "query_neighbors",
    "range_query",
    "resolve_metric",
    "select_median",
]
