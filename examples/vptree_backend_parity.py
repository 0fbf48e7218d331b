"""Parity and pruning check for tree vs dense vantage-point queries.

Builds a tree over random vectors (or random strings with ``--strings``),
runs both query backends and reports agreement plus traversal statistics:
    python examples/vptree_backend_parity.py --n-points 2000 --k 8
"""

from __future__ import annotations

import argparse
import math
import random
import string
import time

import jax
import jax.numpy as jnp
import numpy as np

from vantax import (
    VPTreeBuildConfig,
    build_vptree,
    count_neighbors,
    levenshtein,
    nearest_neighbors,
    query_neighbors,
)


def _make_vectors(n: int, dim: int, seed: int) -> list[tuple[float, ...]]:
    key = jax.random.PRNGKey(seed)
    coords = np.asarray(jax.random.uniform(key, (n, dim), minval=-1.0, maxval=1.0))
    return [tuple(float(c) for c in row) for row in coords]


def _make_strings(n: int, seed: int) -> list[str]:
    rnd = random.Random(seed)
    alphabet = string.ascii_lowercase[:6]
    return [
        "".join(rnd.choice(alphabet) for _ in range(rnd.randint(3, 9)))
        for _ in range(n)
    ]


def main() -> None:
    parser = argparse.ArgumentParser()
    parser.add_argument("--n-points", type=int, default=1024)
    parser.add_argument("--n-queries", type=int, default=64)
    parser.add_argument("--dim", type=int, default=3)
    parser.add_argument("--k", type=int, default=5)
    parser.add_argument("--radius", type=float, default=0.25)
    parser.add_argument("--policy", type=str, default="random")
    parser.add_argument("--strings", action="store_true")
    parser.add_argument("--seed", type=int, default=0)
    args = parser.parse_args()

    if args.strings:
        points = _make_strings(args.n_points, args.seed)
        queries = _make_strings(args.n_queries, args.seed + 1)
        metric = levenshtein
    else:
        points = _make_vectors(args.n_points, args.dim, args.seed)
        queries = _make_vectors(args.n_queries, args.dim, args.seed + 1)
        metric = math.dist

    config = VPTreeBuildConfig(vantage_policy=args.policy, seed=args.seed)
    t0 = time.perf_counter()
    tree = build_vptree(points, metric, config=config)
    t_build = time.perf_counter() - t0

    t0 = time.perf_counter()
    idx_tree, d_tree = query_neighbors(tree, queries, k=args.k, backend="tree")
    t_tree = time.perf_counter() - t0
    t0 = time.perf_counter()
    idx_dense, d_dense = query_neighbors(tree, queries, k=args.k, backend="dense")
    t_dense = time.perf_counter() - t0

    counts_tree = count_neighbors(tree, queries, radius=args.radius)
    counts_dense = count_neighbors(tree, queries, radius=args.radius, backend="dense")

    visited = [
        nearest_neighbors(tree, q, args.k, return_stats=True)[1].nodes_visited
        for q in queries
    ]

    print("jax:", jax.__version__)
    print("config:", vars(args))
    print(
        "tree:",
        {
            "num_points": tree.num_points,
            "depth": tree.depth,
            "num_leaves": tree.num_leaves,
            "build_s": round(t_build, 4),
        },
    )
    print(
        "knn parity:",
        {
            "indices_equal": bool(jnp.array_equal(idx_tree, idx_dense)),
            "max_abs_distance_err": float(jnp.max(jnp.abs(d_tree - d_dense)))
            if d_tree.size
            else 0.0,
            "tree_s": round(t_tree, 4),
            "dense_s": round(t_dense, 4),
        },
    )
    print(
        "range parity:",
        {"counts_equal": bool(jnp.array_equal(counts_tree, counts_dense))},
    )
    print(
        "pruning:",
        {
            "mean_nodes_visited": float(np.mean(visited)) if visited else 0.0,
            "visited_fraction": float(np.mean(visited)) / max(tree.num_points, 1)
            if visited
            else 0.0,
        },
    )


if __name__ == "__main__":
    main()
