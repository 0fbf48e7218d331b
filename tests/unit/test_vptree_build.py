"""Unit coverage for vantage-point tree construction."""

import math

import jax
import jax.numpy as jnp
import numpy as np
import pytest

from vantax import (
    VPTreeBuildConfig,
    VPTreeBuildError,
    build_vptree,
    levenshtein,
)


def _line_metric(a, b):
    return abs(a - b)


def _sample_points(n: int = 64, dim: int = 3, seed: int = 7) -> list[tuple[float, ...]]:
    key = jax.random.PRNGKey(seed)
    coords = np.asarray(jax.random.uniform(key, (n, dim), minval=-1.0, maxval=1.0))
    return [tuple(float(c) for c in row) for row in coords]


def _subtree_points(tree, slot):
    if slot < 0:
        return []
    collected = []
    stack = [slot]
    while stack:
        node = tree.nodes[stack.pop()]
        collected.append(node.vantage)
        stack.extend(child for child in (node.inside, node.outside) if child >= 0)
    return collected


def _assert_partition_invariants(tree):
    for node in tree.nodes:
        vantage = tree.points[node.vantage]
        for index in _subtree_points(tree, node.inside):
            assert tree.metric(vantage, tree.points[index]) <= node.threshold
        for index in _subtree_points(tree, node.outside):
            assert tree.metric(vantage, tree.points[index]) > node.threshold


@pytest.mark.parametrize("policy", ["first", "random", "farthest"])
def test_build_places_every_point_exactly_once(policy):
    points = _sample_points(n=57)
    tree = build_vptree(points, math.dist, config=VPTreeBuildConfig(vantage_policy=policy, seed=3))

    assert tree.num_points == 57
    assert tree.num_nodes == 57
    assert sorted(node.vantage for node in tree.nodes) == list(range(57))
    assert sorted(_subtree_points(tree, tree.root)) == list(range(57))


@pytest.mark.parametrize("policy", ["first", "random", "farthest"])
def test_build_respects_inside_outside_thresholds(policy):
    points = _sample_points(n=80, dim=2, seed=11)
    tree = build_vptree(points, math.dist, config=VPTreeBuildConfig(vantage_policy=policy, seed=5))

    _assert_partition_invariants(tree)


def test_build_on_line_uses_median_threshold():
    tree = build_vptree(list(range(10)), _line_metric)
    root = tree.nodes[tree.root]

    # First policy picks point 0; distances 1..9 have median rank 4 -> 5.
    assert root.vantage == 0
    assert root.threshold == 5.0
    assert sorted(_subtree_points(tree, root.inside)) == [1, 2, 3, 4, 5]
    assert sorted(_subtree_points(tree, root.outside)) == [6, 7, 8, 9]


def test_build_median_ties_go_inside():
    points = [0.0, 1.0, 1.0, 1.0, 2.0]
    tree = build_vptree(points, _line_metric)
    root = tree.nodes[tree.root]

    assert root.threshold == 1.0
    assert sorted(_subtree_points(tree, root.inside)) == [1, 2, 3]
    assert sorted(_subtree_points(tree, root.outside)) == [4]


def test_build_empty_input_produces_empty_tree():
    tree = build_vptree([], _line_metric)

    assert tree.is_empty
    assert tree.root == -1
    assert tree.num_points == 0
    assert tree.num_nodes == 0
    assert tree.depth == 0
    assert tree.vantage_index.shape == (0,)
    assert tree.dump() == "<empty>"


def test_build_singleton_is_a_leaf():
    tree = build_vptree(["solo"], levenshtein)
    root = tree.nodes[tree.root]

    assert root.is_leaf
    assert root.vantage == 0
    assert tree.depth == 1
    assert tree.num_leaves == 1


def test_build_identical_points_terminates_as_chain():
    points = ["same"] * 1500
    tree = build_vptree(points, lambda a, b: 0.0 if a == b else 1.0)

    # All distances are zero, so every split sends the rest inside.
    assert tree.num_nodes == 1500
    assert tree.depth == 1500
    assert all(node.outside == -1 for node in tree.nodes)
    assert all(node.threshold == 0.0 for node in tree.nodes)


def test_build_depth_is_logarithmic_for_distinct_line_points():
    tree = build_vptree(list(range(1023)), _line_metric)

    assert tree.depth <= 2 * math.ceil(math.log2(1024))


def test_build_with_same_seed_is_reproducible():
    points = _sample_points(n=90, seed=21)
    config = VPTreeBuildConfig(vantage_policy="random", seed=1234)

    first = build_vptree(points, math.dist, config=config)
    second = build_vptree(points, math.dist, config=config)

    assert first.nodes == second.nodes
    assert first == second


def test_build_explicit_rng_overrides_seed():
    points = _sample_points(n=40, seed=2)
    config = VPTreeBuildConfig(vantage_policy="farthest", seed=99)

    a = build_vptree(points, math.dist, config=config, rng=np.random.default_rng(5))
    b = build_vptree(points, math.dist, config=config, rng=np.random.default_rng(5))

    assert a.nodes == b.nodes


def test_build_first_policy_ignores_random_state():
    points = _sample_points(n=33, seed=4)
    a = build_vptree(points, math.dist, rng=np.random.default_rng(1))
    b = build_vptree(points, math.dist, rng=np.random.default_rng(2))

    assert a.nodes == b.nodes


def test_build_copies_input_sequence():
    points = [3.0, 1.0, 2.0]
    tree = build_vptree(points, _line_metric)
    points.append(10.0)
    points[0] = -1.0

    assert tree.points == (3.0, 1.0, 2.0)


def test_build_accepts_metric_space_objects():
    class Line:
        def distance(self, a, b):
            return abs(a - b)

    tree = build_vptree([1.0, 4.0, 9.0], Line())

    assert tree.metric(1.0, 4.0) == 3.0


def test_build_rejects_unknown_vantage_policy():
    with pytest.raises(VPTreeBuildError, match="vantage_policy"):
        build_vptree([1.0, 2.0], _line_metric, config=VPTreeBuildConfig(vantage_policy="middle"))


def test_build_rejects_negative_distances():
    with pytest.raises(VPTreeBuildError, match="finite and >= 0"):
        build_vptree([1.0, 2.0, 3.0], lambda a, b: a - b)


def test_build_rejects_nan_distances():
    with pytest.raises(VPTreeBuildError):
        build_vptree([1.0, 2.0], lambda a, b: float("nan"))


def test_build_skips_distance_checks_when_disabled():
    tree = build_vptree(
        [1.0, 2.0, 3.0],
        lambda a, b: a - b,
        config=VPTreeBuildConfig(check_distances=False),
    )

    assert tree.num_nodes == 3


def test_build_error_is_a_value_error():
    assert issubclass(VPTreeBuildError, ValueError)


def test_topology_array_views_are_well_formed():
    tree = build_vptree(_sample_points(n=31, dim=2), math.dist)

    assert tree.vantage_index.shape == (31,)
    assert tree.threshold.shape == (31,)
    assert tree.inside_child.shape == (31,)
    assert tree.outside_child.shape == (31,)
    assert jnp.issubdtype(tree.vantage_index.dtype, jnp.integer)
    assert jnp.all(tree.threshold >= 0.0)
    assert int(jnp.sum(tree.inside_child >= 0) + jnp.sum(tree.outside_child >= 0)) == 30


def test_dump_lists_every_node():
    tree = build_vptree(list(range(6)), _line_metric)
    text = tree.dump()

    assert text.startswith("root: #0 0 threshold=")
    assert len(text.splitlines()) == 6
    assert "inside:" in text
    assert "leaf" in text
