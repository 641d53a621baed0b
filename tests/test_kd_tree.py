import numpy as np
import pytest

from beadmap.kd_tree import (
    EMPTY_NODE,
    KDTree,
    build_kd_tree,
    euclidean_distance,
    nearest_by_linear_scan,
)

POINTS = [
    (30, 20, 10),
    (60, 50, 40),
    (10, 5, 0),
    (90, 80, 70),
    (45, 35, 25),
]


def _random_lab(n, seed):
    rng = np.random.default_rng(seed)
    L = rng.uniform(0.0, 100.0, size=n)
    ab = rng.uniform(-110.0, 110.0, size=(n, 2))
    return np.column_stack([L, ab])


def test_build_splits_on_median_and_cycles_axis():
    root = build_kd_tree(POINTS)
    assert root.point == (45.0, 35.0, 25.0)
    assert root.axis == 0
    assert root.index == 4

    assert root.left.point == (30.0, 20.0, 10.0)
    assert root.left.axis == 1
    assert root.left.left.point == (10.0, 5.0, 0.0)
    assert root.left.left.is_leaf
    assert root.left.left.axis == 2
    assert root.left.right is None

    assert root.right.point == (90.0, 80.0, 70.0)
    assert root.right.left.point == (60.0, 50.0, 40.0)
    assert len(root) == 5
    assert root.depth() == 3


def test_equal_coordinates_keep_input_order():
    root = build_kd_tree([(1, 0, 0), (1, 1, 0), (1, 2, 0)])
    # stable sort on x leaves the input order, so the middle input is the median
    assert root.index == 1
    assert root.left.index == 0
    assert root.right.index == 2


def test_empty_tree_returns_no_match():
    root = build_kd_tree([])
    assert root is EMPTY_NODE
    assert root.is_empty
    assert root.nearest_neighbor((1.0, 2.0, 3.0)) is None
    assert KDTree([]).nearest((0, 0, 0)) is None
    assert KDTree([]).nearest_many([(0, 0, 0), (1, 1, 1)]) == [None, None]


def test_single_point_is_a_leaf():
    root = build_kd_tree([(5, 6, 7)])
    assert root.is_leaf
    match = root.nearest_neighbor((5.0, 6.0, 8.0))
    assert match.point == (5.0, 6.0, 7.0)
    assert match.distance == pytest.approx(1.0)
    assert match.index == 0


def test_query_of_a_stored_point_is_exact():
    tree = KDTree(POINTS)
    for i, p in enumerate(POINTS):
        match = tree.nearest(p)
        assert match.distance == 0.0
        assert match.index == i


def test_nearest_matches_linear_scan_on_random_points():
    points = _random_lab(200, seed=10)
    targets = _random_lab(500, seed=11)
    tree = KDTree(points)
    for target in targets:
        got = tree.nearest(target)
        want = nearest_by_linear_scan(points, target)
        assert got.point == want.point
        assert got.index == want.index
        assert got.distance == pytest.approx(want.distance)


def test_nearest_matches_linear_scan_with_ties():
    # integer grid with duplicates; ties are frequent, so compare distances
    rng = np.random.default_rng(12)
    points = rng.integers(0, 4, size=(60, 3)).tolist()
    tree = KDTree(points)
    rebuilt = KDTree(points)
    assert len(tree) == 60
    targets = rng.integers(-1, 5, size=(200, 3)).tolist()
    for target in targets:
        got = tree.nearest(target)
        want = nearest_by_linear_scan(points, target)
        assert got.distance == pytest.approx(want.distance)
        assert euclidean_distance(target, points[got.index]) == pytest.approx(got.distance)
        # the tied winner is fixed for a given tree
        assert tree.nearest(target).index == got.index
        assert rebuilt.nearest(target).index == got.index
    first = [m.index for m in tree.nearest_many(targets)]
    assert [m.index for m in tree.nearest_many(targets, workers=3)] == first


def test_duplicate_points_are_separate_leaves():
    tree = KDTree([(1, 1, 1), (1, 1, 1), (9, 9, 9)])
    assert len(tree.root) == 3
    match = tree.nearest((1, 1, 1))
    assert match.distance == 0.0
    assert match.index in (0, 1)


def test_nearest_many_parallel_matches_serial():
    tree = KDTree(_random_lab(80, seed=13))
    targets = _random_lab(1000, seed=14)
    serial = tree.nearest_many(targets)
    threaded = tree.nearest_many(targets, workers=4)
    assert [m.index for m in threaded] == [m.index for m in serial]
    assert len(serial) == 1000


def test_rejects_points_that_are_not_3d():
    with pytest.raises(ValueError):
        build_kd_tree([(1, 2)])
    with pytest.raises(ValueError):
        KDTree([(1, 2, 3)]).nearest((1, 2))
