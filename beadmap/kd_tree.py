# beadmap/kd_tree.py
from __future__ import annotations

"""
Immutable 3-D KD-tree with exact nearest-neighbour search.

Exports:
  KDNode                 : frozen tree node (point, index, axis, left, right)
  Neighbour              : (point, distance, index) query result
  EMPTY_NODE             : canonical empty tree
  build_kd_tree(points)  : balanced build, median split on a cycling axis
  KDTree                 : convenience wrapper with batch queries
  nearest_by_linear_scan : brute-force reference with the same tie rule

Notes:
  - Axis cycles 0 -> 1 -> 2 with depth (L -> a -> b for Lab points).
  - Median is taken after a stable sort, so equal coordinates keep input order.
  - Ties on distance keep the first match found during traversal.
  - Nodes are frozen; a built tree can be shared across threads without locks.
"""

import math
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import List, NamedTuple, Optional, Sequence, Tuple

import numpy as np

from .core_types import Point3
from .utils import split_rows_into_parts


class Neighbour(NamedTuple):
    """Nearest-neighbour match: the stored point, its distance, and its input index."""

    point: Point3
    distance: float
    index: int


def euclidean_distance(p: Sequence[float], q: Sequence[float]) -> float:
    """Euclidean distance between two 3-D points."""
    dx = p[0] - q[0]
    dy = p[1] - q[1]
    dz = p[2] - q[2]
    return math.sqrt(dx * dx + dy * dy + dz * dz)


@dataclass(frozen=True)
class KDNode:
    """
    One node of the tree.

    point is None only for the canonical empty node. A leaf has a point
    and no children. Children that would hold no points are None.
    """

    point: Optional[Point3] = None
    index: int = -1
    axis: int = 0
    left: Optional["KDNode"] = None
    right: Optional["KDNode"] = None

    @property
    def is_empty(self) -> bool:
        return self.point is None

    @property
    def is_leaf(self) -> bool:
        return self.point is not None and self.left is None and self.right is None

    def nearest_neighbor(
        self, target: Sequence[float], best: Optional[Neighbour] = None
    ) -> Optional[Neighbour]:
        """
        Exact nearest neighbour of target in this subtree.

        Returns best unchanged (None on an empty tree) when nothing closer exists.
        """
        if self.point is None:
            return best

        distance = euclidean_distance(target, self.point)
        if best is None or distance < best.distance:
            best = Neighbour(self.point, distance, self.index)

        offset = target[self.axis] - self.point[self.axis]
        if offset < 0:
            near, far = self.left, self.right
        else:
            near, far = self.right, self.left

        if near is not None:
            best = near.nearest_neighbor(target, best)
        # Other side only if the splitting plane is closer than the best match.
        if far is not None and abs(offset) < best.distance:
            best = far.nearest_neighbor(target, best)
        return best

    def depth(self) -> int:
        """Number of levels below and including this node (0 for empty)."""
        if self.point is None:
            return 0
        left = self.left.depth() if self.left is not None else 0
        right = self.right.depth() if self.right is not None else 0
        return 1 + max(left, right)

    def __len__(self) -> int:
        if self.point is None:
            return 0
        left = len(self.left) if self.left is not None else 0
        right = len(self.right) if self.right is not None else 0
        return 1 + left + right


EMPTY_NODE = KDNode()


def _as_point(value: Sequence[float]) -> Point3:
    if len(value) != 3:
        raise ValueError(f"expected a 3-D point, got {len(value)} coordinates")
    return (float(value[0]), float(value[1]), float(value[2]))


def _build(items: List[Tuple[int, Point3]], depth: int) -> Optional[KDNode]:
    if not items:
        return None
    axis = depth % 3
    if len(items) == 1:
        index, point = items[0]
        return KDNode(point=point, index=index, axis=axis)

    ordered = sorted(items, key=lambda item: item[1][axis])
    mid = len(ordered) // 2
    index, point = ordered[mid]
    return KDNode(
        point=point,
        index=index,
        axis=axis,
        left=_build(ordered[:mid], depth + 1),
        right=_build(ordered[mid + 1 :], depth + 1),
    )


def build_kd_tree(points: Sequence[Sequence[float]], depth: int = 0) -> KDNode:
    """
    Build a balanced tree over points.

    Each node remembers the position of its point in points, so duplicate
    coordinates stay distinct leaves. Empty input gives EMPTY_NODE.
    """
    items = [(i, _as_point(p)) for i, p in enumerate(points)]
    root = _build(items, depth)
    return root if root is not None else EMPTY_NODE


def nearest_by_linear_scan(
    points: Sequence[Sequence[float]], target: Sequence[float]
) -> Optional[Neighbour]:
    """Brute-force nearest neighbour; the lowest index wins ties."""
    best: Optional[Neighbour] = None
    for i, p in enumerate(points):
        point = _as_point(p)
        distance = euclidean_distance(target, point)
        if best is None or distance < best.distance:
            best = Neighbour(point, distance, i)
    return best


class KDTree:
    """Owns a built KDNode root plus the points it was built from."""

    def __init__(self, points: Sequence[Sequence[float]]) -> None:
        self._points: Tuple[Point3, ...] = tuple(_as_point(p) for p in points)
        self.root: KDNode = build_kd_tree(self._points)

    def __len__(self) -> int:
        return len(self._points)

    def points(self) -> Tuple[Point3, ...]:
        return self._points

    def depth(self) -> int:
        return self.root.depth()

    def nearest(self, target: Sequence[float]) -> Optional[Neighbour]:
        """Nearest stored point to target, or None when the tree is empty."""
        return self.root.nearest_neighbor(_as_point(target))

    def _nearest_span(self, targets: List[Point3]) -> List[Optional[Neighbour]]:
        return [self.root.nearest_neighbor(t) for t in targets]

    def nearest_many(
        self, targets: np.ndarray | Sequence[Sequence[float]], workers: int = 1
    ) -> List[Optional[Neighbour]]:
        """
        Query many targets. Results are in target order.

        workers > 1 splits targets into contiguous spans over a thread pool;
        the tree is read-only so no synchronisation is needed.
        """
        rows = np.asarray(targets, dtype=np.float64).reshape(-1, 3).tolist()
        queries = [(r[0], r[1], r[2]) for r in rows]
        if workers <= 1 or len(queries) < 2:
            return self._nearest_span(queries)

        spans = split_rows_into_parts(len(queries), workers)
        with ThreadPoolExecutor(max_workers=workers) as pool:
            futures = [pool.submit(self._nearest_span, queries[s:e]) for s, e in spans]
            out: List[Optional[Neighbour]] = []
            for f in futures:
                out.extend(f.result())
        return out


__all__ = [
    "Neighbour",
    "KDNode",
    "EMPTY_NODE",
    "euclidean_distance",
    "build_kd_tree",
    "nearest_by_linear_scan",
    "KDTree",
]
