"""KD-Tree implementation for efficient spatial partitioning and nearest neighbor search."""

import numpy as np

from .exceptions import ConfigurationError
from .utils import time_function


class Node:
    def __init__(self):
        self.point = None
        self.index = None
        self.left = None
        self.right = None
        self.axis = None
        self.indices = None
    def set_point(self, point, index):
        self.point = point
        self.index = index
    def set_left(self, left):
        self.left = left
    def set_right(self, right):
        self.right = right
    def set_axis(self, axis):
        self.axis = axis
    def set_indices(self, indices):
        self.indices = indices


class KDTree:
    """
    Nearest neighbor index over a fixed reference cloud.

    The tree is built once and never modified afterwards, so queries can be
    issued repeatedly and from several workers at the same time.
    """

    def __init__(self, leaf_size=32, dimension=3):
        self.root = None
        self.points = None
        self.leaf_size = max(1, int(leaf_size))
        self.dimension = dimension

    @time_function
    def build(self, points):
        """
        Build the tree over ``points``.

        Args:
            points: Array of shape (N, dimension)

        Raises:
            ConfigurationError: if ``points`` is empty
        """
        points = np.array(points, dtype=np.float64)
        if points.ndim != 2 or points.shape[0] == 0:
            raise ConfigurationError("cannot build a KD-tree over an empty reference cloud")
        if points.shape[1] != self.dimension:
            raise ConfigurationError(
                f"expected points of dimension {self.dimension}, got {points.shape[1]}"
            )
        points.flags.writeable = False
        # Keep a reference to the canonical points array
        self.points = points
        indices = np.arange(points.shape[0], dtype=np.int64)
        self.root = self._build(indices, depth=0)
        return self.root

    def _build(self, indices, depth):
        n_points = indices.shape[0]

        # No points
        if n_points == 0:
            return None

        # Leaf: store the indices to avoid creating millions of nodes
        if n_points <= self.leaf_size:
            leaf = Node()
            leaf.set_axis(depth % self.dimension)
            leaf.set_indices(indices)
            return leaf

        # Choose splitting axis
        axis = depth % self.dimension

        # Compute median position and in-place partition indices by the chosen axis
        median_index = n_points // 2
        # argpartition gives positions that would place kth in its final position
        order = np.argpartition(self.points[indices, axis], median_index)
        # Reorder this segment of indices in-place to avoid large copies
        indices[:] = indices[order]

        median_point_index = indices[median_index]

        node = Node()
        node.set_axis(axis)
        node.set_point(self.points[median_point_index], int(median_point_index))

        # Build subtrees using views (no copies) into the shared indices array
        node.set_left(self._build(indices[:median_index], depth + 1))
        node.set_right(self._build(indices[median_index + 1:], depth + 1))
        return node

    def __len__(self):
        return 0 if self.points is None else self.points.shape[0]

    def nearest(self, point, max_distance=np.inf):
        """
        Iterative nearest neighbor search bounded by ``max_distance``.

        Args:
            point: Query point of shape (dimension,)
            max_distance: Only neighbors at most this far away are returned

        Returns:
            Tuple ``(reference_index, squared_distance)``, or None when no
            reference point lies within ``max_distance``
        """
        if self.root is None:
            raise ConfigurationError("KD-tree queried before build()")

        query_point = np.asarray(point, dtype=np.float64)
        best_index = None
        best_sq = float(max_distance) ** 2

        # Each entry carries a lower bound on the squared distance to its subtree
        stack = [(self.root, 0.0)]
        while stack:
            node, lower_bound = stack.pop()
            if node is None or lower_bound > best_sq:
                continue

            # Leaf node: check all points in the leaf
            if node.indices is not None:
                diffs = self.points[node.indices] - query_point
                dists = np.einsum('ij,ij->i', diffs, diffs)
                idx = int(np.argmin(dists))
                dist = dists[idx]
                if dist < best_sq or (best_index is None and dist <= best_sq):
                    best_index, best_sq = int(node.indices[idx]), float(dist)
                continue

            # Internal node: check node point
            diff = node.point - query_point
            dist = float(diff @ diff)
            if dist < best_sq or (best_index is None and dist <= best_sq):
                best_index, best_sq = node.index, dist

            # Traverse tree
            axis = node.axis
            offset = query_point[axis] - node.point[axis]
            if offset < 0:
                near_node, far_node = node.left, node.right
            else:
                near_node, far_node = node.right, node.left

            # Far side is pushed first so the near side is explored first
            if offset * offset <= best_sq:
                stack.append((far_node, offset * offset))
            stack.append((near_node, lower_bound))

        if best_index is None:
            return None
        return best_index, best_sq

    def query(self, points, max_distance=np.inf):
        """
        Batched version of ``nearest``.

        Returns:
            Tuple of (indices, squared_distances); misses have index -1 and
            distance inf
        """
        points = np.atleast_2d(np.asarray(points, dtype=np.float64))
        indices = np.full(points.shape[0], -1, dtype=np.int64)
        sq_distances = np.full(points.shape[0], np.inf)
        for i, point in enumerate(points):
            match = self.nearest(point, max_distance)
            if match is not None:
                indices[i], sq_distances[i] = match
        return indices, sq_distances
