"""Point cloud container used as input and output of the registration."""

import numpy as np


def _as_readonly(array, name, n_points=None):
    if array is None:
        return None
    array = np.array(array, dtype=np.float64)
    if array.ndim == 1 and array.size == 3:
        array = array.reshape(1, 3)
    if array.ndim != 2 or array.shape[1] != 3:
        raise ValueError(f"{name} must have shape (N, 3), got {array.shape}")
    if n_points is not None and array.shape[0] != n_points:
        raise ValueError(f"{name} has {array.shape[0]} rows, expected {n_points}")
    array.flags.writeable = False
    return array


class PointCloud:
    """Ordered, immutable set of 3D points with optional colors and normals."""

    def __init__(self, points, colors=None, normals=None):
        """
        Initialize a point cloud from arrays.

        Args:
            points: Array-like of shape (N, 3)
            colors: Optional array-like of shape (N, 3), RGB in [0, 1]
            normals: Optional array-like of shape (N, 3), one surface normal per point
        """
        if points is None or len(points) == 0:
            points = np.empty((0, 3))
        self.points = _as_readonly(points, "points")
        n_points = self.points.shape[0]
        self.colors = _as_readonly(colors, "colors", n_points)
        self.normals = _as_readonly(normals, "normals", n_points)

    @property
    def has_colors(self):
        return self.colors is not None

    @property
    def has_normals(self):
        return self.normals is not None

    def is_empty(self):
        return self.points.shape[0] == 0

    def select(self, indices):
        """Return a new cloud holding only the points at ``indices``."""
        indices = np.asarray(indices, dtype=np.int64)
        return PointCloud(
            self.points[indices],
            colors=None if self.colors is None else self.colors[indices],
            normals=None if self.normals is None else self.normals[indices],
        )

    def transformed(self, transform):
        """
        Apply a transformation to the cloud.

        Args:
            transform: ``Transform`` or 4x4 homogeneous matrix

        Returns:
            New PointCloud; normals are rotated, colors are kept
        """
        matrix = np.asarray(getattr(transform, "matrix", transform), dtype=np.float64)
        linear = matrix[:3, :3]
        points = self.points @ linear.T + matrix[:3, 3]

        normals = None
        if self.normals is not None:
            # Scale does not change the direction of a normal
            normals = self.normals @ linear.T
            lengths = np.linalg.norm(normals, axis=1, keepdims=True)
            normals = normals / np.where(lengths > 0, lengths, 1.0)

        return PointCloud(points, colors=self.colors, normals=normals)

    def __len__(self):
        return len(self.points)

    def __repr__(self):
        fields = []
        if self.has_colors:
            fields.append("colors")
        if self.has_normals:
            fields.append("normals")
        extra = f" with {', '.join(fields)}" if fields else ""
        return f"PointCloud({len(self)} points{extra})"
