"""Tests for the PointCloud container."""

import numpy as np
import pytest

from icpreg import PointCloud, create_transformation_matrix


def test_arrays_are_copied_and_read_only():
    points = np.zeros((2, 3))
    cloud = PointCloud(points)
    points[0, 0] = 1.0

    assert cloud.points[0, 0] == 0.0
    with pytest.raises(ValueError):
        cloud.points[0, 0] = 2.0


def test_shapes_are_checked():
    with pytest.raises(ValueError):
        PointCloud(np.zeros((3, 2)))
    with pytest.raises(ValueError):
        PointCloud(np.zeros((3, 3)), colors=np.zeros((2, 3)))


def test_transformed_rotates_normals_and_keeps_colors():
    cloud = PointCloud([[1.0, 0.0, 0.0]], colors=[[1.0, 0.0, 0.0]], normals=[[1.0, 0.0, 0.0]])
    matrix = create_transformation_matrix(0.0, 0.0, 1.0, 0.0, 0.0, np.pi / 2)
    matrix[:3, :3] *= 2.0

    moved = cloud.transformed(matrix)

    assert np.allclose(moved.points, [[0.0, 2.0, 1.0]])
    assert np.allclose(moved.normals, [[0.0, 1.0, 0.0]])
    assert np.array_equal(moved.colors, cloud.colors)
    assert np.allclose(cloud.points, [[1.0, 0.0, 0.0]])


def test_select():
    cloud = PointCloud(np.arange(12.0).reshape(4, 3), normals=np.eye(3)[[0, 1, 2, 0]])

    subset = cloud.select([3, 1])

    assert np.array_equal(subset.points, [[9.0, 10.0, 11.0], [3.0, 4.0, 5.0]])
    assert np.array_equal(subset.normals, [[1.0, 0.0, 0.0], [0.0, 1.0, 0.0]])
    assert not subset.has_colors
    assert len(subset) == 2
