"""pytest configuration and fixtures for the icpreg test suite."""

import matplotlib

matplotlib.use("Agg")

import numpy as np
import pytest

from icpreg import PointCloud


def make_grid(n=6, low=-0.5, high=0.5):
    axis = np.linspace(low, high, n)
    xs, ys, zs = np.meshgrid(axis, axis, axis, indexing="ij")
    return np.column_stack([xs.ravel(), ys.ravel(), zs.ravel()])


def make_planes(n=10, spacing=0.1):
    """Points on the three coordinate planes with their normals (no shared edges)."""
    axis = spacing * np.arange(1, n + 1)
    u, v = np.meshgrid(axis, axis, indexing="ij")
    u, v = u.ravel(), v.ravel()
    zeros = np.zeros_like(u)
    points = np.concatenate([
        np.column_stack([u, v, zeros]),
        np.column_stack([zeros, u, v]),
        np.column_stack([u, zeros, v]),
    ])
    normals = np.concatenate([
        np.tile([0.0, 0.0, 1.0], (u.size, 1)),
        np.tile([1.0, 0.0, 0.0], (u.size, 1)),
        np.tile([0.0, 1.0, 0.0], (u.size, 1)),
    ])
    return points, normals


@pytest.fixture
def grid_cloud():
    return PointCloud(make_grid())


@pytest.fixture
def plane_cloud():
    points, normals = make_planes()
    return PointCloud(points, normals=normals)


@pytest.fixture
def unit_square():
    return PointCloud([[0.0, 0.0, 0.0], [1.0, 0.0, 0.0], [1.0, 1.0, 0.0], [0.0, 1.0, 0.0]])
