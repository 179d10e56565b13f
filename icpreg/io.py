"""Point cloud file I/O and input preparation with Open3D."""

import logging

import numpy as np
import open3d as o3d

from .point_cloud import PointCloud

logger = logging.getLogger(__name__)


def from_o3d(o3d_pcd):
    """Convert an Open3D PointCloud to a PointCloud."""
    points = np.asarray(o3d_pcd.points)
    colors = np.asarray(o3d_pcd.colors) if o3d_pcd.has_colors() else None
    normals = np.asarray(o3d_pcd.normals) if o3d_pcd.has_normals() else None
    return PointCloud(points, colors=colors, normals=normals)


def to_o3d(cloud, color=None):
    """
    Convert to Open3D PointCloud object.

    Args:
        cloud: PointCloud
        color: Optional uniform color [r, g, b] overriding the cloud colors

    Returns:
        Open3D PointCloud object
    """
    pcd = o3d.geometry.PointCloud()
    pcd.points = o3d.utility.Vector3dVector(np.asarray(cloud.points))

    if color is not None:
        pcd.paint_uniform_color(color)
    elif cloud.colors is not None:
        pcd.colors = o3d.utility.Vector3dVector(np.asarray(cloud.colors))
    if cloud.normals is not None:
        pcd.normals = o3d.utility.Vector3dVector(np.asarray(cloud.normals))

    return pcd


def read_point_cloud(filepath):
    """Load point cloud from file (any format Open3D reads: ply, pcd, xyz...)."""
    pcd = o3d.io.read_point_cloud(str(filepath))
    cloud = from_o3d(pcd)
    if cloud.is_empty():
        logger.warning("No points read from %s", filepath)
    else:
        logger.info("Loaded %d points from %s", len(cloud), filepath)
    return cloud


def write_point_cloud(filepath, cloud):
    """Write a PointCloud to ``filepath``; the format follows the extension."""
    if not o3d.io.write_point_cloud(str(filepath), to_o3d(cloud)):
        raise IOError(f"could not write point cloud to {filepath}")
    logger.info("Wrote %d points to %s", len(cloud), filepath)


def estimate_normals(cloud, k=30, camera_location=(0.0, 0.0, 0.0)):
    """
    Return a copy of ``cloud`` with normals estimated from its ``k`` nearest neighbors.

    Normals are oriented towards ``camera_location``.
    """
    pcd = to_o3d(cloud)
    pcd.estimate_normals(
        search_param=o3d.geometry.KDTreeSearchParamKNN(knn=k)
    )
    pcd.orient_normals_towards_camera_location(camera_location=np.asarray(camera_location, dtype=np.float64))

    return PointCloud(cloud.points, colors=cloud.colors, normals=np.asarray(pcd.normals))
