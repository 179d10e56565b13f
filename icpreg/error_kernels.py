"""Error metrics minimized by the ICP engine.

Each kernel returns, for a batch of matched points, the residuals and their
Jacobians with respect to a left twist perturbation ``exp(delta) * T``
evaluated at the transformed source points. Kernels work on whole arrays so
the engine dispatches once per iteration rather than once per point.
"""

import numpy as np

from .exceptions import ConfigurationError
from .transforms import Transform


def skew_batch(points):
    """Stack of skew-symmetric matrices, one per row of ``points``."""
    points = np.asarray(points, dtype=np.float64)
    skews = np.zeros((points.shape[0], 3, 3))
    skews[:, 0, 1] = -points[:, 2]
    skews[:, 0, 2] = points[:, 1]
    skews[:, 1, 0] = points[:, 2]
    skews[:, 1, 2] = -points[:, 0]
    skews[:, 2, 0] = -points[:, 1]
    skews[:, 2, 1] = points[:, 0]
    return skews


class ErrorKernel:
    """Interface shared by the error metrics."""

    name = None
    #: Number of twist parameters (6 for SE3, 7 for Sim3)
    dof = 6
    #: Number of scalar residuals per correspondence
    residual_dim = 3
    requires_normals = False

    def make_transform(self, twist=None):
        if twist is None:
            return Transform.identity(self.dof)
        twist = np.asarray(twist, dtype=np.float64).ravel()
        if twist.size != self.dof:
            raise ConfigurationError(
                f"{self.name} expects a twist with {self.dof} components, got {twist.size}"
            )
        return Transform(twist)

    def check_normals(self, normals):
        if self.requires_normals and normals is None:
            raise ConfigurationError(f"{self.name} requires normals on the reference cloud")

    def residual(self, source, reference, transform, normals=None):
        """
        Residuals of ``transform`` applied to ``source`` against ``reference``.

        Args:
            source: Untransformed source points, shape (N, 3) or (3,)
            reference: Matched reference points, same shape as ``source``
            transform: Current ``Transform``
            normals: Reference normals (point-to-plane only)

        Returns:
            Array of shape (N, residual_dim)
        """
        working = transform.apply(np.atleast_2d(source))
        return self.residuals(working, np.atleast_2d(reference), self._normals(normals))

    def jacobian(self, source, reference, transform, normals=None):
        """Jacobians of ``residual`` w.r.t. the twist increment, shape (N, residual_dim, dof)."""
        working = transform.apply(np.atleast_2d(source))
        return self.jacobians(working, np.atleast_2d(reference), self._normals(normals))

    def linearize(self, working, reference, normals=None):
        """Residuals and Jacobians at already transformed points."""
        return (self.residuals(working, reference, normals),
                self.jacobians(working, reference, normals))

    def residuals(self, working, reference, normals=None):
        raise NotImplementedError

    def jacobians(self, working, reference, normals=None):
        raise NotImplementedError

    def _normals(self, normals):
        self.check_normals(normals)
        return None if normals is None else np.atleast_2d(normals)

    def __repr__(self):
        return f"{type(self).__name__}()"


class PointToPoint(ErrorKernel):
    """Euclidean difference between the transformed source and its match."""

    name = "point_to_point"

    def residuals(self, working, reference, normals=None):
        return working - reference

    def jacobians(self, working, reference, normals=None):
        J = np.zeros((working.shape[0], 3, self.dof))
        J[:, :, :3] = np.eye(3)
        J[:, :, 3:6] = -skew_batch(working)
        return J


class PointToPointSimilarity(PointToPoint):
    """Point-to-point error with an additional uniform scale parameter."""

    name = "point_to_point_similarity"
    dof = 7

    def jacobians(self, working, reference, normals=None):
        J = super().jacobians(working, reference, normals)
        J[:, :, 6] = working
        return J


class PointToPlane(ErrorKernel):
    """Distance of the transformed source along the normal of its match."""

    name = "point_to_plane"
    residual_dim = 1
    requires_normals = True

    def residuals(self, working, reference, normals=None):
        self.check_normals(normals)
        diffs = working - reference
        return np.einsum('ij,ij->i', diffs, normals)[:, np.newaxis]

    def jacobians(self, working, reference, normals=None):
        self.check_normals(normals)
        J = np.empty((working.shape[0], 1, self.dof))
        J[:, 0, :3] = normals
        J[:, 0, 3:] = np.cross(working, normals)
        return J


ERROR_KERNELS = {
    kernel.name: kernel
    for kernel in (PointToPoint, PointToPointSimilarity, PointToPlane)
}


def get_error_kernel(name='point_to_point'):
    """
    Get an error kernel by name.

    Args:
        name: One of 'point_to_point', 'point_to_point_similarity', 'point_to_plane'

    Returns:
        ErrorKernel instance
    """
    try:
        return ERROR_KERNELS[name]()
    except KeyError:
        raise ConfigurationError(
            f"unknown error metric {name!r}, expected one of {sorted(ERROR_KERNELS)}"
        ) from None
