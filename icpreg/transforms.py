"""Transformation utilities for point cloud registration.

Rigid (SE3) and similarity (Sim3) transforms are parametrized by a twist:
``[v, omega]`` for SE3 and ``[v, omega, sigma]`` for Sim3, where ``v`` is the
translational part, ``omega`` the rotation vector and ``sigma`` the log of the
scale. ``Transform`` keeps the twist and the 4x4 matrix in sync.
"""

import numpy as np

# Below this angle (or log-scale) the closed forms are replaced by their Taylor series
_SMALL = 1e-4


def hat(omega):
    """Skew-symmetric matrix such that ``hat(a) @ b == cross(a, b)``."""
    wx, wy, wz = omega
    return np.array([
        [0.0, -wz, wy],
        [wz, 0.0, -wx],
        [-wy, wx, 0.0],
    ])


def vee(matrix):
    return np.array([matrix[2, 1], matrix[0, 2], matrix[1, 0]])


def so3_exp(omega):
    omega = np.asarray(omega, dtype=np.float64)
    theta = np.linalg.norm(omega)
    W = hat(omega)
    if theta < _SMALL:
        return np.eye(3) + W + 0.5 * W @ W
    return (np.eye(3)
            + np.sin(theta) / theta * W
            + (1.0 - np.cos(theta)) / theta**2 * W @ W)


def so3_log(R):
    antisym = vee(R - R.T)
    sin_theta = 0.5 * np.linalg.norm(antisym)
    cos_theta = 0.5 * (np.trace(R) - 1.0)
    theta = np.arctan2(sin_theta, cos_theta)
    if theta < _SMALL:
        return 0.5 * (1.0 + theta**2 / 6.0) * antisym
    if np.pi - theta < 1e-6:
        # Near pi the antisymmetric part vanishes, read the axis from R + I
        B = 0.25 * (R + R.T) + 0.5 * np.eye(3)
        k = int(np.argmax(np.diag(B)))
        axis = B[:, k] / np.linalg.norm(B[:, k])
        if axis @ antisym < 0:
            axis = -axis
        return theta * axis
    return theta / (2.0 * sin_theta) * antisym


def _se3_left_jacobian(omega):
    theta = np.linalg.norm(omega)
    W = hat(omega)
    if theta < _SMALL:
        return np.eye(3) + 0.5 * W + W @ W / 6.0
    return (np.eye(3)
            + (1.0 - np.cos(theta)) / theta**2 * W
            + (theta - np.sin(theta)) / theta**3 * W @ W)


def _sim3_left_jacobian(omega, sigma):
    """Matrix mapping ``v`` to the translation of ``exp([v, omega, sigma])``."""
    theta = np.linalg.norm(omega)
    W = hat(omega)
    C = 1.0 if sigma == 0.0 else np.expm1(sigma) / sigma
    if theta < _SMALL:
        if abs(sigma) < _SMALL:
            A = 0.5 + sigma / 3.0 + sigma**2 / 8.0
            B = 1.0 / 6.0 + sigma / 8.0 + sigma**2 / 20.0
        else:
            scale = np.exp(sigma)
            sigma_sq = sigma * sigma
            A = ((sigma - 1.0) * scale + 1.0) / sigma_sq
            B = (0.5 * scale * sigma_sq + scale - 1.0 - sigma * scale) / (sigma_sq * sigma)
    else:
        scale = np.exp(sigma)
        a = scale * np.sin(theta)
        b = scale * np.cos(theta)
        c = theta**2 + sigma**2
        A = (a * sigma + (1.0 - b) * theta) / (theta * c)
        B = (C - ((b - 1.0) * sigma + a * theta) / c) / theta**2
    return A * W + B * W @ W + C * np.eye(3)


def se3_exp(twist):
    twist = np.asarray(twist, dtype=np.float64)
    v, omega = twist[:3], twist[3:6]
    matrix = np.eye(4)
    matrix[:3, :3] = so3_exp(omega)
    matrix[:3, 3] = _se3_left_jacobian(omega) @ v
    return matrix


def se3_log(matrix):
    omega = so3_log(matrix[:3, :3])
    v = np.linalg.solve(_se3_left_jacobian(omega), matrix[:3, 3])
    return np.concatenate([v, omega])


def sim3_exp(twist):
    twist = np.asarray(twist, dtype=np.float64)
    v, omega, sigma = twist[:3], twist[3:6], float(twist[6])
    matrix = np.eye(4)
    matrix[:3, :3] = np.exp(sigma) * so3_exp(omega)
    matrix[:3, 3] = _sim3_left_jacobian(omega, sigma) @ v
    return matrix


def sim3_log(matrix):
    linear = matrix[:3, :3]
    scale = np.cbrt(np.linalg.det(linear))
    sigma = np.log(scale)
    omega = so3_log(linear / scale)
    v = np.linalg.solve(_sim3_left_jacobian(omega, sigma), matrix[:3, 3])
    return np.concatenate([v, omega, [sigma]])


def create_transformation_matrix(tx, ty, tz, rx, ry, rz):
    """
    Build a 4x4 rigid transformation matrix.

    The rotation is ``Rx(rx) @ Ry(ry) @ Rz(rz)`` (radians), applied before the
    translation ``(tx, ty, tz)``.
    """
    R = so3_exp([rx, 0.0, 0.0]) @ so3_exp([0.0, ry, 0.0]) @ so3_exp([0.0, 0.0, rz])
    matrix = np.eye(4)
    matrix[:3, :3] = R
    matrix[:3, 3] = [tx, ty, tz]
    return matrix


def apply_transformation(points, transformation):

    R = transformation[:3, :3]
    t = transformation[:3, 3]
    return points @ R.T + t


class Transform:
    """
    Rigid or similarity transform held as a twist and its exponential.

    The matrix and scale are derived from the twist and are never edited
    directly. ``update`` is the only operation that changes a transform.
    """

    def __init__(self, twist):
        twist = np.array(twist, dtype=np.float64).ravel()
        if twist.size not in (6, 7):
            raise ValueError(f"twist must have 6 (SE3) or 7 (Sim3) components, got {twist.size}")
        self._twist = twist
        self._refresh()

    @classmethod
    def identity(cls, dof=6):
        return cls(np.zeros(dof))

    @classmethod
    def from_matrix(cls, matrix, similarity=False):
        """Build a transform from a 4x4 matrix; the linear block is ``s * R`` for Sim3."""
        matrix = np.asarray(matrix, dtype=np.float64)
        if matrix.shape != (4, 4):
            raise ValueError(f"expected a 4x4 matrix, got {matrix.shape}")
        if similarity:
            return cls(sim3_log(matrix))
        return cls(se3_log(matrix))

    def _refresh(self):
        if self.is_similarity:
            self._matrix = sim3_exp(self._twist)
            self._scale = float(np.exp(self._twist[6]))
        else:
            self._matrix = se3_exp(self._twist)
            self._scale = 1.0

    @property
    def dof(self):
        return self._twist.size

    @property
    def is_similarity(self):
        return self._twist.size == 7

    @property
    def twist(self):
        return self._twist.copy()

    @property
    def matrix(self):
        return self._matrix.copy()

    @property
    def scale(self):
        return self._scale

    @property
    def rotation(self):
        return self._matrix[:3, :3] / self._scale

    @property
    def translation(self):
        return self._matrix[:3, 3].copy()

    def update(self, delta):
        """Left-compose with ``exp(delta)``: ``self <- exp(delta) * self``."""
        delta = np.asarray(delta, dtype=np.float64).ravel()
        if delta.size != self.dof:
            raise ValueError(f"increment has {delta.size} components, expected {self.dof}")
        if self.is_similarity:
            self._twist = sim3_log(sim3_exp(delta) @ self._matrix)
        else:
            self._twist = se3_log(se3_exp(delta) @ self._matrix)
        self._refresh()

    def inverse(self):
        linear_inv = self.rotation.T / self._scale
        matrix = np.eye(4)
        matrix[:3, :3] = linear_inv
        matrix[:3, 3] = -linear_inv @ self._matrix[:3, 3]
        return Transform.from_matrix(matrix, similarity=self.is_similarity)

    def apply(self, points):
        return apply_transformation(np.asarray(points, dtype=np.float64), self._matrix)

    def copy(self):
        return Transform(self._twist)

    def __repr__(self):
        kind = "Sim3" if self.is_similarity else "SE3"
        return f"Transform({kind}, twist={np.array2string(self._twist, precision=6)})"
