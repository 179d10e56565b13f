"""Tests for the Lie group maps and the Transform value type."""

import numpy as np
import pytest

from icpreg import Transform, create_transformation_matrix
from icpreg.transforms import hat, se3_exp, se3_log, sim3_exp, sim3_log, so3_exp, so3_log


@pytest.mark.parametrize("omega", [
    [0.0, 0.0, 0.0],
    [1e-7, -2e-7, 0.0],
    [0.1, -0.2, 0.3],
    [0.0, 0.0, np.pi - 1e-8],
    [2.0, 0.5, -1.0],
])
def test_so3_log_inverts_exp(omega):
    R = so3_exp(omega)

    assert np.allclose(R @ R.T, np.eye(3))
    assert np.linalg.det(R) == pytest.approx(1.0)
    assert np.allclose(so3_exp(so3_log(R)), R, atol=1e-9)


def test_hat_is_cross_product():
    a, b = np.array([1.0, 2.0, 3.0]), np.array([-0.5, 0.2, 4.0])
    assert np.allclose(hat(a) @ b, np.cross(a, b))


@pytest.mark.parametrize("twist", [
    [0.0, 0.0, 0.0, 0.0, 0.0, 0.0],
    [0.1, -0.3, 0.2, 1e-8, 0.0, 0.0],
    [1.0, 2.0, -0.5, 0.3, -0.2, 0.8],
])
def test_se3_log_inverts_exp(twist):
    assert np.allclose(se3_log(se3_exp(twist)), twist, atol=1e-9)


@pytest.mark.parametrize("twist", [
    [0.1, -0.3, 0.2, 0.0, 0.0, 0.0, 0.0],
    [0.1, -0.3, 0.2, 0.0, 0.0, 0.0, 0.2],
    [0.1, -0.3, 0.2, 1e-9, 0.0, 0.0, 1e-9],
    [1.0, 2.0, -0.5, 0.3, -0.2, 0.8, -0.4],
])
def test_sim3_log_inverts_exp(twist):
    assert np.allclose(sim3_log(sim3_exp(twist)), twist, atol=1e-8)


def test_sim3_exp_with_zero_scale_matches_se3():
    twist = [0.4, -0.1, 0.2, 0.3, 0.1, -0.2]
    assert np.allclose(sim3_exp(twist + [0.0]), se3_exp(twist))


def test_transform_keeps_matrix_consistent_with_twist():
    transform = Transform([0.1, 0.2, 0.3, 0.01, -0.02, 0.03])
    transform.update([0.05, 0.0, -0.01, 0.0, 0.02, 0.0])

    assert np.allclose(transform.matrix, se3_exp(transform.twist))
    assert transform.scale == 1.0


def test_update_composes_on_the_group():
    start = Transform([0.1, 0.2, 0.3, 0.1, -0.2, 0.3])
    delta = np.array([0.05, 0.0, -0.01, 0.2, 0.02, -0.1])
    expected = se3_exp(delta) @ start.matrix

    start.update(delta)

    assert np.allclose(start.matrix, expected)
    # Composition on the group is not the sum of the twists
    assert not np.allclose(start.twist, np.array([0.1, 0.2, 0.3, 0.1, -0.2, 0.3]) + delta)


def test_similarity_transform_scale():
    transform = Transform([0.0, 0.0, 0.0, 0.0, 0.0, 0.0, np.log(2.0)])

    assert transform.is_similarity
    assert transform.scale == pytest.approx(2.0)
    assert np.allclose(transform.apply([[1.0, 0.0, 0.0]]), [[2.0, 0.0, 0.0]])
    assert np.allclose(transform.rotation, np.eye(3))


def test_rotation_and_translation_of_a_matrix():
    matrix = create_transformation_matrix(0.3, -0.2, 0.1, 0.1, 0.2, -0.1)
    matrix[:3, :3] *= 1.5
    transform = Transform.from_matrix(matrix, similarity=True)

    assert np.allclose(transform.translation, [0.3, -0.2, 0.1])
    assert np.allclose(transform.rotation, matrix[:3, :3] / 1.5)
    assert transform.scale == pytest.approx(1.5)

    transform.translation[0] = 9.0
    assert transform.translation[0] == pytest.approx(0.3)


@pytest.mark.parametrize("twist", [
    [0.1, 0.2, 0.3, 0.01, -0.02, 0.03],
    [0.1, 0.2, 0.3, 0.01, -0.02, 0.03, 0.1],
])
def test_inverse(twist):
    transform = Transform(twist)
    inverse = transform.inverse()

    assert np.allclose(inverse.matrix @ transform.matrix, np.eye(4))
    assert inverse.scale == pytest.approx(1.0 / transform.scale)


def test_matrix_cannot_be_edited_through_properties():
    transform = Transform(np.zeros(6))
    matrix = transform.matrix
    matrix[0, 3] = 5.0

    assert transform.matrix[0, 3] == 0.0


def test_from_matrix_round_trip():
    matrix = create_transformation_matrix(0.0, 0.05, 0.0, np.pi / 200, np.pi / 200, 0.0)
    assert np.allclose(Transform.from_matrix(matrix).matrix, matrix)


def test_rejects_wrong_twist_sizes():
    with pytest.raises(ValueError):
        Transform(np.zeros(5))
    with pytest.raises(ValueError):
        Transform(np.zeros(6)).update(np.zeros(7))


def test_create_transformation_matrix_rotation_order():
    matrix = create_transformation_matrix(1.0, 2.0, 3.0, 0.0, 0.0, np.pi / 2)

    assert np.allclose(matrix[:3, :3] @ [1.0, 0.0, 0.0], [0.0, 1.0, 0.0])
    assert np.allclose(matrix[:3, 3], [1.0, 2.0, 3.0])
