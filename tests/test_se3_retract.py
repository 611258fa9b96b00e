from __future__ import annotations

import jax.numpy as jnp

from factorlin import Pose3, Rot3
from factorlin.core.math3d import se2_exp, se2_log, se3_exp, se3_log


def test_se3_retract_zero_delta_is_identity():
    pose = Pose3.identity()
    pose_new = pose.retract(jnp.zeros(6))
    assert pose_new.equals(pose, tol=1e-12)


def test_se3_retract_pure_translation():
    pose = Pose3.identity()
    delta = jnp.array([1.0, 0.0, 0.0, 0.0, 0.0, 0.0])

    pose_new = pose.retract(delta)
    assert jnp.allclose(pose_new.t, jnp.array([1.0, 0.0, 0.0]), atol=1e-12)
    assert jnp.allclose(pose_new.rotation.matrix, jnp.eye(3), atol=1e-12)


def test_se3_retract_translation_is_in_body_frame():
    """A forward step from a pose yawed by 90° moves along world +y."""
    pose = Pose3(Rot3.rz(jnp.pi / 2), jnp.array([1.0, 0.0, 0.0]))
    pose_new = pose.retract(jnp.array([1.0, 0.0, 0.0, 0.0, 0.0, 0.0]))
    assert jnp.allclose(pose_new.t, jnp.array([1.0, 1.0, 0.0]), atol=1e-12)


def test_se3_retract_matches_local_coordinates():
    """
    Applying a delta to a pose and asking for the local coordinates of
    the result gives the delta back.
    """
    delta = jnp.array([0.1, -0.05, 0.02, 0.01, 0.0, -0.02])
    pose0 = Pose3.from_twist(jnp.array([0.3, 0.2, -0.1, 0.5, -0.2, 0.9]))
    pose1 = pose0.retract(delta)

    xi_est = pose0.local_coordinates(pose1)
    assert jnp.allclose(xi_est, delta, atol=1e-10)


def test_se3_exp_log_roundtrip():
    xi = jnp.array([1.0, -2.0, 0.5, 0.4, 0.3, -1.1])
    R, t = se3_exp(xi)
    assert jnp.allclose(se3_log(R, t), xi, atol=1e-10)


def test_se2_exp_log_roundtrip():
    xi = jnp.array([0.7, -0.3, 1.2])
    assert jnp.allclose(se2_log(se2_exp(xi)), xi, atol=1e-12)
    # Pure translation when the angle is zero.
    assert jnp.allclose(se2_exp(jnp.array([1.0, 2.0, 0.0])), jnp.array([1.0, 2.0, 0.0]))
