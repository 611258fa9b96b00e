from __future__ import annotations

import jax
import jax.numpy as jnp
import pytest

from factorlin.core.math3d import hat, so3_exp, so3_log, vee


def test_so3_log_exp_roundtrip_small_angle():
    w = jnp.array([0.1, -0.05, 0.02])
    R = so3_exp(w)
    w_est = so3_log(R)
    assert jnp.all(jnp.isfinite(w_est))
    assert jnp.allclose(w_est, w, atol=1e-12)


def test_so3_log_exp_roundtrip_large_angle():
    w = jnp.array([1.2, -0.7, 2.0])
    assert jnp.allclose(so3_log(so3_exp(w)), w, atol=1e-10)


def test_so3_log_near_pi():
    axis = jnp.array([1.0, 2.0, -2.0]) / 3.0
    w = (jnp.pi - 1e-4) * axis
    w_est = so3_log(so3_exp(w))
    assert jnp.all(jnp.isfinite(w_est))
    assert jnp.allclose(w_est, w, atol=1e-9)


def test_so3_log_no_nan_for_identity():
    R = jnp.eye(3)
    w = so3_log(R)
    assert jnp.all(jnp.isfinite(w))
    assert jnp.linalg.norm(w) < 1e-12


def test_so3_exp_is_a_rotation():
    R = so3_exp(jnp.array([0.3, 0.4, -0.5]))
    assert jnp.allclose(R.T @ R, jnp.eye(3), atol=1e-12)
    assert float(jnp.linalg.det(R)) == pytest.approx(1.0, abs=1e-12)


def test_hat_vee_inverse():
    w = jnp.array([0.3, -1.0, 2.0])
    assert jnp.allclose(vee(hat(w)), w)


def test_so3_exp_jacobian_finite_at_zero():
    J = jax.jacfwd(so3_exp)(jnp.zeros(3))
    assert jnp.all(jnp.isfinite(J))
    # d Exp(w) / dw at 0 is the generator basis.
    assert jnp.allclose(J[:, :, 0], hat(jnp.array([1.0, 0.0, 0.0])))


def test_so3_log_jacobian_finite_at_identity():
    J = jax.jacfwd(lambda w: so3_log(so3_exp(w)))(jnp.zeros(3))
    assert jnp.all(jnp.isfinite(J))
    assert jnp.allclose(J, jnp.eye(3), atol=1e-12)
