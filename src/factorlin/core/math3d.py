"""
SO(2), SE(2), SO(3) and SE(3) maps for factorlin.

This module implements the Lie-group mathematics behind the manifold
variable kinds in ``slam.manifold``:

    • SO(2) / SE(2) exponential & logarithm maps (planar rotations, poses)
    • SO(3) exponential & logarithm maps
    • SE(3) exponential & logarithm maps
    • The SO(3) left Jacobian used to couple rotation and translation

All functions are written in JAX and support:
    - JIT compilation
    - Automatic differentiation (``jax.jacfwd`` is how factors linearize)
    - Numerically stable behavior near zero-rotation limits

Key Functions
-------------
so3_exp(w)
    Maps a 3-vector (axis-angle) to a 3×3 rotation matrix.

so3_log(R)
    Maps a rotation matrix back to its axis-angle representation.

se3_exp(xi)
    Maps a 6-vector twist ξ = (v, ω) to a rotation and a translation.

se3_log(R, t)
    Inverse of se3_exp.

se2_exp(xi) / se2_log(p)
    Same pair for planar poses (x, y, θ) with twist (vx, vy, ω).

Utilities
---------
hat(ω)
    Converts a 3-vector to its skew-symmetric matrix.

vee(Ω)
    Converts a 3×3 skew matrix back into a 3-vector.

Notes
-----
Small-angle branches are selected with ``jnp.where`` on *guarded* inputs
(the "double where" pattern): the unused branch is always evaluated on a
safe angle, so its derivative cannot leak NaNs into the Jacobian at the
identity. That matters because every linearization differentiates through
these maps at exactly δ = 0.
"""

from __future__ import annotations

from factorlin.jax_init import jnp

# Angles below this (squared) use Taylor expansions.
_SMALL_ANGLE_SQ = 1e-10
# Within this distance of pi, so3_log reads the axis from the symmetric part of R.
_NEAR_PI = 1e-3


def wrap_angle(theta: jnp.ndarray) -> jnp.ndarray:
    """Map an angle to (-pi, pi]."""
    return jnp.arctan2(jnp.sin(theta), jnp.cos(theta))


def rot2_matrix(theta: jnp.ndarray) -> jnp.ndarray:
    c, s = jnp.cos(theta), jnp.sin(theta)
    return jnp.array([[c, -s], [s, c]])


def _se2_v(omega: jnp.ndarray) -> jnp.ndarray:
    """V(ω) such that the translation of Exp(v, ω) is V(ω) v."""
    theta_sq = omega * omega
    small = theta_sq < _SMALL_ANGLE_SQ
    safe = jnp.where(small, 1.0, omega)
    a = jnp.where(small, 1.0 - theta_sq / 6.0, jnp.sin(safe) / safe)
    b = jnp.where(small, omega / 2.0 - omega * theta_sq / 24.0, (1.0 - jnp.cos(safe)) / safe)
    return jnp.array([[a, -b], [b, a]])


def se2_exp(xi: jnp.ndarray) -> jnp.ndarray:
    """
    Exponential map se(2) -> SE(2).

    xi = [vx, vy, ω]; returns the pose [x, y, θ].
    """
    xi = jnp.asarray(xi)
    v = xi[:2]
    omega = xi[2]
    t = _se2_v(omega) @ v
    return jnp.concatenate([t, jnp.reshape(wrap_angle(omega), (1,))])


def se2_log(p: jnp.ndarray) -> jnp.ndarray:
    """Inverse of :func:`se2_exp` for θ in (-pi, pi]."""
    p = jnp.asarray(p)
    omega = wrap_angle(p[2])
    v = jnp.linalg.solve(_se2_v(omega), p[:2])
    return jnp.concatenate([v, jnp.reshape(omega, (1,))])


def hat(v: jnp.ndarray) -> jnp.ndarray:
    """so(3) hat operator: R^3 -> 3x3 skew-symmetric matrix."""
    x, y, z = v[0], v[1], v[2]
    zero = jnp.zeros_like(x)
    return jnp.array(
        [
            [zero, -z, y],
            [z, zero, -x],
            [-y, x, zero],
        ]
    )


def vee(R: jnp.ndarray) -> jnp.ndarray:
    """
    vee: so(3) -> R^3, inverse of hat.
    Applied to a rotation matrix it returns sin(θ)·axis.
    """
    return jnp.array([
        R[2, 1] - R[1, 2],
        R[0, 2] - R[2, 0],
        R[1, 0] - R[0, 1],
    ]) / 2.0


def _so3_coefficients(w: jnp.ndarray):
    """
    Rodrigues coefficients, Taylor-expanded near zero:

        A = sin θ / θ,  B = (1 - cos θ) / θ²,  C = (θ - sin θ) / θ³
    """
    theta_sq = jnp.dot(w, w)
    small = theta_sq < _SMALL_ANGLE_SQ
    theta = jnp.sqrt(jnp.where(small, 1.0, theta_sq))
    theta_safe_sq = theta * theta
    a = jnp.where(small, 1.0 - theta_sq / 6.0, jnp.sin(theta) / theta)
    b = jnp.where(small, 0.5 - theta_sq / 24.0, (1.0 - jnp.cos(theta)) / theta_safe_sq)
    c = jnp.where(small, 1.0 / 6.0 - theta_sq / 120.0, (theta - jnp.sin(theta)) / (theta_safe_sq * theta))
    return a, b, c


def so3_exp(w: jnp.ndarray) -> jnp.ndarray:
    """
    Exponential map from so(3) (rotation vector) to SO(3).

    Uses Rodrigues' formula with a Taylor fallback for small angles.
    """
    w = jnp.asarray(w)
    a, b, _ = _so3_coefficients(w)
    W = hat(w)
    return jnp.eye(3) + a * W + b * (W @ W)


def so3_left_jacobian(w: jnp.ndarray) -> jnp.ndarray:
    """Left Jacobian of SO(3): V = I + B W + C W²."""
    w = jnp.asarray(w)
    _, b, c = _so3_coefficients(w)
    W = hat(w)
    return jnp.eye(3) + b * W + c * (W @ W)


def _so3_log_near_pi(R: jnp.ndarray, cos_theta: jnp.ndarray) -> jnp.ndarray:
    # Symmetric part: (R + Rᵀ)/2 = cos θ I + (1 - cos θ) a aᵀ.
    S = 0.5 * (R + R.T)
    aaT = (S - cos_theta * jnp.eye(3)) / (1.0 - cos_theta)
    d = jnp.diagonal(aaT)
    k = jnp.argmax(d)
    axis = aaT[:, k] / jnp.sqrt(jnp.maximum(d[k], 1e-12))
    axis = axis / jnp.linalg.norm(axis)
    # vee(R) = sin θ a resolves the sign and, with cos θ, the angle.
    s = vee(R)
    sign = jnp.where(jnp.dot(axis, s) < 0.0, -1.0, 1.0)
    theta = jnp.arctan2(jnp.abs(jnp.dot(axis, s)), cos_theta)
    return sign * theta * axis


def so3_log(R: jnp.ndarray) -> jnp.ndarray:
    """
    Numerically stable logarithm map for SO(3).

    Handles:
      - small angles via the Taylor expansion of θ / sin θ
      - angles near π via the symmetric part of R
      - trace slightly outside [-1, 3] via clamping

    Returns w in R^3 such that Exp(w) ~ R.
    """
    R = jnp.asarray(R)
    cos_theta = jnp.clip((jnp.trace(R) - 1.0) / 2.0, -1.0, 1.0)
    small = cos_theta > 1.0 - _SMALL_ANGLE_SQ / 2.0
    near_pi = cos_theta < jnp.cos(jnp.pi - _NEAR_PI)

    # Guarded angle for the general branch (arccos is singular at ±1).
    theta_general = jnp.arccos(jnp.where(small | near_pi, 0.0, cos_theta))
    s = vee(R)
    general = (theta_general / jnp.sin(theta_general)) * s

    # θ / sin θ ≈ 1 + θ²/6 with θ² ≈ |s|² for tiny angles.
    small_case = (1.0 + jnp.dot(s, s) / 6.0) * s

    pi_case = _so3_log_near_pi(R, jnp.where(near_pi, cos_theta, -0.5))

    return jnp.where(small, small_case, jnp.where(near_pi, pi_case, general))


def se3_exp(xi: jnp.ndarray) -> tuple[jnp.ndarray, jnp.ndarray]:
    """
    Exponential map from se(3) -> SE(3).

    xi = [v_x, v_y, v_z, w_x, w_y, w_z]
      - v: translational part
      - w: rotation vector (axis-angle)

    Returns (R, t) with

        R = Exp(w),   t = V(w) v

    where V is the SO(3) left Jacobian.
    """
    xi = jnp.asarray(xi)
    v = xi[:3]
    w = xi[3:]
    R = so3_exp(w)
    t = so3_left_jacobian(w) @ v
    return R, t


def se3_log(R: jnp.ndarray, t: jnp.ndarray) -> jnp.ndarray:
    """Inverse of :func:`se3_exp`: returns [v, w]."""
    w = so3_log(R)
    v = jnp.linalg.solve(so3_left_jacobian(w), jnp.asarray(t))
    return jnp.concatenate([v, w])
