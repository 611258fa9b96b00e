# Copyright (c) 2025.
# This file is part of factorlin, released under the MIT License.
"""
Measurement factors for factorlin.

Each class here is a ``NoiseModelFactor`` that only defines its residual
``evaluate_error(*values)``; linearization, whitening and error evaluation
come from ``nonlinear.factor``. Residuals follow the convention

    r = h(x) ⊖ z

i.e. the local coordinates of the prediction around the measurement (plain
``h(x) - z`` on vector spaces).

1. Priors
---------
    • ``PriorFactor``: anchors one variable of any kind to a known value,
          r = prior.local_coordinates(x)

2. Relative (odometry / loop-closure) factors
---------------------------------------------
    • ``BetweenFactor``: relative motion between two Lie-group variables,
          r = measured.local_coordinates(x₁.between(x₂))

3. Pose–landmark factors
------------------------
    • ``RangeFactor``: distance from a pose (Pose2/Pose3) to a point.
    • ``BearingFactor``: direction of a Point2 seen from a Pose2, as a Rot2.

The residuals are written with JAX so that ``jax.jacfwd`` can differentiate
them; they must not branch on array values in Python.
"""

from __future__ import annotations

from typing import Any, Hashable

from factorlin.jax_init import jnp
from factorlin.linear.noise_model import NoiseModel
from factorlin.nonlinear.factor import NoiseModelFactor

from .manifold import LieGroup, Manifold, Rot2


class PriorFactor(NoiseModelFactor):
    """Prior on a single variable."""

    def __init__(self, key: Hashable, prior: Manifold, noise_model: NoiseModel) -> None:
        super().__init__(noise_model, (key,))
        self.prior = prior

    def evaluate_error(self, x: Manifold) -> jnp.ndarray:
        return self.prior.local_coordinates(x)

    def measurement(self) -> Any:
        return self.prior


class BetweenFactor(NoiseModelFactor):
    """Relative measurement x₁⁻¹ ∘ x₂ ≈ measured."""

    def __init__(
        self,
        key1: Hashable,
        key2: Hashable,
        measured: LieGroup,
        noise_model: NoiseModel,
    ) -> None:
        super().__init__(noise_model, (key1, key2))
        self.measured = measured

    def evaluate_error(self, x1: LieGroup, x2: LieGroup) -> jnp.ndarray:
        return self.measured.local_coordinates(x1.between(x2))

    def measurement(self) -> Any:
        return self.measured


class RangeFactor(NoiseModelFactor):
    """Distance between a pose's origin and a point."""

    def __init__(
        self,
        pose_key: Hashable,
        point_key: Hashable,
        measured: float,
        noise_model: NoiseModel,
    ) -> None:
        super().__init__(noise_model, (pose_key, point_key))
        self.measured = jnp.asarray(measured, dtype=jnp.float64)

    def evaluate_error(self, pose: Any, point: Any) -> jnp.ndarray:
        return jnp.reshape(pose.range(point) - self.measured, (1,))

    def measurement(self) -> Any:
        return self.measured


class BearingFactor(NoiseModelFactor):
    """Bearing of a Point2 in the frame of a Pose2."""

    def __init__(
        self,
        pose_key: Hashable,
        point_key: Hashable,
        measured: Rot2,
        noise_model: NoiseModel,
    ) -> None:
        super().__init__(noise_model, (pose_key, point_key))
        self.measured = measured

    def evaluate_error(self, pose: Any, point: Any) -> jnp.ndarray:
        return self.measured.local_coordinates(pose.bearing(point))

    def measurement(self) -> Any:
        return self.measured
