# Copyright (c) 2025.
# This file is part of factorlin, released under the MIT License.
"""
Simulated 2D measurement models on ``Point2`` variables.

A minimal planar SLAM vocabulary where robot poses ``x`` and landmarks
``l`` are both 2D points:

    Prior(z, model, i)           r = x_i - z
    Odometry(z, model, i, j)     r = (x_j - x_i) - z
    Measurement(z, model, i, j)  r = (l_j - x_i) - z

Keys come from ``PoseKey``/``PointKey`` so values are checked to be
``Point2`` on insertion.
"""

from __future__ import annotations

from typing import Any

from factorlin.core.keys import typed_key
from factorlin.jax_init import jnp
from factorlin.linear.noise_model import NoiseModel
from factorlin.nonlinear.factor import NoiseModelFactor

from .manifold import Point2

PoseKey = typed_key(Point2, "x")
PointKey = typed_key(Point2, "l")


def prior(x: Point2) -> jnp.ndarray:
    return x.vector


def odo(x1: Point2, x2: Point2) -> jnp.ndarray:
    return x2.vector - x1.vector


def mea(x: Point2, l: Point2) -> jnp.ndarray:
    return l.vector - x.vector


class Prior(NoiseModelFactor):
    def __init__(self, z: Point2, noise_model: NoiseModel, i: int) -> None:
        super().__init__(noise_model, (PoseKey(i),))
        self.z = z

    def evaluate_error(self, x: Point2) -> jnp.ndarray:
        return prior(x) - self.z.vector

    def measurement(self) -> Any:
        return self.z


class Odometry(NoiseModelFactor):
    def __init__(self, z: Point2, noise_model: NoiseModel, i1: int, i2: int) -> None:
        super().__init__(noise_model, (PoseKey(i1), PoseKey(i2)))
        self.z = z

    def evaluate_error(self, x1: Point2, x2: Point2) -> jnp.ndarray:
        return odo(x1, x2) - self.z.vector

    def measurement(self) -> Any:
        return self.z


class Measurement(NoiseModelFactor):
    def __init__(self, z: Point2, noise_model: NoiseModel, i: int, j: int) -> None:
        super().__init__(noise_model, (PoseKey(i), PointKey(j)))
        self.z = z

    def evaluate_error(self, x: Point2, l: Point2) -> jnp.ndarray:
        return mea(x, l) - self.z.vector

    def measurement(self) -> Any:
        return self.z
