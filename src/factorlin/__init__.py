# Copyright (c) 2025.
# This file is part of factorlin, released under the MIT License.
"""
factorlin: linearization of nonlinear factor graphs over manifolds.

Given a ``NonlinearFactorGraph`` and the current ``Values``, produce the
whitened ``GaussianFactorGraph`` an external sparse solver consumes to
compute the next step:

    ordering = values.ordering_arbitrary()
    linear = graph.linearize(values, ordering)
    A, b = linear.jacobian(ordering)

Subpackages
-----------
core        keys, errors, Lie-group maps, Values, Ordering
slam        manifold variable kinds and measurement factors
linear      noise models, VectorValues, JacobianFactor, GaussianFactorGraph
nonlinear   NonlinearFactor / NoiseModelFactor and NonlinearFactorGraph
"""

from factorlin.jax_init import jax, jnp  # noqa: F401  (enables float64 first)

from factorlin.core.errors import (
    DimensionMismatch,
    DuplicateVariable,
    EvaluationFailure,
    FactorGraphError,
    InvalidNoiseModel,
    LinearizationFailure,
    UnknownVariable,
)
from factorlin.core.keys import Symbol, TypedSymbol, symbol, typed_key
from factorlin.core.ordering import Ordering
from factorlin.linear.vector_values import VectorValues
from factorlin.core.values import Values
from factorlin.linear.noise_model import (
    Constrained,
    Diagonal,
    Gaussian,
    Isotropic,
    NoiseModel,
    Unit,
)
from factorlin.linear.jacobian_factor import JacobianFactor
from factorlin.linear.gaussian_factor_graph import GaussianFactorGraph
from factorlin.slam.manifold import (
    LieGroup,
    LieScalar,
    LieVector,
    Manifold,
    Point2,
    Point3,
    Pose2,
    Pose3,
    Rot2,
    Rot3,
)
from factorlin.config import LinearizationConfig
from factorlin.nonlinear.factor import NoiseModelFactor, NonlinearFactor, ResidualFactor
from factorlin.nonlinear.factor_graph import NonlinearFactorGraph
from factorlin.slam.factors import BearingFactor, BetweenFactor, PriorFactor, RangeFactor

__version__ = "0.1.0"

__all__ = [
    "BearingFactor",
    "BetweenFactor",
    "Constrained",
    "Diagonal",
    "DimensionMismatch",
    "DuplicateVariable",
    "EvaluationFailure",
    "FactorGraphError",
    "Gaussian",
    "GaussianFactorGraph",
    "InvalidNoiseModel",
    "Isotropic",
    "JacobianFactor",
    "LieGroup",
    "LieScalar",
    "LieVector",
    "LinearizationConfig",
    "LinearizationFailure",
    "Manifold",
    "NoiseModel",
    "NoiseModelFactor",
    "NonlinearFactor",
    "NonlinearFactorGraph",
    "Ordering",
    "Point2",
    "Point3",
    "Pose2",
    "Pose3",
    "PriorFactor",
    "RangeFactor",
    "ResidualFactor",
    "Rot2",
    "Rot3",
    "Symbol",
    "TypedSymbol",
    "UnknownVariable",
    "Unit",
    "Values",
    "VectorValues",
    "symbol",
    "typed_key",
]
