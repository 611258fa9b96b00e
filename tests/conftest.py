from __future__ import annotations

import jax.numpy as jnp
import pytest

from factorlin import (
    GaussianFactorGraph,
    Isotropic,
    JacobianFactor,
    NonlinearFactorGraph,
    Point2,
    Values,
)
from factorlin.slam import simulated2d
from factorlin.slam.simulated2d import PointKey, PoseKey


@pytest.fixture
def sigma0_1():
    return Isotropic.sigma(2, 0.1)


@pytest.fixture
def sigma0_2():
    return Isotropic.sigma(2, 0.2)


@pytest.fixture
def small_graph(sigma0_1, sigma0_2):
    """
    Planar example with two poses and one landmark:

        prior        x1 ≈ (0, 0)
        odometry     x2 - x1 ≈ (1.5, 0)
        measurement  l1 - x1 ≈ (0, -1)
        measurement  l1 - x2 ≈ (-1.5, -1)
    """
    graph = NonlinearFactorGraph()
    graph.push_back(simulated2d.Prior(Point2(0.0, 0.0), sigma0_1, 1))
    graph.push_back(simulated2d.Odometry(Point2(1.5, 0.0), sigma0_1, 1, 2))
    graph.push_back(simulated2d.Measurement(Point2(0.0, -1.0), sigma0_2, 1, 1))
    graph.push_back(simulated2d.Measurement(Point2(-1.5, -1.0), sigma0_2, 2, 1))
    return graph


@pytest.fixture
def noisy_values():
    values = Values()
    values.insert(PoseKey(1), Point2(0.1, 0.1))
    values.insert(PoseKey(2), Point2(1.4, 0.2))
    values.insert(PointKey(1), Point2(0.1, -1.1))
    return values


@pytest.fixture
def expected_linear():
    """Whitened linearization of ``small_graph`` at ``noisy_values`` (l1=0, x1=1, x2=2)."""
    I2 = jnp.eye(2)
    return GaussianFactorGraph([
        JacobianFactor([(1, 10.0 * I2)], [-1.0, -1.0]),
        JacobianFactor([(1, -10.0 * I2), (2, 10.0 * I2)], [2.0, -1.0]),
        JacobianFactor([(1, -5.0 * I2), (0, 5.0 * I2)], [0.0, 1.0]),
        JacobianFactor([(2, -5.0 * I2), (0, 5.0 * I2)], [-1.0, 1.5]),
    ])
