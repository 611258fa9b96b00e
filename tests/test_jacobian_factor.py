from __future__ import annotations

import jax.numpy as jnp
import numpy as np
import pytest

from factorlin import (
    Constrained,
    DimensionMismatch,
    GaussianFactorGraph,
    JacobianFactor,
    Ordering,
    Symbol,
    Unit,
    UnknownVariable,
    VectorValues,
)


@pytest.fixture
def ordering():
    return Ordering([(Symbol("l", 1), 2), (Symbol("x", 1), 2), (Symbol("x", 2), 2)])


def test_construction_and_accessors():
    jf = JacobianFactor([(1, -10.0 * jnp.eye(2)), (2, 10.0 * jnp.eye(2))], [2.0, -1.0])
    assert jf.keys == (1, 2)
    assert jf.size() == 2
    assert jf.rows() == 2
    assert jf.model.equals(Unit.create(2))
    assert jnp.allclose(jf.get_a(2), 10.0 * jnp.eye(2))
    assert jnp.allclose(jf.get_b(), jnp.array([2.0, -1.0]))
    with pytest.raises(UnknownVariable):
        jf.get_a(0)


def test_construction_validates_shapes():
    with pytest.raises(DimensionMismatch):
        JacobianFactor([(0, jnp.eye(3))], [1.0, 2.0])
    with pytest.raises(DimensionMismatch):
        JacobianFactor([(0, jnp.eye(2)), (0, jnp.eye(2))], [1.0, 2.0])
    with pytest.raises(DimensionMismatch):
        JacobianFactor([(0, jnp.eye(2))], [1.0, 2.0], Unit.create(3))


def test_error_vector_and_error():
    jf = JacobianFactor([(0, 2.0 * jnp.eye(2))], [1.0, 1.0])
    delta = VectorValues([[1.0, 0.0]])
    assert jnp.allclose(jf.error_vector(delta), jnp.array([1.0, -1.0]))
    assert float(jf.error(delta)) == pytest.approx(1.0)


def test_check_dims(ordering):
    jf = JacobianFactor([(1, jnp.ones((2, 3)))], [0.0, 0.0])
    with pytest.raises(DimensionMismatch):
        jf.check_dims(ordering)


def test_dense_layout(ordering):
    jf = JacobianFactor([(2, 3.0 * jnp.eye(2)), (0, -jnp.eye(2))], [1.0, 2.0])
    A, b = jf.dense(ordering)
    expected = np.zeros((2, 6))
    expected[:, 4:6] = 3.0 * np.eye(2)
    expected[:, 0:2] = -np.eye(2)
    np.testing.assert_allclose(A, expected)
    np.testing.assert_allclose(b, [1.0, 2.0])


def test_equals_and_identical():
    a = JacobianFactor([(0, jnp.eye(2))], [1.0, 2.0])
    b = JacobianFactor([(0, jnp.eye(2) + 1e-12)], [1.0, 2.0])
    assert a.equals(b)
    assert not a.identical(b)
    assert a.identical(JacobianFactor([(0, jnp.eye(2))], [1.0, 2.0]))
    assert not a.equals(JacobianFactor([(1, jnp.eye(2))], [1.0, 2.0]))
    assert not a.equals(JacobianFactor([(0, jnp.eye(2))], [1.0, 2.0], Constrained.mixed_sigmas([1.0, 0.0])))


def test_gaussian_factor_graph_assembly(ordering):
    graph = GaussianFactorGraph([
        JacobianFactor([(1, 10.0 * jnp.eye(2))], [-1.0, -1.0]),
        JacobianFactor([(1, -jnp.eye(2)), (0, jnp.eye(2))], [0.0, 3.0], Constrained.mixed_sigmas([1.0, 0.0])),
    ])
    assert len(graph) == 2
    assert graph.keys() == {0, 1}
    assert graph.rows() == 4

    A, b = graph.jacobian(ordering)
    assert A.shape == (4, 6)
    np.testing.assert_allclose(b, [-1.0, -1.0, 0.0, 3.0])
    np.testing.assert_array_equal(graph.constrained_rows(), [False, False, False, True])

    delta = VectorValues.zero(ordering)
    # 0.5 (1 + 1) + 0.5 (0 + 9)
    assert float(graph.error(delta)) == pytest.approx(5.5)


def test_empty_graph_jacobian(ordering):
    A, b = GaussianFactorGraph().jacobian(ordering)
    assert A.shape == (0, 6)
    assert b.shape == (0,)
