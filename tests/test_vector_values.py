from __future__ import annotations

import jax.numpy as jnp
import pytest

from factorlin import DimensionMismatch, Ordering, Symbol, UnknownVariable, VectorValues


@pytest.fixture
def ordering():
    return Ordering([(Symbol("x", 1), 3), (Symbol("l", 1), 2)])


def test_zero_and_dims(ordering):
    zero = VectorValues.zero(ordering)
    assert zero.dims() == [3, 2]
    assert jnp.allclose(zero.vector(), jnp.zeros(5))


def test_from_vector_splits_by_offsets(ordering):
    vv = VectorValues.from_vector(jnp.arange(5.0), ordering)
    assert jnp.allclose(vv[0], jnp.array([0.0, 1.0, 2.0]))
    assert jnp.allclose(vv[1], jnp.array([3.0, 4.0]))
    assert jnp.allclose(vv.vector(), jnp.arange(5.0))
    with pytest.raises(DimensionMismatch):
        VectorValues.from_vector(jnp.arange(4.0), ordering)


def test_arithmetic():
    a = VectorValues([[1.0, 2.0], [3.0]])
    b = VectorValues([[0.5, 0.5], [1.0]])
    assert (a + b).equals(VectorValues([[1.5, 2.5], [4.0]]))
    assert (a - b).equals(VectorValues([[0.5, 1.5], [2.0]]))
    assert (2.0 * a).equals(VectorValues([[2.0, 4.0], [6.0]]))
    assert (-a).equals(VectorValues([[-1.0, -2.0], [-3.0]]))
    assert float(a.dot(b)) == pytest.approx(4.5)


def test_layout_mismatch_and_missing_block():
    a = VectorValues([[1.0, 2.0]])
    with pytest.raises(DimensionMismatch):
        a + VectorValues([[1.0, 2.0, 3.0]])
    with pytest.raises(UnknownVariable):
        a[1]
