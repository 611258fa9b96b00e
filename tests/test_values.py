from __future__ import annotations

import jax.numpy as jnp
import pytest

from factorlin import (
    DimensionMismatch,
    DuplicateVariable,
    LieScalar,
    LieVector,
    Point2,
    Pose2,
    Symbol,
    UnknownVariable,
    Values,
    VectorValues,
)
from factorlin.slam.simulated2d import PointKey, PoseKey


def test_insert_and_at():
    values = Values()
    values.insert(Symbol("x", 1), Pose2(1.0, 2.0, 0.3))
    assert values.exists(Symbol("x", 1))
    assert Symbol("x", 1) in values
    assert values.at(Symbol("x", 1)).equals(Pose2(1.0, 2.0, 0.3))
    assert len(values) == 1
    assert values.dim() == 3


def test_insert_duplicate_raises():
    values = Values()
    values.insert(Symbol("x", 1), LieScalar(1.0))
    with pytest.raises(DuplicateVariable):
        values.insert(Symbol("x", 1), LieScalar(2.0))
    assert float(values.at(Symbol("x", 1))) == pytest.approx(1.0)


def test_at_unknown_raises():
    values = Values()
    with pytest.raises(UnknownVariable):
        values.at(Symbol("x", 7))
    # Also a KeyError for callers that only know builtins.
    with pytest.raises(KeyError):
        values[Symbol("x", 7)]


def test_update_replaces_existing_only():
    values = Values()
    k = Symbol("x", 1)
    with pytest.raises(UnknownVariable):
        values.update(k, LieScalar(1.0))
    values.insert(k, LieScalar(1.0))
    values.update(k, LieScalar(5.0))
    assert float(values.at(k)) == pytest.approx(5.0)


def test_update_with_different_dim_raises():
    values = Values()
    k = Symbol("v", 0)
    values.insert(k, LieVector([1.0, 2.0]))
    with pytest.raises(DimensionMismatch):
        values.update(k, LieVector([1.0, 2.0, 3.0]))


def test_erase():
    values = Values()
    values.insert(Symbol("x", 1), LieScalar(1.0))
    values.erase(Symbol("x", 1))
    assert len(values) == 0
    with pytest.raises(UnknownVariable):
        values.erase(Symbol("x", 1))


def test_typed_key_checks_kind():
    values = Values()
    with pytest.raises(DimensionMismatch):
        values.insert(PoseKey(1), Pose2())
    values.insert(PoseKey(1), Point2(0.0, 0.0))
    with pytest.raises(DimensionMismatch):
        values.update(PoseKey(1), LieScalar(0.0))


def test_raw_arrays_are_rejected():
    values = Values()
    with pytest.raises(DimensionMismatch, match="manifold"):
        values.insert(Symbol("x", 1), jnp.zeros(2))
    assert not values.exists(Symbol("x", 1))

    values.insert(Symbol("x", 1), Point2(0.0, 0.0))
    with pytest.raises(DimensionMismatch):
        values.update(Symbol("x", 1), [1.0, 2.0])
    assert values.at(Symbol("x", 1)).equals(Point2(0.0, 0.0))


def test_ordering_arbitrary_sorts_keys(noisy_values):
    ordering = noisy_values.ordering_arbitrary()
    assert ordering.keys() == [PointKey(1), PoseKey(1), PoseKey(2)]
    assert ordering[PointKey(1)] == 0
    assert ordering[PoseKey(2)] == 2
    assert ordering.dims() == [2, 2, 2]


def test_ordering_arbitrary_is_idempotent(noisy_values):
    assert noisy_values.ordering_arbitrary() == noisy_values.ordering_arbitrary()


def test_ordering_arbitrary_ignores_insertion_order():
    a, b = Values(), Values()
    for k in (Symbol("x", 2), Symbol("l", 1), Symbol("x", 1)):
        a.insert(k, LieScalar(0.0))
    for k in (Symbol("x", 1), Symbol("x", 2), Symbol("l", 1)):
        b.insert(k, LieScalar(0.0))
    assert a.ordering_arbitrary() == b.ordering_arbitrary()


def test_retract_returns_new_store(noisy_values):
    ordering = noisy_values.ordering_arbitrary()
    delta = VectorValues([[1.0, 0.0], [0.0, 1.0], [-1.0, -1.0]])

    moved = noisy_values.retract(delta, ordering)

    assert jnp.allclose(moved.at(PointKey(1)).vector, jnp.array([1.1, -1.1]))
    assert jnp.allclose(moved.at(PoseKey(1)).vector, jnp.array([0.1, 1.1]))
    assert jnp.allclose(moved.at(PoseKey(2)).vector, jnp.array([0.4, -0.8]))
    # The input store is untouched.
    assert jnp.allclose(noisy_values.at(PoseKey(1)).vector, jnp.array([0.1, 0.1]))


def test_local_coordinates_inverts_retract():
    values = Values()
    values.insert(Symbol("x", 1), Pose2(1.0, 2.0, 0.5))
    values.insert(Symbol("x", 2), Pose2(-1.0, 0.0, -2.5))
    ordering = values.ordering_arbitrary()
    delta = VectorValues([[0.1, 0.2, 0.3], [-0.3, 0.0, 0.4]])

    moved = values.retract(delta, ordering)
    assert values.local_coordinates(moved, ordering).equals(delta, tol=1e-10)


def test_copy_is_independent(noisy_values):
    copied = noisy_values.copy()
    copied.update(PoseKey(1), Point2(9.0, 9.0))
    assert noisy_values.at(PoseKey(1)).equals(Point2(0.1, 0.1))
    assert not copied.equals(noisy_values)
