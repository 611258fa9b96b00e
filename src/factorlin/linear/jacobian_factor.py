# Copyright (c) 2025.
# This file is part of factorlin, released under the MIT License.
"""
Linear (Jacobian) factor: the output of linearizing one nonlinear factor.

A ``JacobianFactor`` represents the whitened linear model

    Σᵢ Aᵢ δᵢ ≈ b

where each Aᵢ is an m × dᵢ block attached to the *block index* of a
variable in an ``Ordering`` and b has m entries. Blocks and b are already
whitened; the attached ``model`` is the post-whitening noise model
(``Unit`` for soft factors, ``Constrained.unit()`` when some rows are exact
constraints).

The factor is what an external sparse solver consumes; it never refers to
variable keys, only to block indices.
"""

from __future__ import annotations

from typing import Any, Iterable, List, Optional, Tuple

import numpy as np

from factorlin.core.errors import DimensionMismatch, UnknownVariable
from factorlin.core.ordering import Ordering
from factorlin.jax_init import jnp

from .noise_model import NoiseModel, Unit
from .vector_values import VectorValues

Term = Tuple[int, jnp.ndarray]


class JacobianFactor:
    """Whitened linear factor over a few block indices."""

    def __init__(
        self,
        terms: Iterable[Term],
        b: Any,
        model: Optional[NoiseModel] = None,
    ) -> None:
        b = jnp.reshape(jnp.asarray(b, dtype=jnp.float64), (-1,))
        rows = int(b.shape[0])

        keys: List[int] = []
        blocks: List[jnp.ndarray] = []
        for index, A in terms:
            A = jnp.asarray(A, dtype=jnp.float64)
            if A.ndim != 2 or A.shape[0] != rows:
                raise DimensionMismatch(
                    f"Block for index {index} has shape {tuple(A.shape)}, expected {rows} rows"
                )
            if index in keys:
                raise DimensionMismatch(f"Block index {index} appears twice in one factor")
            keys.append(int(index))
            blocks.append(A)

        if model is None:
            model = Unit.create(rows)
        if model.dim != rows:
            raise DimensionMismatch(f"Noise model has dim {model.dim}, factor has {rows} rows")

        self._keys = tuple(keys)
        self._blocks = tuple(blocks)
        self._b = b
        self._model = model

    # --- Accessors ---

    @property
    def keys(self) -> Tuple[int, ...]:
        return self._keys

    @property
    def model(self) -> NoiseModel:
        return self._model

    def size(self) -> int:
        return len(self._keys)

    def rows(self) -> int:
        return int(self._b.shape[0])

    def get_b(self) -> jnp.ndarray:
        return self._b

    def get_a(self, index: int) -> jnp.ndarray:
        """Block attached to block index ``index``."""
        try:
            return self._blocks[self._keys.index(index)]
        except ValueError:
            raise UnknownVariable(f"block {index}", "jacobian factor") from None

    def terms(self) -> List[Term]:
        return list(zip(self._keys, self._blocks))

    def is_constrained(self) -> bool:
        return self._model.is_constrained

    def check_dims(self, ordering: Ordering) -> None:
        """Every block must be as wide as its variable's tangent dimension."""
        for index, A in zip(self._keys, self._blocks):
            if A.shape[1] != ordering.dim(index):
                raise DimensionMismatch(
                    f"Block for '{ordering.key(index)}' has {A.shape[1]} columns, "
                    f"variable has dim {ordering.dim(index)}"
                )

    # --- Evaluation ---

    def error_vector(self, delta: VectorValues) -> jnp.ndarray:
        """A δ - b."""
        r = -self._b
        for index, A in zip(self._keys, self._blocks):
            d = delta[index]
            if d.shape[0] != A.shape[1]:
                raise DimensionMismatch(
                    f"Delta block {index} has size {d.shape[0]}, Jacobian block has {A.shape[1]} columns"
                )
            r = r + A @ d
        return r

    def error(self, delta: VectorValues) -> jnp.ndarray:
        """0.5 ‖A δ - b‖²."""
        e = self.error_vector(delta)
        return 0.5 * jnp.dot(e, e)

    def dense(self, ordering: Ordering) -> Tuple[np.ndarray, np.ndarray]:
        """(A, b) with A laid out over every column of ``ordering``."""
        self.check_dims(ordering)
        A = np.zeros((self.rows(), ordering.total_dim()))
        for index, block in zip(self._keys, self._blocks):
            start = ordering.offset(index)
            A[:, start:start + block.shape[1]] = np.asarray(block)
        return A, np.asarray(self._b)

    # --- Comparison ---

    def equals(self, other: Any, tol: float = 1e-9) -> bool:
        if not isinstance(other, JacobianFactor):
            return False
        if self._keys != other._keys or self.rows() != other.rows():
            return False
        if not self._model.equals(other._model, tol):
            return False
        if not bool(jnp.allclose(self._b, other._b, atol=tol, rtol=0.0)):
            return False
        return all(
            a.shape == o.shape and bool(jnp.allclose(a, o, atol=tol, rtol=0.0))
            for a, o in zip(self._blocks, other._blocks)
        )

    def identical(self, other: "JacobianFactor") -> bool:
        """Bit-for-bit equality of keys, blocks, b and model."""
        return (
            self._keys == other._keys
            and self._model.equals(other._model, 0.0)
            and np.array_equal(np.asarray(self._b), np.asarray(other._b))
            and all(
                np.array_equal(np.asarray(a), np.asarray(o))
                for a, o in zip(self._blocks, other._blocks)
            )
        )

    def __repr__(self) -> str:
        blocks = ", ".join(f"{i}: {tuple(A.shape)}" for i, A in zip(self._keys, self._blocks))
        return f"JacobianFactor([{blocks}], b={[float(v) for v in self._b]}, model={self._model!r})"

