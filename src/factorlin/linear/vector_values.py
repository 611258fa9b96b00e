# Copyright (c) 2025.
# This file is part of factorlin, released under the MIT License.
"""
Per-block tangent vectors (a step δ, a gradient, local coordinates).

Blocks are addressed by *block index*, i.e. the index an ``Ordering`` gives
a variable, which is how the linear side of the library refers to variables.
"""

from __future__ import annotations

from typing import Iterable, Iterator, List

from factorlin.core.errors import DimensionMismatch, UnknownVariable
from factorlin.core.ordering import Ordering
from factorlin.jax_init import jnp


class VectorValues:
    """Ordered list of 1-D blocks, one per block index."""

    def __init__(self, blocks: Iterable[jnp.ndarray] = ()) -> None:
        self._blocks: List[jnp.ndarray] = [
            jnp.reshape(jnp.asarray(b, dtype=jnp.float64), (-1,)) for b in blocks
        ]

    @classmethod
    def zero(cls, ordering: Ordering) -> "VectorValues":
        return cls(jnp.zeros(d) for d in ordering.dims())

    @classmethod
    def from_vector(cls, x: jnp.ndarray, ordering: Ordering) -> "VectorValues":
        """Split a flat vector into blocks laid out by ``ordering``."""
        x = jnp.reshape(jnp.asarray(x, dtype=jnp.float64), (-1,))
        if x.shape[0] != ordering.total_dim():
            raise DimensionMismatch(
                f"Flat vector has {x.shape[0]} entries, ordering needs {ordering.total_dim()}"
            )
        return cls(
            x[ordering.offset(i): ordering.offset(i) + ordering.dim(i)]
            for i in range(len(ordering))
        )

    def vector(self) -> jnp.ndarray:
        """Concatenate all blocks into one flat vector."""
        if not self._blocks:
            return jnp.zeros((0,))
        return jnp.concatenate(self._blocks)

    def __getitem__(self, index: int) -> jnp.ndarray:
        if not 0 <= index < len(self._blocks):
            raise UnknownVariable(f"block {index}", "vector values")
        return self._blocks[index]

    def __len__(self) -> int:
        return len(self._blocks)

    def __iter__(self) -> Iterator[jnp.ndarray]:
        return iter(self._blocks)

    def dims(self) -> List[int]:
        return [int(b.shape[0]) for b in self._blocks]

    # --- Arithmetic ---

    def _check_same_layout(self, other: "VectorValues") -> None:
        if self.dims() != other.dims():
            raise DimensionMismatch(f"Block layouts differ: {self.dims()} vs {other.dims()}")

    def __add__(self, other: "VectorValues") -> "VectorValues":
        self._check_same_layout(other)
        return VectorValues(a + b for a, b in zip(self._blocks, other._blocks))

    def __sub__(self, other: "VectorValues") -> "VectorValues":
        self._check_same_layout(other)
        return VectorValues(a - b for a, b in zip(self._blocks, other._blocks))

    def __mul__(self, scale: float) -> "VectorValues":
        return VectorValues(scale * b for b in self._blocks)

    __rmul__ = __mul__

    def __neg__(self) -> "VectorValues":
        return VectorValues(-b for b in self._blocks)

    def dot(self, other: "VectorValues") -> jnp.ndarray:
        self._check_same_layout(other)
        return jnp.dot(self.vector(), other.vector())

    def equals(self, other: "VectorValues", tol: float = 1e-9) -> bool:
        if self.dims() != other.dims():
            return False
        return all(bool(jnp.allclose(a, b, atol=tol, rtol=0.0)) for a, b in zip(self._blocks, other._blocks))

    def __repr__(self) -> str:
        body = ", ".join(f"{i}: {[float(v) for v in b]}" for i, b in enumerate(self._blocks))
        return f"VectorValues({body})"
