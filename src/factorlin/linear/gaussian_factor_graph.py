# Copyright (c) 2025.
# This file is part of factorlin, released under the MIT License.
"""
Linear factor graph: the hand-off to an external sparse solver.

A ``GaussianFactorGraph`` is an ordered list of ``JacobianFactor``s produced
by ``NonlinearFactorGraph.linearize``. Together with the ``Ordering`` used to
produce it, it is everything a solver needs. ``jacobian(ordering)`` stacks
the factors into one dense system ``A δ ≈ b``, which is enough for small
problems and for checking a sparse solver against.
"""

from __future__ import annotations

from typing import Any, Iterable, Iterator, List, Set, Tuple

import numpy as np

from factorlin.core.ordering import Ordering
from factorlin.jax_init import jnp

from .jacobian_factor import JacobianFactor
from .vector_values import VectorValues


class GaussianFactorGraph:
    """Ordered collection of Jacobian factors."""

    def __init__(self, factors: Iterable[JacobianFactor] = ()) -> None:
        self._factors: List[JacobianFactor] = list(factors)

    def push_back(self, factor: JacobianFactor) -> None:
        self._factors.append(factor)

    def __len__(self) -> int:
        return len(self._factors)

    def __getitem__(self, i: int) -> JacobianFactor:
        return self._factors[i]

    def __iter__(self) -> Iterator[JacobianFactor]:
        return iter(self._factors)

    def keys(self) -> Set[int]:
        """Every block index referenced by some factor."""
        return {k for f in self._factors for k in f.keys}

    def rows(self) -> int:
        return sum(f.rows() for f in self._factors)

    def error(self, delta: VectorValues) -> jnp.ndarray:
        """Σ 0.5 ‖Aᵢ δ - bᵢ‖²."""
        total = jnp.zeros(())
        for f in self._factors:
            total = total + f.error(delta)
        return total

    def jacobian(self, ordering: Ordering) -> Tuple[np.ndarray, np.ndarray]:
        """Dense (A, b) of the whole graph, columns laid out by ``ordering``."""
        if not self._factors:
            return np.zeros((0, ordering.total_dim())), np.zeros((0,))
        blocks = [f.dense(ordering) for f in self._factors]
        A = np.vstack([a for a, _ in blocks])
        b = np.concatenate([b for _, b in blocks])
        return A, b

    def constrained_rows(self) -> np.ndarray:
        """Boolean mask over the rows of ``jacobian()``: True for equality rows."""
        masks = []
        for f in self._factors:
            if f.is_constrained():
                masks.append(np.asarray(f.model.constrained_mask))
            else:
                masks.append(np.zeros(f.rows(), dtype=bool))
        if not masks:
            return np.zeros((0,), dtype=bool)
        return np.concatenate(masks)

    def equals(self, other: Any, tol: float = 1e-9) -> bool:
        if not isinstance(other, GaussianFactorGraph) or len(other) != len(self):
            return False
        return all(a.equals(b, tol) for a, b in zip(self._factors, other._factors))

    def identical(self, other: "GaussianFactorGraph") -> bool:
        if len(other) != len(self):
            return False
        return all(a.identical(b) for a, b in zip(self._factors, other._factors))

    def __repr__(self) -> str:
        return f"GaussianFactorGraph({len(self._factors)} factors)"
