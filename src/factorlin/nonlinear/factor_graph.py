# Copyright (c) 2025.
# This file is part of factorlin, released under the MIT License.
"""
Nonlinear factor graph and graph-level linearization.

The ``NonlinearFactorGraph`` stores factors in the order they were added
(duplicates are legal, e.g. repeated priors) and offers the two operations
an outer optimizer needs on every iteration:

error(values)
    Σ factor.error(values), the total cost. A failing factor raises
    ``EvaluationFailure``, a ``LinearizationFailure`` subclass.

linearize(values, ordering, config)
    One ``JacobianFactor`` per nonlinear factor, in the same order, gathered
    into a ``GaussianFactorGraph``. The call is pure with respect to
    ``values`` and ``ordering`` and deterministic: the same inputs give a
    bit-identical result. The first failing factor aborts the call with
    ``LinearizationFailure`` (its ``__cause__`` is the original error); no
    partial graph is ever returned.

With ``LinearizationConfig(max_workers > 1)`` factors are linearized on a
thread pool. ``Executor.map`` yields results in submission order, so the
output matches the serial path factor for factor. Callers must not mutate
``values`` while a linearization is running.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Iterable, Iterator, List, Optional, Set

from factorlin.config import LinearizationConfig
from factorlin.core.errors import EvaluationFailure, LinearizationFailure, UnknownVariable
from factorlin.core.ordering import Ordering
from factorlin.core.values import Values
from factorlin.jax_init import jnp
from factorlin.linear.gaussian_factor_graph import GaussianFactorGraph
from factorlin.linear.jacobian_factor import JacobianFactor

from .factor import NonlinearFactor

LOGGER = logging.getLogger(__name__)


class NonlinearFactorGraph:
    """Ordered collection of nonlinear factors."""

    def __init__(self, factors: Iterable[NonlinearFactor] = ()) -> None:
        self._factors: List[NonlinearFactor] = list(factors)

    def push_back(self, factor: NonlinearFactor) -> None:
        self._factors.append(factor)

    add = push_back

    def __len__(self) -> int:
        return len(self._factors)

    def __getitem__(self, i: int) -> NonlinearFactor:
        return self._factors[i]

    def __iter__(self) -> Iterator[NonlinearFactor]:
        return iter(self._factors)

    def keys(self) -> Set[Any]:
        return {k for f in self._factors for k in f.keys}

    # --- Evaluation ---

    def error(self, values: Values) -> jnp.ndarray:
        """Total cost Σ 0.5 ‖W r‖² at ``values``."""
        total = jnp.zeros(())
        for i, factor in enumerate(self._factors):
            try:
                total = total + factor.error(values)
            except Exception as err:
                raise EvaluationFailure(i, factor, err) from err
        return total

    def ordering_for(self, values: Values) -> Ordering:
        """
        ``values.ordering_arbitrary()`` after checking that every key used
        by a factor has a value.
        """
        for key in sorted(self.keys()):
            if key not in values:
                raise UnknownVariable(key)
        return values.ordering_arbitrary()

    # --- Linearization ---

    def linearize(
        self,
        values: Values,
        ordering: Ordering,
        config: Optional[LinearizationConfig] = None,
    ) -> GaussianFactorGraph:
        cfg = config or LinearizationConfig()
        LOGGER.debug(
            "Linearizing %d factors over %d variables (workers=%d, jit=%s)",
            len(self._factors), len(ordering), cfg.max_workers, cfg.jit,
        )

        def linearize_one(i: int) -> JacobianFactor:
            factor = self._factors[i]
            try:
                jf = factor.linearize(values, ordering, jit=cfg.jit)
                if cfg.check_dims:
                    jf.check_dims(ordering)
                return jf
            except Exception as err:
                LOGGER.warning("Linearization failed at factor %d (%r): %s", i, factor, err)
                raise LinearizationFailure(i, factor, err) from err

        indices = range(len(self._factors))
        if cfg.max_workers > 1 and len(self._factors) > 1:
            with ThreadPoolExecutor(max_workers=cfg.max_workers) as executor:
                # map() re-raises the first failure in factor order.
                linear = list(executor.map(linearize_one, indices))
        else:
            linear = [linearize_one(i) for i in indices]

        return GaussianFactorGraph(linear)

    def equals(self, other: Any, tol: float = 1e-9) -> bool:
        if not isinstance(other, NonlinearFactorGraph) or len(other) != len(self):
            return False
        return all(a.equals(b, tol) for a, b in zip(self._factors, other._factors))

    def __repr__(self) -> str:
        return f"NonlinearFactorGraph({len(self._factors)} factors)"
