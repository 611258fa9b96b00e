# Copyright (c) 2025.
# This file is part of factorlin, released under the MIT License.
"""
Exceptions raised by factorlin.

All errors derive from :class:`FactorGraphError`. Lookup failures also
derive from ``KeyError`` and validation failures from ``ValueError`` so that
callers which only know the builtin types still catch them.
"""

from __future__ import annotations

from typing import Any, Optional


class FactorGraphError(Exception):
    """Base class for every factorlin error."""


class UnknownVariable(FactorGraphError, KeyError):
    """A key is missing from a Values, Ordering or VectorValues."""

    def __init__(self, key: Any, where: str = "values") -> None:
        self.key = key
        self.where = where
        super().__init__(f"Variable '{key}' not found in {where}")

    def __str__(self) -> str:
        # KeyError quotes its argument; keep the plain message instead.
        return self.args[0]


class DuplicateVariable(FactorGraphError, ValueError):
    """A key is inserted twice into a Values or Ordering."""

    def __init__(self, key: Any, where: str = "values") -> None:
        self.key = key
        self.where = where
        super().__init__(f"Variable '{key}' already exists in {where}")


class InvalidNoiseModel(FactorGraphError, ValueError):
    """Bad noise model parameters (empty, negative or zero sigma, ...)."""


class DimensionMismatch(FactorGraphError, ValueError):
    """Sizes of residuals, Jacobians, noise models or deltas disagree."""


class LinearizationFailure(FactorGraphError):
    """
    First error raised while linearizing a factor graph.

    The original exception is chained as ``__cause__``.
    """

    action = "Linearization"

    def __init__(self, factor_index: int, factor: Any = None, cause: Optional[BaseException] = None) -> None:
        self.factor_index = factor_index
        self.factor = factor
        self.cause = cause
        keys = ", ".join(str(k) for k in getattr(factor, "keys", ()))
        super().__init__(
            f"{self.action} failed at factor {factor_index} ({keys}): {cause}"
        )


class EvaluationFailure(LinearizationFailure):
    """First error raised while evaluating the total error of a factor graph."""

    action = "Error evaluation"
