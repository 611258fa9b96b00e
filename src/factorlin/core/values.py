# Copyright (c) 2025.
# This file is part of factorlin, released under the MIT License.
"""
Value store: the current estimate of every variable.

``Values`` maps keys to manifold values (``slam.manifold`` kinds). Insertion
order is preserved; it carries no meaning beyond making iteration
deterministic. ``ordering_arbitrary()`` sorts the keys, so two calls on an
unmodified store return identical orderings whatever the insertion order.

Duplicate policy: ``insert`` never overwrites (``DuplicateVariable``);
``update`` only overwrites (``UnknownVariable`` if the key is absent).

Factors and linearization only read from a store. The outer optimizer
produces the next estimate with ``retract``, which returns a new store.
"""

from __future__ import annotations

from typing import Any, Dict, Hashable, ItemsView, Iterator, KeysView, List

from factorlin.jax_init import jnp
from factorlin.linear.vector_values import VectorValues
from factorlin.slam.manifold import Manifold

from .errors import DimensionMismatch, DuplicateVariable, UnknownVariable
from .keys import key_kind
from .ordering import Ordering


class Values:
    """Ordered mapping key -> manifold value."""

    def __init__(self) -> None:
        self._values: Dict[Hashable, Any] = {}

    def insert(self, key: Hashable, value: Any) -> None:
        if key in self._values:
            raise DuplicateVariable(key)
        self._check_kind(key, value)
        self._values[key] = value

    def update(self, key: Hashable, value: Any) -> None:
        if key not in self._values:
            raise UnknownVariable(key)
        self._check_kind(key, value)
        old = self._values[key]
        if old.dim != value.dim:
            raise DimensionMismatch(
                f"Variable '{key}' has dim {old.dim}, update has dim {value.dim}"
            )
        self._values[key] = value

    def erase(self, key: Hashable) -> None:
        try:
            del self._values[key]
        except KeyError:
            raise UnknownVariable(key) from None

    def at(self, key: Hashable) -> Any:
        try:
            return self._values[key]
        except KeyError:
            raise UnknownVariable(key) from None

    def __getitem__(self, key: Hashable) -> Any:
        return self.at(key)

    def exists(self, key: Hashable) -> bool:
        return key in self._values

    def __contains__(self, key: Hashable) -> bool:
        return key in self._values

    def __len__(self) -> int:
        return len(self._values)

    def __iter__(self) -> Iterator[Hashable]:
        return iter(self._values)

    def keys(self) -> KeysView:
        return self._values.keys()

    def items(self) -> ItemsView:
        return self._values.items()

    def dims(self) -> Dict[Hashable, int]:
        return {k: v.dim for k, v in self._values.items()}

    def dim(self) -> int:
        """Total tangent dimension."""
        return sum(v.dim for v in self._values.values())

    @staticmethod
    def _check_kind(key: Hashable, value: Any) -> None:
        if not isinstance(value, Manifold):
            raise DimensionMismatch(
                f"Variable '{key}' must be a manifold value, got {type(value).__name__}"
            )
        kind = key_kind(key)
        if kind is not None and not isinstance(value, kind):
            raise DimensionMismatch(
                f"Variable '{key}' is declared as {kind.__name__}, got {type(value).__name__}"
            )

    # --- Orderings ---

    def ordering_arbitrary(self) -> Ordering:
        """Ordering over all keys in ascending key order."""
        return Ordering((key, self._values[key].dim) for key in sorted(self._values))

    # --- Manifold operations ---

    def retract(self, delta: VectorValues, ordering: Ordering) -> "Values":
        """
        New store with every variable in ``ordering`` moved by its block of
        ``delta`` (a ``VectorValues``). Variables outside the ordering are
        carried over unchanged.
        """
        result = Values()
        for key, value in self._values.items():
            if key in ordering:
                result._values[key] = value.retract(delta[ordering[key]])
            else:
                result._values[key] = value
        return result

    def local_coordinates(self, other: "Values", ordering: Ordering) -> VectorValues:
        """``VectorValues`` d with ``self.retract(d, ordering) == other``."""
        blocks: List[jnp.ndarray] = []
        for key in ordering:
            blocks.append(self.at(key).local_coordinates(other.at(key)))
        return VectorValues(blocks)

    def copy(self) -> "Values":
        result = Values()
        result._values = dict(self._values)
        return result

    def equals(self, other: "Values", tol: float = 1e-9) -> bool:
        if set(self._values) != set(other._values):
            return False
        return all(v.equals(other._values[k], tol) for k, v in self._values.items())

    def __repr__(self) -> str:
        body = ", ".join(f"{k}: {v!r}" for k, v in self._values.items())
        return f"Values({{{body}}})"
