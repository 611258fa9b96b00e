# Copyright (c) 2025.
# This file is part of factorlin, released under the MIT License.
"""
Variable ordering: key ↔ block index bookkeeping for the linear system.

An ``Ordering`` assigns every variable a zero-based block index and records
the variable's tangent dimension, so that scalar column offsets in a dense
or sparse system can be derived:

    block index:   0      1      2
    key:           l1     x1     x2
    dim:           2      2      2
    offset:        0      2      4

Orderings are built explicitly (``push_back`` / ``from_keys``) or derived
from a value store with ``Values.ordering_arbitrary()``. A linear factor
only stays meaningful together with the ordering it was produced with;
after the variable set changes, re-derive the ordering and re-linearize.
"""

from __future__ import annotations

from typing import Any, Dict, Hashable, Iterable, Iterator, List, Tuple

from .errors import DimensionMismatch, DuplicateVariable, UnknownVariable


class Ordering:
    """Bijection between variable keys and block indices."""

    def __init__(self, items: Iterable[Tuple[Hashable, int]] = ()) -> None:
        self._index: Dict[Hashable, int] = {}
        self._keys: List[Hashable] = []
        self._dims: List[int] = []
        self._offsets: List[int] = []
        for key, dim in items:
            self.push_back(key, dim)

    @classmethod
    def from_keys(cls, keys: Iterable[Hashable], values: Any) -> "Ordering":
        """Ordering over ``keys`` in the given order, dims taken from ``values``."""
        ordering = cls()
        for key in keys:
            ordering.push_back(key, values.at(key).dim)
        return ordering

    def push_back(self, key: Hashable, dim: int) -> int:
        """Append ``key`` as the next block; returns its index."""
        if key in self._index:
            raise DuplicateVariable(key, "ordering")
        dim = int(dim)
        if dim < 0:
            raise DimensionMismatch(f"Variable '{key}' has negative dimension {dim}")
        idx = len(self._keys)
        self._offsets.append(self.total_dim())
        self._index[key] = idx
        self._keys.append(key)
        self._dims.append(dim)
        return idx

    # --- Lookups ---

    def index(self, key: Hashable) -> int:
        try:
            return self._index[key]
        except KeyError:
            raise UnknownVariable(key, "ordering") from None

    def __getitem__(self, key: Hashable) -> int:
        return self.index(key)

    def key(self, index: int) -> Hashable:
        self._check_index(index)
        return self._keys[index]

    def dim(self, index: int) -> int:
        """Tangent dimension of the variable at block ``index``."""
        self._check_index(index)
        return self._dims[index]

    def offset(self, index: int) -> int:
        """First scalar column of block ``index``."""
        self._check_index(index)
        return self._offsets[index]

    def total_dim(self) -> int:
        return sum(self._dims)

    def keys(self) -> List[Hashable]:
        return list(self._keys)

    def dims(self) -> List[int]:
        return list(self._dims)

    def _check_index(self, index: int) -> None:
        if not 0 <= index < len(self._keys):
            raise UnknownVariable(f"block {index}", "ordering")

    # --- Container protocol ---

    def __contains__(self, key: Hashable) -> bool:
        return key in self._index

    def __len__(self) -> int:
        return len(self._keys)

    def __iter__(self) -> Iterator[Hashable]:
        return iter(self._keys)

    def items(self) -> List[Tuple[Hashable, int]]:
        return [(k, self._index[k]) for k in self._keys]

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Ordering):
            return NotImplemented
        return self._keys == other._keys and self._dims == other._dims

    def __repr__(self) -> str:
        body = ", ".join(f"{k}:{i}({d})" for i, (k, d) in enumerate(zip(self._keys, self._dims)))
        return f"Ordering({body})"
