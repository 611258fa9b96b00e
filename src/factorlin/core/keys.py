# Copyright (c) 2025.
# This file is part of factorlin, released under the MIT License.
"""
Variable identifiers for factorlin.

Classes
-------
Symbol
    Opaque, hashable, totally ordered key made of a character and an
    integer index, e.g. ``Symbol('x', 3)`` printed as ``x3``. Keys compare
    by ``(chr, index)``, which is the order used by
    ``Values.ordering_arbitrary()``.

TypedSymbol
    A ``Symbol`` that also declares the manifold kind of the value it names
    (e.g. ``Point2``). The kind is metadata only: it does not take part in
    equality, hashing or ordering, so ``TypedSymbol('x', 1, Point2)`` and
    ``Symbol('x', 1)`` name the same variable. ``Values`` checks the kind
    on insert and update.

Notes
-----
String keys are never parsed implicitly. Use ``Symbol.parse("x3")`` where
a textual key has to become a real one.
"""

from __future__ import annotations

import functools
import re
from dataclasses import dataclass
from typing import Any, Callable, Optional

_SYMBOL_RE = re.compile(r"^([A-Za-z])(\d+)$")


@functools.total_ordering
@dataclass(frozen=True, eq=False)
class Symbol:
    """Character + index variable key."""
    chr: str
    index: int

    def __post_init__(self) -> None:
        if not isinstance(self.chr, str) or len(self.chr) != 1:
            raise ValueError(f"Symbol character must be a single character, got {self.chr!r}")
        if int(self.index) < 0:
            raise ValueError(f"Symbol index must be non-negative, got {self.index}")

    @classmethod
    def parse(cls, text: str) -> "Symbol":
        """Parse ``"x3"`` into ``Symbol('x', 3)``."""
        m = _SYMBOL_RE.match(text.strip())
        if m is None:
            raise ValueError(f"Cannot parse '{text}' as a symbol key")
        return Symbol(m.group(1), int(m.group(2)))

    def _cmp_key(self) -> tuple[str, int]:
        return (self.chr, int(self.index))

    def __eq__(self, other: Any) -> bool:
        if not isinstance(other, Symbol):
            return NotImplemented
        return self._cmp_key() == other._cmp_key()

    def __lt__(self, other: Any) -> bool:
        if not isinstance(other, Symbol):
            return NotImplemented
        return self._cmp_key() < other._cmp_key()

    def __hash__(self) -> int:
        return hash(self._cmp_key())

    def __str__(self) -> str:
        return f"{self.chr}{self.index}"


@dataclass(frozen=True, eq=False)
class TypedSymbol(Symbol):
    """Symbol carrying the manifold kind its value must have."""
    kind: Optional[type] = None


def symbol(chr: str, index: int) -> Symbol:
    return Symbol(chr, index)


def typed_key(kind: type, chr: str) -> Callable[[int], TypedSymbol]:
    """
    Return a key factory for one variable family.

    Example:
        PoseKey = typed_key(Point2, 'x')
        PoseKey(1)  # x1, value must be a Point2
    """
    def make(index: int) -> TypedSymbol:
        return TypedSymbol(chr, index, kind)

    make.__name__ = f"{chr}_key"
    return make


def key_kind(key: Any) -> Optional[type]:
    """Declared manifold kind of ``key`` or None for untyped keys."""
    return getattr(key, "kind", None)
