# Copyright (c) 2025.
# This file is part of factorlin, released under the MIT License.
"""
Explicit configuration for factorlin.

Configuration objects are plain dataclasses passed to the call that uses
them; nothing in the library reads module-level switches.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class LinearizationConfig:
    max_workers: int = 1      # >1 linearizes factors on a thread pool
    jit: bool = False         # jax.jit each factor's residual + Jacobians
    check_dims: bool = True   # verify block widths against the ordering

    def __post_init__(self) -> None:
        if self.max_workers < 1:
            raise ValueError("max_workers must be at least 1")
