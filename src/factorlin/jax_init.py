# Copyright (c) 2025.
# This file is part of factorlin, released under the MIT License.
"""
Common JAX initialization for factorlin.

JAX is configured once, at import time, before any array is created.
Every other module imports ``jax`` and ``jnp`` from here so that the
configuration is guaranteed to be in effect.

Usage:
    from factorlin.jax_init import jax, jnp

Double precision is required: the retract/local-coordinates round trip of
every manifold kind must hold to ~1e-9, which float32 cannot deliver.
"""

from __future__ import annotations

import jax
import jax.numpy as jnp

jax.config.update("jax_enable_x64", True)

__all__ = ["jax", "jnp"]
