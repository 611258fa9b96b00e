# Copyright (c) 2025.
# This file is part of factorlin, released under the MIT License.
"""
Nonlinear factors and their linearization.

A nonlinear factor constrains a small, ordered set of variables (its
*keys*). Concrete factors only describe the measurement model; error evaluation and
linearization are shared here.

Classes
-------
NonlinearFactor
    Abstract interface every factor exposes to the graph:
    ``keys``, ``size()``, ``dim()``, ``error(values)``,
    ``linearize(values, ordering)`` and ``equals(other)``.

NoiseModelFactor
    A factor whose cost is ``0.5 * ‖W r(x)‖²`` for a residual ``r`` and a
    ``NoiseModel`` W. Subclasses implement ``evaluate_error(*values)``:
    the unwhitened residual ``h(x) - z`` as a JAX-traceable function of the
    manifold values, in key order.

ResidualFactor
    A ``NoiseModelFactor`` built from a plain residual function
    ``fn(*values, params)``, the counterpart of a residual registered by
    factor type.

Linearization
-------------
For keys x₁…x_k at the current estimate, ``linearize`` builds

    f(δ₁, …, δ_k) = evaluate_error(x₁.retract(δ₁), …, x_k.retract(δ_k))

and evaluates ``∂f/∂δᵢ`` at δ = 0 with ``jax.jacfwd``. The Jacobian blocks
are therefore expressed in each variable's local tangent coordinates, which
is what makes the linear step meaningful on rotations and poses. Blocks and
residual are whitened by the noise model and the right-hand side is set to

    b = -W r(x)

so that the linear model ``W J δ ≈ b`` moves toward lower error.
"""

from __future__ import annotations

import abc
import threading
from typing import Any, Callable, Dict, Hashable, List, Optional, Sequence, Tuple

from factorlin.core.errors import DimensionMismatch, DuplicateVariable
from factorlin.core.ordering import Ordering
from factorlin.core.values import Values
from factorlin.jax_init import jax, jnp
from factorlin.linear.jacobian_factor import JacobianFactor
from factorlin.linear.noise_model import NoiseModel


class NonlinearFactor(abc.ABC):
    """Constraint over an ordered tuple of variable keys."""

    def __init__(self, keys: Sequence[Hashable]) -> None:
        keys = tuple(keys)
        if not keys:
            raise ValueError("A factor needs at least one key")
        seen = set()
        for key in keys:
            if key in seen:
                raise DuplicateVariable(key, "factor keys")
            seen.add(key)
        self._keys = keys

    @property
    def keys(self) -> Tuple[Hashable, ...]:
        return self._keys

    def size(self) -> int:
        """Number of variables this factor touches."""
        return len(self._keys)

    @abc.abstractmethod
    def dim(self) -> int:
        """Residual dimension."""

    @abc.abstractmethod
    def error(self, values: Values) -> jnp.ndarray:
        """Scalar cost contribution at ``values``."""

    @abc.abstractmethod
    def linearize(self, values: Values, ordering: Ordering, jit: bool = False) -> JacobianFactor:
        ...

    def equals(self, other: Any, tol: float = 1e-9) -> bool:
        return type(other) is type(self) and other.keys == self._keys

    def __repr__(self) -> str:
        keys = ", ".join(str(k) for k in self._keys)
        return f"{type(self).__name__}({keys})"


def _tree_allclose(a: Any, b: Any, tol: float) -> bool:
    leaves_a, tree_a = jax.tree_util.tree_flatten(a)
    leaves_b, tree_b = jax.tree_util.tree_flatten(b)
    if tree_a != tree_b or len(leaves_a) != len(leaves_b):
        return False
    for x, y in zip(leaves_a, leaves_b):
        x, y = jnp.asarray(x), jnp.asarray(y)
        if x.shape != y.shape or not bool(jnp.allclose(x, y, atol=tol, rtol=0.0)):
            return False
    return True


class NoiseModelFactor(NonlinearFactor):
    """Factor with residual ``evaluate_error`` and a Gaussian noise model."""

    def __init__(self, noise_model: NoiseModel, keys: Sequence[Hashable]) -> None:
        super().__init__(keys)
        self._noise_model = noise_model
        self._jitted: Optional[Callable] = None
        self._jit_lock = threading.Lock()

    @property
    def noise_model(self) -> NoiseModel:
        return self._noise_model

    def dim(self) -> int:
        return self._noise_model.dim

    @abc.abstractmethod
    def evaluate_error(self, *values: Any) -> jnp.ndarray:
        """Unwhitened residual h(x) - z for the values of ``keys``, in order."""

    def measurement(self) -> Any:
        """Pytree of measurement parameters compared by ``equals``."""
        return None

    # --- Evaluation ---

    def _values_for(self, values: Values) -> Tuple[Any, ...]:
        return tuple(values.at(key) for key in self._keys)

    def _residual(self, xs: Sequence[Any]) -> jnp.ndarray:
        r = jnp.reshape(jnp.asarray(self.evaluate_error(*xs)), (-1,))
        if r.shape[0] != self._noise_model.dim:
            raise DimensionMismatch(
                f"{type(self).__name__} on {', '.join(str(k) for k in self._keys)} "
                f"returned a residual of size {r.shape[0]}, noise model has dim {self._noise_model.dim}"
            )
        return r

    def unwhitened_error(self, values: Values) -> jnp.ndarray:
        return self._residual(self._values_for(values))

    def whitened_error(self, values: Values) -> jnp.ndarray:
        return self._noise_model.whiten(self.unwhitened_error(values))

    def error(self, values: Values) -> jnp.ndarray:
        """0.5 ‖W r‖²."""
        return 0.5 * self._noise_model.distance(self.unwhitened_error(values))

    # --- Jacobians ---

    def _residual_and_jacobians(self, xs: Tuple[Any, ...]) -> Tuple[jnp.ndarray, Tuple[jnp.ndarray, ...]]:
        def local(deltas: Tuple[jnp.ndarray, ...]) -> jnp.ndarray:
            return self._residual([x.retract(d) for x, d in zip(xs, deltas)])

        zeros = tuple(jnp.zeros(x.dim) for x in xs)
        blocks = jax.jacfwd(local)(zeros)
        return self._residual(xs), tuple(blocks)

    def jacobians(self, values: Values, jit: bool = False) -> Tuple[jnp.ndarray, List[jnp.ndarray]]:
        """
        Unwhitened residual and Jacobian blocks (one m × dᵢ block per key)
        with respect to local coordinates at ``values``.
        """
        xs = self._values_for(values)
        if jit:
            # One compiled function per factor, also under a thread pool.
            with self._jit_lock:
                if self._jitted is None:
                    self._jitted = jax.jit(self._residual_and_jacobians)
            r, blocks = self._jitted(xs)
        else:
            r, blocks = self._residual_and_jacobians(xs)
        return r, list(blocks)

    def linearize(self, values: Values, ordering: Ordering, jit: bool = False) -> JacobianFactor:
        indices = [ordering[key] for key in self._keys]
        r, blocks = self.jacobians(values, jit=jit)
        A, b = self._noise_model.whiten_system(blocks, -r)
        return JacobianFactor(zip(indices, A), b, self._noise_model.linearized_model())

    # --- Comparison ---

    def equals(self, other: Any, tol: float = 1e-9) -> bool:
        if not super().equals(other, tol):
            return False
        if not self._noise_model.equals(other.noise_model, tol):
            return False
        mine, theirs = self.measurement(), other.measurement()
        if hasattr(mine, "equals"):
            # Manifold measurements compare on the manifold, not by storage.
            return mine.equals(theirs, tol)
        return _tree_allclose(mine, theirs, tol)


ResidualFn = Callable[..., jnp.ndarray]


class ResidualFactor(NoiseModelFactor):
    """
    Factor defined by a residual function.

    Example:
        def range_residual(x, l, params):
            return jnp.reshape(jnp.linalg.norm(l.vector - x.vector) - params["range"], (1,))

        f = ResidualFactor(range_residual, (x1, l1), Isotropic.sigma(1, 0.1), {"range": 2.0})
    """

    def __init__(
        self,
        fn: ResidualFn,
        keys: Sequence[Hashable],
        noise_model: NoiseModel,
        params: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(noise_model, keys)
        self.fn = fn
        self.params: Dict[str, Any] = dict(params or {})

    def evaluate_error(self, *values: Any) -> jnp.ndarray:
        return self.fn(*values, self.params)

    def measurement(self) -> Any:
        return self.params

    def equals(self, other: Any, tol: float = 1e-9) -> bool:
        return super().equals(other, tol) and other.fn is self.fn
