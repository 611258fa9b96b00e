# Copyright (c) 2025.
# This file is part of factorlin, released under the MIT License.
"""
Gaussian noise models and their whitening contract.

A noise model of dimension m owns a whitening operator W with

    whitened residual = W · r
    whitened Jacobian = W · J

so that ordinary least squares on the whitened quantities is maximum
likelihood for the measurement. The cost contribution of a residual is
``0.5 * distance(r) = 0.5 * ‖W r‖²``.

Models
------
Gaussian
    Full square-root information matrix R (upper triangular), W = R.
    Built from a sqrt-information, information or covariance matrix.

Diagonal
    Per-component standard deviations σ, W = diag(1/σ).

Isotropic
    One σ shared by all m components.

Unit
    σ = 1; whitening is the identity.

Constrained
    Per-component σ where σ = 0 marks an exact (equality) constraint.

Constrained rows
----------------
Whitening never divides by zero. Rows with σ > 0 are divided by σ; rows
with σ = 0 are passed through unscaled (weight 1). A linear factor produced
from a constrained model carries ``Constrained.unit()`` (σ = 0 on the
constrained rows, σ = 1 elsewhere) so that the solver consuming it knows
which rows are equalities and which are ordinary whitened residuals.
Soft models leave a ``Unit`` model on the linear factor.
"""

from __future__ import annotations

import abc
from typing import Any, List, Sequence, Tuple

from jax.scipy.linalg import solve_triangular

from factorlin.core.errors import DimensionMismatch, InvalidNoiseModel
from factorlin.jax_init import jnp


class NoiseModel(abc.ABC):
    """Base class: a dimension and a whitening operator."""

    def __init__(self, dim: int) -> None:
        dim = int(dim)
        if dim <= 0:
            raise InvalidNoiseModel(f"Noise model dimension must be positive, got {dim}")
        self._dim = dim

    @property
    def dim(self) -> int:
        return self._dim

    @property
    def is_constrained(self) -> bool:
        return False

    @property
    def is_unit(self) -> bool:
        return False

    @abc.abstractmethod
    def whiten(self, v: jnp.ndarray) -> jnp.ndarray:
        ...

    @abc.abstractmethod
    def unwhiten(self, v: jnp.ndarray) -> jnp.ndarray:
        ...

    @abc.abstractmethod
    def whiten_matrix(self, A: jnp.ndarray) -> jnp.ndarray:
        """Whiten every column of ``A`` (shape m × n)."""

    def whiten_system(
        self, blocks: Sequence[jnp.ndarray], b: jnp.ndarray
    ) -> Tuple[List[jnp.ndarray], jnp.ndarray]:
        """Whiten a list of Jacobian blocks and a right-hand side together."""
        return [self.whiten_matrix(A) for A in blocks], self.whiten(b)

    def distance(self, v: jnp.ndarray) -> jnp.ndarray:
        """Squared Mahalanobis norm ‖W v‖²."""
        w = self.whiten(v)
        return jnp.dot(w, w)

    def linearized_model(self) -> "NoiseModel":
        """Model left on a linear factor after its rows were whitened."""
        return Unit.create(self._dim)

    def _check_vector(self, v: Any) -> jnp.ndarray:
        v = jnp.asarray(v)
        if v.ndim != 1 or v.shape[0] != self._dim:
            raise DimensionMismatch(
                f"{type(self).__name__} has dim {self._dim}, got a vector of shape {tuple(v.shape)}"
            )
        return v

    def _check_matrix(self, A: Any) -> jnp.ndarray:
        A = jnp.asarray(A)
        if A.ndim != 2 or A.shape[0] != self._dim:
            raise DimensionMismatch(
                f"{type(self).__name__} has dim {self._dim}, got a matrix of shape {tuple(A.shape)}"
            )
        return A

    @abc.abstractmethod
    def equals(self, other: Any, tol: float = 1e-9) -> bool:
        ...

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, NoiseModel):
            return NotImplemented
        return self.equals(other)

    def __hash__(self) -> int:
        return hash((type(self).__name__, self._dim))


class Gaussian(NoiseModel):
    """Full-covariance model, stored as its upper-triangular sqrt information R."""

    def __init__(self, sqrt_information: Any) -> None:
        R = jnp.asarray(sqrt_information, dtype=jnp.float64)
        if R.ndim != 2 or R.shape[0] != R.shape[1]:
            raise InvalidNoiseModel(f"Square-root information must be square, got shape {tuple(R.shape)}")
        super().__init__(R.shape[0])
        if not bool(jnp.all(jnp.isfinite(R))):
            raise InvalidNoiseModel("Square-root information has non-finite entries")
        if not bool(jnp.allclose(R, jnp.triu(R))):
            raise InvalidNoiseModel("Square-root information must be upper triangular")
        if not bool(jnp.all(jnp.diagonal(R) > 0.0)):
            raise InvalidNoiseModel("Square-root information must have a positive diagonal")
        self.R = R

    @classmethod
    def from_sqrt_information(cls, R: Any) -> "Gaussian":
        return cls(R)

    @classmethod
    def from_information(cls, information: Any) -> "Gaussian":
        info = jnp.asarray(information, dtype=jnp.float64)
        if info.ndim != 2 or info.shape[0] != info.shape[1] or info.shape[0] == 0:
            raise InvalidNoiseModel(f"Information matrix must be square, got shape {tuple(info.shape)}")
        # Λ = L Lᵀ = Rᵀ R with R = Lᵀ.
        L = jnp.linalg.cholesky(info)
        if not bool(jnp.all(jnp.isfinite(L))):
            raise InvalidNoiseModel("Information matrix is not positive definite")
        return cls(L.T)

    @classmethod
    def from_covariance(cls, covariance: Any) -> "Gaussian":
        cov = jnp.asarray(covariance, dtype=jnp.float64)
        if cov.ndim != 2 or cov.shape[0] != cov.shape[1] or cov.shape[0] == 0:
            raise InvalidNoiseModel(f"Covariance must be square, got shape {tuple(cov.shape)}")
        if not bool(jnp.all(jnp.isfinite(jnp.linalg.cholesky(cov)))):
            raise InvalidNoiseModel("Covariance is not positive definite")
        return cls.from_information(jnp.linalg.inv(cov))

    def whiten(self, v: jnp.ndarray) -> jnp.ndarray:
        return self.R @ self._check_vector(v)

    def unwhiten(self, v: jnp.ndarray) -> jnp.ndarray:
        return solve_triangular(self.R, self._check_vector(v), lower=False)

    def whiten_matrix(self, A: jnp.ndarray) -> jnp.ndarray:
        return self.R @ self._check_matrix(A)

    def covariance(self) -> jnp.ndarray:
        Rinv = solve_triangular(self.R, jnp.eye(self._dim), lower=False)
        return Rinv @ Rinv.T

    def equals(self, other: Any, tol: float = 1e-9) -> bool:
        if type(other) is not type(self) or other.dim != self.dim:
            return False
        return bool(jnp.allclose(self.R, other.R, atol=tol, rtol=0.0))

    def __repr__(self) -> str:
        return f"Gaussian(dim={self._dim})"


class Diagonal(NoiseModel):
    """Independent components with standard deviations ``sigmas``."""

    _allow_zero_sigma = False

    def __init__(self, sigmas: Any) -> None:
        sigmas = jnp.reshape(jnp.asarray(sigmas, dtype=jnp.float64), (-1,))
        super().__init__(sigmas.shape[0])
        if not bool(jnp.all(jnp.isfinite(sigmas))):
            raise InvalidNoiseModel(f"Sigmas must be finite, got {sigmas}")
        if bool(jnp.any(sigmas < 0.0)):
            raise InvalidNoiseModel(f"Sigmas must be non-negative, got {sigmas}")
        if not self._allow_zero_sigma and bool(jnp.any(sigmas == 0.0)):
            raise InvalidNoiseModel(
                f"Zero sigma in {type(self).__name__}; use Constrained for exact constraints"
            )
        self.sigmas = sigmas
        self._constrained = sigmas == 0.0
        # Weight 1 on constrained rows; see module notes.
        self._inv_sigmas = jnp.where(self._constrained, 1.0, 1.0 / jnp.where(self._constrained, 1.0, sigmas))

    @classmethod
    def from_sigmas(cls, sigmas: Any) -> "Diagonal":
        return cls(sigmas)

    @classmethod
    def variances(cls, variances: Any) -> "Diagonal":
        return cls(jnp.sqrt(jnp.asarray(variances, dtype=jnp.float64)))

    @classmethod
    def precisions(cls, precisions: Any) -> "Diagonal":
        p = jnp.asarray(precisions, dtype=jnp.float64)
        if bool(jnp.any(p <= 0.0)):
            raise InvalidNoiseModel(f"Precisions must be positive, got {p}")
        return cls(1.0 / jnp.sqrt(p))

    @property
    def inv_sigmas(self) -> jnp.ndarray:
        return self._inv_sigmas

    def whiten(self, v: jnp.ndarray) -> jnp.ndarray:
        return self._inv_sigmas * self._check_vector(v)

    def unwhiten(self, v: jnp.ndarray) -> jnp.ndarray:
        return self._check_vector(v) / self._inv_sigmas

    def whiten_matrix(self, A: jnp.ndarray) -> jnp.ndarray:
        return self._inv_sigmas[:, None] * self._check_matrix(A)

    def equals(self, other: Any, tol: float = 1e-9) -> bool:
        if type(other) is not type(self) or other.dim != self.dim:
            return False
        return bool(jnp.allclose(self.sigmas, other.sigmas, atol=tol, rtol=0.0))

    def __repr__(self) -> str:
        return f"{type(self).__name__}(sigmas={[float(s) for s in self.sigmas]})"


class Isotropic(Diagonal):
    """Diagonal model with one sigma for every component."""

    @classmethod
    def sigma(cls, dim: int, sigma: float) -> "Isotropic":
        dim = int(dim)
        if dim <= 0:
            raise InvalidNoiseModel(f"Noise model dimension must be positive, got {dim}")
        return cls(jnp.full((dim,), float(sigma)))

    @classmethod
    def variance(cls, dim: int, variance: float) -> "Isotropic":
        if variance < 0.0:
            raise InvalidNoiseModel(f"Variance must be non-negative, got {variance}")
        return cls.sigma(dim, float(variance) ** 0.5)

    @property
    def sigma_value(self) -> float:
        return float(self.sigmas[0])

    def __repr__(self) -> str:
        return f"Isotropic(dim={self._dim}, sigma={self.sigma_value})"


class Unit(Isotropic):
    """Isotropic model with sigma 1; whitening is the identity."""

    @classmethod
    def create(cls, dim: int) -> "Unit":
        return cls.sigma(dim, 1.0)

    @property
    def is_unit(self) -> bool:
        return True

    def whiten(self, v: jnp.ndarray) -> jnp.ndarray:
        return self._check_vector(v)

    def unwhiten(self, v: jnp.ndarray) -> jnp.ndarray:
        return self._check_vector(v)

    def whiten_matrix(self, A: jnp.ndarray) -> jnp.ndarray:
        return self._check_matrix(A)

    def __repr__(self) -> str:
        return f"Unit(dim={self._dim})"


class Constrained(Diagonal):
    """
    Diagonal model in which σ = 0 marks an exact constraint.

    Constrained rows are whitened with weight 1; rows with σ > 0 are
    divided by σ like in ``Diagonal``.
    """

    _allow_zero_sigma = True

    @classmethod
    def mixed_sigmas(cls, sigmas: Any) -> "Constrained":
        return cls(sigmas)

    @classmethod
    def all(cls, dim: int) -> "Constrained":
        """Every component is an exact constraint."""
        dim = int(dim)
        if dim <= 0:
            raise InvalidNoiseModel(f"Noise model dimension must be positive, got {dim}")
        return cls(jnp.zeros(dim))

    @property
    def is_constrained(self) -> bool:
        return True

    @property
    def constrained_mask(self) -> jnp.ndarray:
        """Boolean mask of the exact-constraint rows."""
        return self._constrained

    def unit(self) -> "Constrained":
        """Same constraint pattern with σ = 1 on the soft rows."""
        return Constrained(jnp.where(self._constrained, 0.0, 1.0))

    def linearized_model(self) -> "Constrained":
        return self.unit()
