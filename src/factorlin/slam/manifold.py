# Copyright (c) 2025.
# This file is part of factorlin, released under the MIT License.
"""
Manifold variable kinds for factorlin.

Every value held in a ``Values`` store is one of the kinds defined here.
A kind knows its tangent dimension and how to move on the manifold:

    • ``retract(delta)``            value ⊕ δ   (δ in the tangent space)
    • ``local_coordinates(other)``  other ⊖ value

with ``v.retract(v.local_coordinates(w)) == w`` and
``v.local_coordinates(v.retract(d)) == d`` up to floating point.

Kinds
-----
    LieScalar       ℝ,   dim 1, additive
    LieVector       ℝⁿ,  dim n, additive
    Point2/Point3   fixed-size LieVector with geometric helpers
    Rot2            SO(2), dim 1, angle wrapped to (-π, π]
    Pose2           SE(2), dim 3, twist (vx, vy, ω)
    Rot3            SO(3), dim 3, rotation vector
    Pose3           SE(3), dim 6, twist (v, ω) (translation first, as in
                    ``core.math3d``)

Integration with linearization
------------------------------
All kinds are registered as JAX pytrees. ``NoiseModelFactor.linearize``
builds ``δ ↦ error(x₁.retract(δ₁), …, x_k.retract(δ_k))`` and differentiates
it at δ = 0 with ``jax.jacfwd``, so the Jacobian columns are expressed in
each variable's local coordinates. Adding a new kind only requires
``dim``, ``retract``, ``local_coordinates`` and the pytree hooks.

The Lie-group kinds use right-multiplicative updates (``x ∘ Exp(δ)``).
"""

from __future__ import annotations

import abc
from typing import Any, Sequence

from jax.tree_util import register_pytree_node_class

from factorlin.core.errors import DimensionMismatch
from factorlin.core.math3d import (
    rot2_matrix,
    se2_exp,
    se2_log,
    se3_exp,
    se3_log,
    so3_exp,
    so3_log,
    wrap_angle,
)
from factorlin.jax_init import jax, jnp


class Manifold(abc.ABC):
    """Interface shared by every variable kind."""

    @property
    @abc.abstractmethod
    def dim(self) -> int:
        """Tangent-space dimension."""

    @abc.abstractmethod
    def retract(self, delta: jnp.ndarray) -> "Manifold":
        ...

    @abc.abstractmethod
    def local_coordinates(self, other: "Manifold") -> jnp.ndarray:
        ...

    @abc.abstractmethod
    def tree_flatten(self):
        ...

    @classmethod
    @abc.abstractmethod
    def tree_unflatten(cls, aux: Any, children: Sequence[Any]) -> "Manifold":
        ...

    def leaves(self) -> tuple:
        return tuple(jax.tree_util.tree_leaves(self))

    def equals(self, other: Any, tol: float = 1e-9) -> bool:
        if type(other) is not type(self):
            return False
        mine, theirs = self.leaves(), other.leaves()
        if len(mine) != len(theirs):
            return False
        return all(
            a.shape == b.shape and bool(jnp.allclose(a, b, atol=tol, rtol=0.0))
            for a, b in zip(mine, theirs)
        )

    def _check_delta(self, delta: jnp.ndarray) -> jnp.ndarray:
        delta = jnp.reshape(jnp.asarray(delta), (-1,))
        if delta.shape[0] != self.dim:
            raise DimensionMismatch(
                f"{type(self).__name__} has dim {self.dim}, got a delta of size {delta.shape[0]}"
            )
        return delta


class LieGroup(Manifold):
    """Manifold with a group structure (compose / inverse / between)."""

    @classmethod
    @abc.abstractmethod
    def identity(cls) -> "LieGroup":
        ...

    @abc.abstractmethod
    def compose(self, other: "LieGroup") -> "LieGroup":
        ...

    @abc.abstractmethod
    def inverse(self) -> "LieGroup":
        ...

    def between(self, other: "LieGroup") -> "LieGroup":
        """self⁻¹ ∘ other."""
        return self.inverse().compose(other)

    def __mul__(self, other: "LieGroup") -> "LieGroup":
        return self.compose(other)

    # Exponential coordinates around this element.
    def expmap(self, delta: jnp.ndarray) -> "LieGroup":
        return self.retract(delta)

    def logmap(self, other: "LieGroup") -> jnp.ndarray:
        return self.local_coordinates(other)

    def equals(self, other: Any, tol: float = 1e-9) -> bool:
        """
        Equal storage, or a tangent distance of at most ``tol``. The second
        test makes e.g. ``Rot2(pi)`` and ``Rot2(-pi)`` equal.
        """
        if super().equals(other, tol):
            return True
        if type(other) is not type(self) or other.dim != self.dim:
            return False
        return float(jnp.linalg.norm(self.local_coordinates(other))) <= tol


# --- Vector spaces ---


@register_pytree_node_class
class LieScalar(LieGroup):
    """Scalar variable; the group operation is addition."""

    def __init__(self, value: Any = 0.0) -> None:
        self.value = jnp.asarray(value, dtype=jnp.float64).reshape(())

    @property
    def dim(self) -> int:
        return 1

    def retract(self, delta: jnp.ndarray) -> "LieScalar":
        return LieScalar(self.value + self._check_delta(delta)[0])

    def local_coordinates(self, other: "LieScalar") -> jnp.ndarray:
        return jnp.reshape(other.value - self.value, (1,))

    @classmethod
    def identity(cls) -> "LieScalar":
        return cls(0.0)

    def compose(self, other: "LieScalar") -> "LieScalar":
        return LieScalar(self.value + other.value)

    def inverse(self) -> "LieScalar":
        return LieScalar(-self.value)

    def __float__(self) -> float:
        return float(self.value)

    def __repr__(self) -> str:
        return f"LieScalar({float(self.value)})"

    def tree_flatten(self):
        return (self.value,), None

    @classmethod
    def tree_unflatten(cls, aux: Any, children: Sequence[Any]) -> "LieScalar":
        obj = object.__new__(cls)
        obj.value = children[0]
        return obj


@register_pytree_node_class
class LieVector(LieGroup):
    """ℝⁿ variable; retract is addition, local coordinates subtraction."""

    _size: int | None = None

    def __init__(self, vector: Any) -> None:
        vector = jnp.reshape(jnp.asarray(vector, dtype=jnp.float64), (-1,))
        if self._size is not None and vector.shape[0] != self._size:
            raise DimensionMismatch(
                f"{type(self).__name__} expects {self._size} components, got {vector.shape[0]}"
            )
        self.vector = vector

    @property
    def dim(self) -> int:
        return int(self.vector.shape[0])

    def retract(self, delta: jnp.ndarray) -> "LieVector":
        return self._new(self.vector + self._check_delta(delta))

    def local_coordinates(self, other: "LieVector") -> jnp.ndarray:
        return other.vector - self.vector

    @classmethod
    def identity(cls, size: int | None = None) -> "LieVector":
        n = cls._size if cls._size is not None else size
        if n is None:
            raise ValueError("LieVector.identity() needs a size")
        return cls(jnp.zeros(n))

    def compose(self, other: "LieVector") -> "LieVector":
        return self._new(self.vector + other.vector)

    def inverse(self) -> "LieVector":
        return self._new(-self.vector)

    def __add__(self, other: "LieVector") -> "LieVector":
        return self._new(self.vector + other.vector)

    def __sub__(self, other: "LieVector") -> "LieVector":
        return self._new(self.vector - other.vector)

    def __getitem__(self, i: int) -> jnp.ndarray:
        return self.vector[i]

    def _new(self, vector: jnp.ndarray) -> "LieVector":
        obj = object.__new__(type(self))
        obj.vector = vector
        return obj

    def __repr__(self) -> str:
        return f"{type(self).__name__}({[float(v) for v in self.vector]})"

    def tree_flatten(self):
        return (self.vector,), None

    @classmethod
    def tree_unflatten(cls, aux: Any, children: Sequence[Any]) -> "LieVector":
        obj = object.__new__(cls)
        obj.vector = children[0]
        return obj


@register_pytree_node_class
class Point2(LieVector):
    """2D point."""
    _size = 2

    def __init__(self, x: Any = None, y: Any = None) -> None:
        if x is None:
            super().__init__(jnp.zeros(2))
        elif y is None:
            super().__init__(x)
        else:
            super().__init__(jnp.stack([jnp.asarray(x, dtype=jnp.float64), jnp.asarray(y, dtype=jnp.float64)]))

    @property
    def x(self) -> jnp.ndarray:
        return self.vector[0]

    @property
    def y(self) -> jnp.ndarray:
        return self.vector[1]

    def norm(self) -> jnp.ndarray:
        return jnp.linalg.norm(self.vector)

    def distance(self, other: "Point2") -> jnp.ndarray:
        return jnp.linalg.norm(other.vector - self.vector)


@register_pytree_node_class
class Point3(LieVector):
    """3D point."""
    _size = 3

    def __init__(self, x: Any = None, y: Any = None, z: Any = None) -> None:
        if x is None:
            super().__init__(jnp.zeros(3))
        elif y is None:
            super().__init__(x)
        else:
            super().__init__(jnp.stack([jnp.asarray(c, dtype=jnp.float64) for c in (x, y, z)]))

    def norm(self) -> jnp.ndarray:
        return jnp.linalg.norm(self.vector)

    def distance(self, other: "Point3") -> jnp.ndarray:
        return jnp.linalg.norm(other.vector - self.vector)


# --- Planar rotations and poses ---


@register_pytree_node_class
class Rot2(LieGroup):
    """Planar rotation stored as an angle in (-π, π]."""

    def __init__(self, theta: Any = 0.0) -> None:
        self.theta = wrap_angle(jnp.asarray(theta, dtype=jnp.float64).reshape(()))

    @property
    def dim(self) -> int:
        return 1

    def retract(self, delta: jnp.ndarray) -> "Rot2":
        return Rot2(self.theta + self._check_delta(delta)[0])

    def local_coordinates(self, other: "Rot2") -> jnp.ndarray:
        return jnp.reshape(wrap_angle(other.theta - self.theta), (1,))

    @classmethod
    def identity(cls) -> "Rot2":
        return cls(0.0)

    def compose(self, other: "Rot2") -> "Rot2":
        return Rot2(self.theta + other.theta)

    def inverse(self) -> "Rot2":
        return Rot2(-self.theta)

    def matrix(self) -> jnp.ndarray:
        return rot2_matrix(self.theta)

    def rotate(self, p: Point2) -> Point2:
        return Point2(self.matrix() @ p.vector)

    def unrotate(self, p: Point2) -> Point2:
        return Point2(self.matrix().T @ p.vector)

    @classmethod
    def relative_bearing(cls, d: Point2) -> "Rot2":
        """Rotation pointing along ``d``."""
        return cls(jnp.arctan2(d.vector[1], d.vector[0]))

    def __repr__(self) -> str:
        return f"Rot2({float(self.theta)})"

    def tree_flatten(self):
        return (self.theta,), None

    @classmethod
    def tree_unflatten(cls, aux: Any, children: Sequence[Any]) -> "Rot2":
        obj = object.__new__(cls)
        obj.theta = children[0]
        return obj


@register_pytree_node_class
class Pose2(LieGroup):
    """Planar pose (x, y, θ)."""

    def __init__(self, x: Any = 0.0, y: Any = 0.0, theta: Any = 0.0) -> None:
        self.vec = jnp.stack([
            jnp.asarray(x, dtype=jnp.float64),
            jnp.asarray(y, dtype=jnp.float64),
            wrap_angle(jnp.asarray(theta, dtype=jnp.float64)),
        ])

    @classmethod
    def from_vector(cls, vec: jnp.ndarray) -> "Pose2":
        obj = object.__new__(cls)
        vec = jnp.asarray(vec)
        obj.vec = jnp.concatenate([vec[:2], jnp.reshape(wrap_angle(vec[2]), (1,))])
        return obj

    @property
    def dim(self) -> int:
        return 3

    @property
    def translation(self) -> Point2:
        return Point2(self.vec[:2])

    @property
    def rotation(self) -> Rot2:
        return Rot2(self.vec[2])

    @property
    def theta(self) -> jnp.ndarray:
        return self.vec[2]

    @classmethod
    def identity(cls) -> "Pose2":
        return cls()

    def compose(self, other: "Pose2") -> "Pose2":
        R = rot2_matrix(self.vec[2])
        t = self.vec[:2] + R @ other.vec[:2]
        return Pose2.from_vector(jnp.concatenate([t, jnp.reshape(self.vec[2] + other.vec[2], (1,))]))

    def inverse(self) -> "Pose2":
        R = rot2_matrix(self.vec[2])
        t = -(R.T @ self.vec[:2])
        return Pose2.from_vector(jnp.concatenate([t, jnp.reshape(-self.vec[2], (1,))]))

    def between(self, other: "Pose2") -> "Pose2":
        R = rot2_matrix(self.vec[2])
        t = R.T @ (other.vec[:2] - self.vec[:2])
        return Pose2.from_vector(jnp.concatenate([t, jnp.reshape(other.vec[2] - self.vec[2], (1,))]))

    def retract(self, delta: jnp.ndarray) -> "Pose2":
        return self.compose(Pose2.from_vector(se2_exp(self._check_delta(delta))))

    def local_coordinates(self, other: "Pose2") -> jnp.ndarray:
        return se2_log(self.between(other).vec)

    def transform_from(self, p: Point2) -> Point2:
        """Point in this pose's frame -> world frame."""
        return Point2(rot2_matrix(self.vec[2]) @ p.vector + self.vec[:2])

    def transform_to(self, p: Point2) -> Point2:
        """World point -> this pose's frame."""
        return Point2(rot2_matrix(self.vec[2]).T @ (p.vector - self.vec[:2]))

    def range(self, p: Point2) -> jnp.ndarray:
        return jnp.linalg.norm(p.vector - self.vec[:2])

    def bearing(self, p: Point2) -> Rot2:
        return Rot2.relative_bearing(self.transform_to(p))

    def __repr__(self) -> str:
        x, y, th = (float(v) for v in self.vec)
        return f"Pose2({x}, {y}, {th})"

    def tree_flatten(self):
        return (self.vec,), None

    @classmethod
    def tree_unflatten(cls, aux: Any, children: Sequence[Any]) -> "Pose2":
        obj = object.__new__(cls)
        obj.vec = children[0]
        return obj


# --- 3D rotations and poses ---


@register_pytree_node_class
class Rot3(LieGroup):
    """3D rotation stored as a 3×3 matrix."""

    def __init__(self, matrix: Any = None) -> None:
        self.matrix = jnp.eye(3) if matrix is None else jnp.asarray(matrix, dtype=jnp.float64)

    @classmethod
    def from_rotvec(cls, w: Any) -> "Rot3":
        return cls(so3_exp(jnp.asarray(w, dtype=jnp.float64)))

    @classmethod
    def rz(cls, angle: float) -> "Rot3":
        return cls.from_rotvec(jnp.array([0.0, 0.0, angle]))

    @property
    def dim(self) -> int:
        return 3

    @classmethod
    def identity(cls) -> "Rot3":
        return cls()

    def compose(self, other: "Rot3") -> "Rot3":
        return Rot3(self.matrix @ other.matrix)

    def inverse(self) -> "Rot3":
        return Rot3(self.matrix.T)

    def between(self, other: "Rot3") -> "Rot3":
        return Rot3(self.matrix.T @ other.matrix)

    def retract(self, delta: jnp.ndarray) -> "Rot3":
        return Rot3(self.matrix @ so3_exp(self._check_delta(delta)))

    def local_coordinates(self, other: "Rot3") -> jnp.ndarray:
        return so3_log(self.matrix.T @ other.matrix)

    def rotvec(self) -> jnp.ndarray:
        return so3_log(self.matrix)

    def rotate(self, p: Point3) -> Point3:
        return Point3(self.matrix @ p.vector)

    def unrotate(self, p: Point3) -> Point3:
        return Point3(self.matrix.T @ p.vector)

    def __repr__(self) -> str:
        return f"Rot3(rotvec={[float(v) for v in self.rotvec()]})"

    def tree_flatten(self):
        return (self.matrix,), None

    @classmethod
    def tree_unflatten(cls, aux: Any, children: Sequence[Any]) -> "Rot3":
        obj = object.__new__(cls)
        obj.matrix = children[0]
        return obj


@register_pytree_node_class
class Pose3(LieGroup):
    """3D pose as (Rot3, translation)."""

    def __init__(self, rotation: Rot3 | None = None, translation: Any = None) -> None:
        self.rotation = Rot3() if rotation is None else rotation
        self.t = jnp.zeros(3) if translation is None else jnp.reshape(
            jnp.asarray(translation, dtype=jnp.float64), (3,)
        )

    @classmethod
    def from_twist(cls, xi: Any) -> "Pose3":
        """Exp of a twist [v, w]."""
        R, t = se3_exp(jnp.asarray(xi, dtype=jnp.float64))
        return cls(Rot3(R), t)

    @property
    def dim(self) -> int:
        return 6

    @property
    def translation(self) -> Point3:
        return Point3(self.t)

    @classmethod
    def identity(cls) -> "Pose3":
        return cls()

    def compose(self, other: "Pose3") -> "Pose3":
        R = self.rotation.matrix
        return Pose3(Rot3(R @ other.rotation.matrix), self.t + R @ other.t)

    def inverse(self) -> "Pose3":
        Rt = self.rotation.matrix.T
        return Pose3(Rot3(Rt), -(Rt @ self.t))

    def between(self, other: "Pose3") -> "Pose3":
        Rt = self.rotation.matrix.T
        return Pose3(Rot3(Rt @ other.rotation.matrix), Rt @ (other.t - self.t))

    def retract(self, delta: jnp.ndarray) -> "Pose3":
        return self.compose(Pose3.from_twist(self._check_delta(delta)))

    def local_coordinates(self, other: "Pose3") -> jnp.ndarray:
        rel = self.between(other)
        return se3_log(rel.rotation.matrix, rel.t)

    def transform_from(self, p: Point3) -> Point3:
        return Point3(self.rotation.matrix @ p.vector + self.t)

    def transform_to(self, p: Point3) -> Point3:
        return Point3(self.rotation.matrix.T @ (p.vector - self.t))

    def range(self, p: Point3) -> jnp.ndarray:
        return jnp.linalg.norm(p.vector - self.t)

    def __repr__(self) -> str:
        return f"Pose3({self.rotation!r}, t={[float(v) for v in self.t]})"

    def tree_flatten(self):
        return (self.rotation, self.t), None

    @classmethod
    def tree_unflatten(cls, aux: Any, children: Sequence[Any]) -> "Pose3":
        obj = object.__new__(cls)
        obj.rotation, obj.t = children
        return obj
