"""
Physics boundary for the growth engine.

The engine only issues create/remove/freeze requests and reads back body
positions. PhysicsAdapter is that contract; PointMassWorld is a small
reference implementation used by the CLI and the tests:

    - bodies are point masses (no rotation, no collisions)
    - Verlet integration with gravity and air friction
    - constraints are distance springs solved by position relaxation
    - a frame is split into substeps of at most max_substep ms, so long
      frames do not inject more gravity than the solver can absorb

Coordinates follow screen convention: +y points down.

A frame runs as one jitted call. Body and constraint arrays are padded to
power-of-two lengths so the compiled kernel is reused while the plant grows.
"""

import math
from dataclasses import dataclass, field
from functools import partial
from typing import NamedTuple, Protocol

import jax
import jax.numpy as jnp
import numpy as np
from jax import Array

MIN_BUCKET = 8

BodyHandle = int
ConstraintHandle = int


class Circle(NamedTuple):
    radius: float


class Rectangle(NamedTuple):
    width: float
    height: float


Shape = Circle | Rectangle


class BodyStyle(NamedTuple):
    fill: str = "#ffffff"
    air_friction: float = 0.0
    visible: bool = True


@dataclass(frozen=True)
class ConstraintSpec:
    """
    Distance constraint between two points.

    point_b is an offset from body_b. point_a is an offset from body_a, or a
    fixed world point when body_a is None. A missing length means "keep the
    distance the endpoints have when the constraint is created".
    """

    body_b: BodyHandle
    body_a: BodyHandle | None = None
    point_a: tuple[float, float] = (0.0, 0.0)
    point_b: tuple[float, float] = (0.0, 0.0)
    stiffness: float = 1.0
    damping: float = 0.0
    length: float | None = None
    visible: bool = False


class PhysicsAdapter(Protocol):
    """What the growth engine needs from a physics engine."""

    def create_body(
        self,
        shape: Shape,
        position: tuple[float, float],
        style: BodyStyle,
        is_static: bool = False,
    ) -> BodyHandle: ...

    def remove_body(self, handle: BodyHandle) -> None: ...

    def create_constraint(self, spec: ConstraintSpec) -> ConstraintHandle: ...

    def remove_constraint(self, handle: ConstraintHandle) -> None: ...

    def set_stiffness(self, handle: ConstraintHandle, stiffness: float) -> None: ...

    def set_static(self, handle: BodyHandle) -> None: ...

    def read_position(self, handle: BodyHandle) -> tuple[float, float]: ...

    def step(self, dt: float) -> None: ...


@dataclass
class _Body:
    shape: Shape
    position: np.ndarray
    previous: np.ndarray
    style: BodyStyle
    is_static: bool = False


@dataclass
class _Constraint:
    spec: ConstraintSpec
    length: float
    stiffness: float


def relax_constraints(
    positions: Array,
    inverse_mass: Array,
    index_a: Array,
    index_b: Array,
    offset_a: Array,
    offset_b: Array,
    has_body_a: Array,
    rest_length: Array,
    stiffness: Array,
) -> Array:
    """
    One Jacobi relaxation pass over all constraints.

    Each constraint moves its endpoints towards the rest length, split by
    inverse mass. World-anchored constraints (has_body_a False) treat
    offset_a as the absolute anchor and only move body b.

    Returns:
        positions: [num_bodies, 2] corrected positions
    """
    end_a = jnp.where(has_body_a[:, None], positions[index_a] + offset_a, offset_a)
    end_b = positions[index_b] + offset_b

    delta = end_b - end_a
    distance = jnp.linalg.norm(delta, axis=1)
    stretch = (distance - rest_length) / jnp.maximum(distance, 1e-9)

    weight_a = jnp.where(has_body_a, inverse_mass[index_a], 0.0)
    weight_b = inverse_mass[index_b]
    weight_total = jnp.maximum(weight_a + weight_b, 1e-9)

    correction = delta * (stretch * stiffness)[:, None]
    positions = positions.at[index_b].add(-correction * (weight_b / weight_total)[:, None])
    positions = positions.at[index_a].add(correction * (weight_a / weight_total)[:, None])
    return positions


@partial(jax.jit, static_argnames=("iterations",))
def simulate_frame(
    positions: Array,
    previous: Array,
    inverse_mass: Array,
    retain: Array,
    gravity_step: Array,
    index_a: Array,
    index_b: Array,
    offset_a: Array,
    offset_b: Array,
    has_body_a: Array,
    rest_length: Array,
    stiffness: Array,
    substeps: int,
    iterations: int,
) -> tuple[Array, Array]:
    """
    Run `substeps` Verlet steps, each followed by constraint relaxation.

    Args:
        retain: [num_bodies] velocity kept per step (1 - air friction)
        gravity_step: [2] displacement added per substep (g * h^2)

    Returns:
        (positions, previous) after the frame. Static bodies (zero inverse
        mass) are returned unchanged.
    """
    moving = (inverse_mass > 0.0)[:, None]

    def substep(_, carry):
        current, last = carry
        velocity = (current - last) * retain[:, None]
        advanced = jnp.where(moving, current + velocity + gravity_step, current)
        last = jnp.where(moving, current, last)
        for _ in range(iterations):
            advanced = relax_constraints(
                advanced,
                inverse_mass,
                index_a,
                index_b,
                offset_a,
                offset_b,
                has_body_a,
                rest_length,
                stiffness,
            )
        return advanced, last

    return jax.lax.fori_loop(0, substeps, substep, (positions, previous))


def _bucket(n: int) -> int:
    """Padded length: next power of two, at least MIN_BUCKET."""
    size = MIN_BUCKET
    while size < n:
        size *= 2
    return size


@dataclass
class PointMassWorld:
    """Reference PhysicsAdapter: point masses joined by distance springs."""

    gravity: tuple[float, float] = (0.0, 0.001)  # px / ms^2
    iterations: int = 4
    max_substep: float = 16.0  # ms
    _bodies: dict[BodyHandle, _Body] = field(default_factory=dict)
    _constraints: dict[ConstraintHandle, _Constraint] = field(default_factory=dict)
    _next_body: int = 0
    _next_constraint: int = 0

    # -- bodies ---------------------------------------------------------------

    def create_body(
        self,
        shape: Shape,
        position: tuple[float, float],
        style: BodyStyle,
        is_static: bool = False,
    ) -> BodyHandle:
        handle = self._next_body
        self._next_body += 1
        point = np.array(position, dtype=float)
        self._bodies[handle] = _Body(
            shape=shape,
            position=point,
            previous=point.copy(),
            style=style,
            is_static=is_static,
        )
        return handle

    def remove_body(self, handle: BodyHandle) -> None:
        del self._bodies[handle]
        attached = [
            c
            for c, constraint in self._constraints.items()
            if handle in (constraint.spec.body_a, constraint.spec.body_b)
        ]
        for c in attached:
            del self._constraints[c]

    def set_static(self, handle: BodyHandle) -> None:
        body = self._bodies[handle]
        body.is_static = True
        body.previous = body.position.copy()

    def is_static(self, handle: BodyHandle) -> bool:
        return self._bodies[handle].is_static

    def read_position(self, handle: BodyHandle) -> tuple[float, float]:
        x, y = self._bodies[handle].position
        return float(x), float(y)

    def set_position(self, handle: BodyHandle, position: tuple[float, float]) -> None:
        """Teleport a body; it arrives at rest."""
        body = self._bodies[handle]
        body.position = np.array(position, dtype=float)
        body.previous = body.position.copy()

    def has_body(self, handle: BodyHandle) -> bool:
        return handle in self._bodies

    @property
    def body_count(self) -> int:
        return len(self._bodies)

    # -- constraints ----------------------------------------------------------

    def _endpoints(self, spec: ConstraintSpec) -> tuple[np.ndarray, np.ndarray]:
        if spec.body_a is None:
            end_a = np.array(spec.point_a, dtype=float)
        else:
            end_a = self._bodies[spec.body_a].position + np.array(spec.point_a)
        end_b = self._bodies[spec.body_b].position + np.array(spec.point_b)
        return end_a, end_b

    def create_constraint(self, spec: ConstraintSpec) -> ConstraintHandle:
        if spec.body_b not in self._bodies:
            raise KeyError(f"Unknown body: {spec.body_b}")
        if spec.body_a is not None and spec.body_a not in self._bodies:
            raise KeyError(f"Unknown body: {spec.body_a}")
        if spec.length is None:
            end_a, end_b = self._endpoints(spec)
            length = float(np.linalg.norm(end_b - end_a))
        else:
            length = spec.length
        handle = self._next_constraint
        self._next_constraint += 1
        self._constraints[handle] = _Constraint(
            spec=spec, length=length, stiffness=spec.stiffness
        )
        return handle

    def remove_constraint(self, handle: ConstraintHandle) -> None:
        del self._constraints[handle]

    def set_stiffness(self, handle: ConstraintHandle, stiffness: float) -> None:
        self._constraints[handle].stiffness = stiffness

    def stiffness(self, handle: ConstraintHandle) -> float:
        return self._constraints[handle].stiffness

    def constraint_spec(self, handle: ConstraintHandle) -> ConstraintSpec:
        return self._constraints[handle].spec

    def has_constraint(self, handle: ConstraintHandle) -> bool:
        return handle in self._constraints

    @property
    def constraint_count(self) -> int:
        return len(self._constraints)

    # -- integration ----------------------------------------------------------

    def step(self, dt: float) -> None:
        """Advance the world by dt milliseconds."""
        if not self._bodies or dt <= 0:
            return
        substeps = max(1, math.ceil(dt / self.max_substep))
        h = dt / substeps

        # Padding rows are static bodies and zero-stiffness constraints on
        # row 0, so they never move anything.
        handles = list(self._bodies)
        row = {handle: i for i, handle in enumerate(handles)}
        num_bodies = _bucket(len(handles))
        positions = np.zeros((num_bodies, 2), dtype=np.float32)
        previous = np.zeros((num_bodies, 2), dtype=np.float32)
        inverse_mass = np.zeros(num_bodies, dtype=np.float32)
        retain = np.zeros(num_bodies, dtype=np.float32)
        for i, handle in enumerate(handles):
            body = self._bodies[handle]
            positions[i] = body.position
            previous[i] = body.previous
            if not body.is_static:
                inverse_mass[i] = 1.0
                retain[i] = 1.0 - body.style.air_friction

        num_constraints = _bucket(len(self._constraints))
        index_a = np.zeros(num_constraints, dtype=np.int32)
        index_b = np.zeros(num_constraints, dtype=np.int32)
        offset_a = np.zeros((num_constraints, 2), dtype=np.float32)
        offset_b = np.zeros((num_constraints, 2), dtype=np.float32)
        has_body_a = np.zeros(num_constraints, dtype=bool)
        rest_length = np.zeros(num_constraints, dtype=np.float32)
        stiffness = np.zeros(num_constraints, dtype=np.float32)
        for k, constraint in enumerate(self._constraints.values()):
            spec = constraint.spec
            index_b[k] = row[spec.body_b]
            index_a[k] = index_b[k] if spec.body_a is None else row[spec.body_a]
            has_body_a[k] = spec.body_a is not None
            offset_a[k] = spec.point_a
            offset_b[k] = spec.point_b
            rest_length[k] = constraint.length
            stiffness[k] = constraint.stiffness

        gravity_step = np.array(self.gravity, dtype=np.float32) * np.float32(h * h)
        positions, previous = simulate_frame(
            positions,
            previous,
            inverse_mass,
            retain,
            gravity_step,
            index_a,
            index_b,
            offset_a,
            offset_b,
            has_body_a,
            rest_length,
            stiffness,
            substeps,
            iterations=self.iterations,
        )

        positions = np.array(positions, dtype=float)
        previous = np.array(previous, dtype=float)
        for i, handle in enumerate(handles):
            body = self._bodies[handle]
            if not body.is_static:
                body.position = positions[i]
                body.previous = previous[i]
