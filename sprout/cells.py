"""
Stem and leaf cells.

A cell is the unit of growth. Each one creates its own physics body on
construction, registers itself in the arena and schedules its own future
events; there is no central planner deciding what grows next.

Stem lifecycle:
    GROWING   width and color advance on every growth tick
    MATURE    age reached the iteration cap
    FINALIZED body frozen static, support constraints released

    Independently, exactly once, a stem reproduces after a fixed delay,
    whether or not it has finalized by then. Reproduction and finalization
    are deliberately not ordered against each other.

Leaf lifecycle:
    growing -> (at mature_age) parent grows a new segment -> aging
            -> (at max_age) detached -> removed after a delay

Counters carried from parent to child:
    generation      +1 for every child
    branch_depth    +1 only for branch children, never above template.max_depth
    segment_length  +1 per continuation, 0 for a branch or post-leaf segment
"""

import logging
import math
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum

import numpy as np

from sprout.appearance import (
    leaf_color,
    lerp_stiffness,
    stem_color,
    transition_ratio,
)
from sprout.config import TEMPLATES, GrowthConfig, GrowthTemplate, RGBAColor, RGBColor
from sprout.physics import (
    BodyHandle,
    BodyStyle,
    Circle,
    ConstraintHandle,
    ConstraintSpec,
    PhysicsAdapter,
)
from sprout.registry import CellArena, LeafView, StemView
from sprout.scheduler import EventQueue, GrowTick, RemoveLeaf, Reproduce
from sprout.settings import SettingsStore

logger = logging.getLogger(__name__)


class CellKind(Enum):
    STEM = "stem"
    LEAF = "leaf"


class StemState(Enum):
    GROWING = "growing"
    MATURE = "mature"
    FINALIZED = "finalized"


@dataclass
class GrowthContext:
    """Everything a cell needs from its surroundings."""

    settings: SettingsStore
    physics: PhysicsAdapter
    arena: CellArena
    queue: EventQueue
    rng: np.random.Generator
    config: GrowthConfig = field(default_factory=GrowthConfig)


class Cell(ABC):
    """Shared state and plumbing of stems and leaves."""

    kind: CellKind

    def __init__(self, context: GrowthContext, parent: int | None) -> None:
        self.context = context
        self.parent = parent
        self.age = 0
        self.generation = 0
        self.constraints: list[ConstraintHandle] = []
        self.body: BodyHandle = -1
        self.handle = -1

    @property
    def position(self) -> tuple[float, float]:
        return self.context.physics.read_position(self.body)

    @abstractmethod
    def grow_tick(self) -> bool:
        """Run one growth step. Returns False once the tick should stop."""

    @abstractmethod
    def view(self) -> StemView | LeafView:
        """Immutable snapshot for renderers."""

    def release_constraints(self) -> None:
        for constraint in self.constraints:
            self.context.physics.remove_constraint(constraint)
        self.constraints = []

    def _anchor_constraint(
        self,
        anchor: tuple[float, float],
        offset_x: float,
        stiffness: float,
        visible: bool,
    ) -> ConstraintHandle:
        return self.context.physics.create_constraint(
            ConstraintSpec(
                body_b=self.body,
                point_a=anchor,
                point_b=(offset_x, 0.0),
                stiffness=stiffness,
                damping=self.context.config.anchor_damping,
                visible=visible,
            )
        )

    def _pin_constraint(self, parent_body: BodyHandle, visible: bool) -> ConstraintHandle:
        config = self.context.config
        return self.context.physics.create_constraint(
            ConstraintSpec(
                body_a=parent_body,
                body_b=self.body,
                stiffness=config.pin_stiffness,
                damping=config.pin_damping,
                visible=visible,
            )
        )


class Stem(Cell):
    """A growing skeletal segment that can branch and eventually freezes."""

    kind = CellKind.STEM

    def __init__(
        self,
        context: GrowthContext,
        *,
        width: float | None = None,
        parent: int | None = None,
        parent_body: BodyHandle | None = None,
        growth_angle: float = 0.0,
        branch_depth: int = 0,
        template: GrowthTemplate | None = None,
        generation: int = 0,
        segment_length: int = 0,
    ) -> None:
        super().__init__(context, parent)
        simulation = context.settings.simulation
        self.width = simulation.cell_size if width is None else width
        self.template = template if template is not None else TEMPLATES[simulation.plant_template]
        self.growth_angle = growth_angle
        self.branch_depth = branch_depth
        self.generation = generation
        self.segment_length = segment_length
        self.state = StemState.GROWING
        self.color: RGBColor = self.template.start_color
        self.stiffness = self.template.stiffness_range[0]
        self.reproduced = False

        if parent_body is None and parent is not None:
            parent_body = context.arena.get(parent).body
        self.parent_body = parent_body
        self._anchor_origin: tuple[float, float] | None = None

        self.body = context.physics.create_body(
            Circle(self.width),
            self.calculate_position(),
            BodyStyle(
                fill=self.template.transition_colors[0],
                air_friction=context.config.stem_air_friction,
            ),
        )
        self.handle = context.arena.add_stem(self)
        self.create_constraints()
        self.start_growth()

    # -- geometry -------------------------------------------------------------

    def calculate_position(self) -> tuple[float, float]:
        """One cell spacing from the parent along growth_angle (0 = up)."""
        simulation = self.context.settings.simulation
        if self.parent_body is None:
            x, y = simulation.base_position
        else:
            x, y = self.context.physics.read_position(self.parent_body)
        spacing = simulation.cell_spacing
        return (
            x + math.sin(self.growth_angle) * spacing,
            y - math.cos(self.growth_angle) * spacing,
        )

    def create_constraints(self) -> None:
        """
        (Re)build the pin to the parent and the two lateral anchors.

        Anchors are fixed world points, so they are recreated rather than
        updated when the body has moved.
        """
        if self.parent_body is None:
            return
        self.release_constraints()
        config = self.context.config
        visible = self.context.settings.display.constrain_visibility

        x, y = self.position
        spread = config.stem_anchor_spread + self.width * config.stem_anchor_width_factor
        left_anchor = (x - spread, y + config.stem_anchor_drop)
        right_anchor = (x + spread, y + config.stem_anchor_drop)
        anchor_stiffness = self.template.stiffness_range[0]

        self.constraints = [
            self._pin_constraint(self.parent_body, visible),
            self._anchor_constraint(left_anchor, -self.width, anchor_stiffness, visible),
            self._anchor_constraint(right_anchor, self.width, anchor_stiffness, visible),
        ]
        self._anchor_origin = (x, y)

    def _anchors_drifted(self) -> bool:
        if not self.constraints or self._anchor_origin is None:
            return False
        x, y = self.position
        ox, oy = self._anchor_origin
        return math.hypot(x - ox, y - oy) > self.context.config.anchor_rebuild_distance

    # -- timing ---------------------------------------------------------------

    def growth_interval(self) -> float:
        config = self.context.config
        time_control = self.context.settings.simulation.time_control
        return config.stem_base_interval + self.branch_depth * config.stem_depth_interval / time_control

    def reproduction_delay(self) -> float:
        config = self.context.config
        time_control = self.context.settings.simulation.time_control
        g, d = self.generation, self.branch_depth
        return (
            config.reproduction_base_delay
            + g * config.reproduction_generation_delay
            + d * g * config.reproduction_depth_generation_delay
        ) / time_control

    def iteration_cap(self) -> float:
        config = self.context.config
        return (
            self.context.settings.simulation.max_iterations
            - self.generation * config.generation_iteration_decay
            - self.branch_depth * config.depth_iteration_decay
        )

    def start_growth(self) -> None:
        queue = self.context.queue
        interval = self.growth_interval()
        queue.push(GrowTick(self.handle, queue.after(interval), interval))
        queue.push(Reproduce(self.handle, queue.after(self.reproduction_delay())))

    # -- growth ---------------------------------------------------------------

    def grow_tick(self) -> bool:
        if self.state is StemState.FINALIZED:
            return False
        cap = self.iteration_cap()
        if self.age >= cap:
            self.finalize()
            return False
        self.age += 1
        self.expand()
        if self.age >= cap:
            self.state = StemState.MATURE
        return True

    def expand(self) -> None:
        self.width += self.context.settings.simulation.grow_increment
        if self._anchors_drifted():
            self.create_constraints()
        self.update_intermediate_state()

    def transition_ratio(self) -> float:
        return transition_ratio(self.age, self.iteration_cap())

    def update_intermediate_state(self) -> None:
        ratio = self.transition_ratio()
        self.color = stem_color(self.template, ratio)
        self.stiffness = lerp_stiffness(self.template.stiffness_range, ratio)
        for constraint in self.constraints:
            self.context.physics.set_stiffness(constraint, self.stiffness)

    def finalize(self) -> None:
        """Freeze into a rigid, unsupported skeleton segment."""
        self.context.physics.set_static(self.body)
        self.release_constraints()
        self.state = StemState.FINALIZED
        logger.debug("Stem %d finalized at age %d, width %.2f", self.handle, self.age, self.width)

    # -- reproduction ---------------------------------------------------------

    def exhausted(self) -> bool:
        """No growth budget left: cells born with a cap <= 0 spawn nothing."""
        return self.iteration_cap() <= 0

    def branch_probability(self) -> float:
        """Raw template value; the gate saturates it to [0, 1]."""
        return self.template.branch_probability(self.generation, self.branch_depth)

    def branch_angle(self) -> float:
        """Current angle plus a random 30-60 degree turn to either side."""
        config = self.context.config
        rng = self.context.rng
        offset = rng.uniform(config.min_branch_angle, config.max_branch_angle)
        if rng.random() < 0.5:
            offset = -offset
        angle = self.growth_angle + offset
        if angle > config.max_downward_angle:
            return config.fallback_branch_angle
        if angle < -config.max_downward_angle:
            return -config.fallback_branch_angle
        return angle

    def try_branch(self) -> "Stem | None":
        """Spawn a branch child if the depth limit and probability allow."""
        if self.branch_depth >= self.template.max_depth:
            return None
        # random() is in [0, 1): p <= 0 never passes, p >= 1 always does
        if self.context.rng.random() >= self.branch_probability():
            return None
        return self._spawn_stem(
            growth_angle=self.branch_angle(),
            branch_depth=self.branch_depth + 1,
            segment_length=0,
        )

    def reproduce(self) -> list[Cell]:
        """
        Fire the one-shot reproduction step.

        Branch gate first, then either a leaf (lineage reached the segment
        threshold) or a continuation stem.
        """
        children: list[Cell] = []
        self.reproduced = True
        if self.exhausted():
            return children
        branch = self.try_branch()
        if branch is not None:
            children.append(branch)
        if self.segment_length >= self.context.config.segment_length_threshold:
            children.append(Leaf(self.context, parent=self.handle))
        else:
            children.append(
                self._spawn_stem(
                    growth_angle=self.growth_angle,
                    branch_depth=self.branch_depth,
                    segment_length=self.segment_length + 1,
                )
            )
        return children

    def grow_new_segment(self) -> list[Cell]:
        """
        Growth triggered by a maturing leaf on this stem.

        Same branch gate as reproduce(); the continuation starts a fresh
        internode (segment_length 0) past the leaf node.
        """
        children: list[Cell] = []
        if self.exhausted():
            return children
        branch = self.try_branch()
        if branch is not None:
            children.append(branch)
        children.append(
            self._spawn_stem(
                growth_angle=self.growth_angle,
                branch_depth=self.branch_depth,
                segment_length=0,
            )
        )
        return children

    def _spawn_stem(self, growth_angle: float, branch_depth: int, segment_length: int) -> "Stem":
        child = Stem(
            self.context,
            width=self.context.settings.simulation.cell_size,
            parent=self.handle,
            parent_body=self.body,
            growth_angle=growth_angle,
            branch_depth=branch_depth,
            template=self.template,
            generation=self.generation + 1,
            segment_length=segment_length,
        )
        logger.debug(
            "Stem %d -> stem %d (generation %d, depth %d, segment %d)",
            self.handle,
            child.handle,
            child.generation,
            child.branch_depth,
            child.segment_length,
        )
        return child

    def view(self) -> StemView:
        parent_position = None
        if self.parent_body is not None:
            parent_position = self.context.physics.read_position(self.parent_body)
        return StemView(
            handle=self.handle,
            position=self.position,
            parent_position=parent_position,
            color=self.color,
            width=self.width,
            generation=self.generation,
            branch_depth=self.branch_depth,
            state=self.state.value,
        )


class Leaf(Cell):
    """Terminal appendage that matures, colors and eventually falls."""

    kind = CellKind.LEAF

    def __init__(self, context: GrowthContext, *, parent: int) -> None:
        super().__init__(context, parent)
        config = context.config
        stem = self.parent_stem
        self.generation = stem.generation
        self.max_age = config.leaf_max_age
        self.mature_age = config.leaf_mature_age
        self.radius = config.leaf_radius
        self.fallen = False

        self.body = context.physics.create_body(
            Circle(self.radius),
            stem.calculate_position(),
            BodyStyle(fill=config.leaf_fill, air_friction=config.leaf_air_friction),
        )
        self.handle = context.arena.add_leaf(self)
        self.create_constraints()
        self.start_growth()
        logger.debug("Stem %d -> leaf %d", stem.handle, self.handle)

    @property
    def parent_stem(self) -> Stem:
        return self.context.arena.get(self.parent)  # type: ignore[return-value]

    @property
    def color(self) -> RGBAColor:
        config = self.context.config
        return leaf_color(
            self.age,
            self.mature_age,
            self.max_age,
            config.leaf_start_color,
            config.leaf_end_color,
        )

    @property
    def maturity(self) -> float:
        if self.mature_age <= 0:
            return 1.0
        return min(self.age, self.mature_age) / self.mature_age

    def create_constraints(self) -> None:
        """Pin to the parent stem plus two lateral anchors, all hidden."""
        config = self.context.config
        self.release_constraints()
        x, y = self.position
        spread = config.stem_anchor_spread + self.radius * config.stem_anchor_width_factor
        left_anchor = (x - spread, y + config.leaf_anchor_drop)
        right_anchor = (x + spread, y + config.leaf_anchor_drop)
        self.constraints = [
            self._pin_constraint(self.parent_stem.body, visible=False),
            self._anchor_constraint(
                left_anchor, -self.radius * 3, config.leaf_anchor_stiffness, visible=False
            ),
            self._anchor_constraint(
                right_anchor, self.radius * 3, config.leaf_anchor_stiffness, visible=False
            ),
        ]

    def growth_interval(self) -> float:
        config = self.context.config
        generation_term = min(
            self.generation * config.leaf_generation_interval,
            config.leaf_generation_interval_cap,
        )
        return (config.leaf_base_interval + generation_term) / self.context.settings.simulation.time_control

    def start_growth(self) -> None:
        queue = self.context.queue
        interval = self.growth_interval()
        queue.push(GrowTick(self.handle, queue.after(interval), interval))

    def grow_tick(self) -> bool:
        if self.fallen:
            return False
        if self.age == self.mature_age:
            # the terminal stem "flowers": growth resumes past this node
            self.parent_stem.grow_new_segment()
        elif self.age >= self.max_age:
            self.detach()
            return False
        self.age += 1
        return True

    def detach(self) -> bool:
        """Release supports and schedule removal. Runs only once."""
        if self.fallen:
            return False
        self.fallen = True
        self.release_constraints()
        queue = self.context.queue
        queue.push(RemoveLeaf(self.handle, queue.after(self.context.config.leaf_remove_delay)))
        logger.debug("Leaf %d detached at age %d", self.handle, self.age)
        return True

    def remove_from_world(self) -> bool:
        if not self.context.arena.remove_leaf(self.handle):
            return False
        self.context.physics.remove_body(self.body)
        logger.debug("Leaf %d removed", self.handle)
        return True

    def view(self) -> LeafView:
        return LeafView(
            handle=self.handle,
            position=self.position,
            color=self.color,
            radius=self.radius,
            age=self.age,
            mature_age=self.mature_age,
            maturity=self.maturity,
            fallen=self.fallen,
        )
