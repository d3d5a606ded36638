"""
Configuration and type definitions for the plant growth engine.

This module defines all fixed constants, species templates and the color
types shared by stems and leaves.

Timing:
    All durations are in simulated milliseconds. Formulas that divide by
    `time_control` are evaluated when a timer is scheduled, so changing the
    time scale later only affects timers scheduled afterwards.

Templates:
    A GrowthTemplate is an immutable species rule set shared by every cell
    of a plant. Branch probability is declarative (BranchCurve) rather than
    a closure so it can be swapped deterministically in tests.
"""

import math
from dataclasses import dataclass, field
from typing import NamedTuple


class RGBColor(NamedTuple):
    """Opaque 8-bit color."""

    r: int
    g: int
    b: int

    def to_css(self) -> str:
        return f"rgb({self.r},{self.g},{self.b})"

    def to_mpl(self) -> tuple[float, float, float]:
        """Color as matplotlib expects it (channels in [0, 1])."""
        return (self.r / 255, self.g / 255, self.b / 255)


class RGBAColor(NamedTuple):
    """8-bit color with a float alpha in [0, 1]."""

    r: int
    g: int
    b: int
    a: float

    def to_css(self) -> str:
        return f"rgba({self.r},{self.g},{self.b},{self.a})"

    def to_mpl(self) -> tuple[float, float, float, float]:
        return (self.r / 255, self.g / 255, self.b / 255, self.a)


def hex_to_rgb(hex_color: str) -> RGBColor:
    """Parse a `#rrggbb` string."""
    value = int(hex_color.lstrip("#"), 16)
    return RGBColor(r=(value >> 16) & 255, g=(value >> 8) & 255, b=value & 255)


CURVE_KINDS = ("constant", "reciprocal", "linear")
CURVE_ARGUMENTS = ("generation", "branch_depth")


@dataclass(frozen=True)
class BranchCurve:
    """
    Branch probability as data.

        constant:   p(x) = value
        reciprocal: p(x) = base - scale / (x + 1)
        linear:     p(x) = intercept + slope * x

    The result is NOT clipped. Species may return negative values (never
    branch) or values above one (always branch); the gate saturates them.
    """

    kind: str = "constant"
    argument: str = "generation"  # which cell counter feeds x
    value: float = 0.0
    base: float = 0.0
    scale: float = 0.0
    intercept: float = 0.0
    slope: float = 0.0

    def __post_init__(self) -> None:
        if self.kind not in CURVE_KINDS:
            raise ValueError(f"Unknown branch curve kind: {self.kind!r}")
        if self.argument not in CURVE_ARGUMENTS:
            raise ValueError(f"Unknown branch curve argument: {self.argument!r}")

    def __call__(self, x: float) -> float:
        if self.kind == "constant":
            return self.value
        if self.kind == "reciprocal":
            # x + 1 is clamped so negative counters cannot divide by zero
            return self.base - self.scale / max(x + 1.0, 1.0)
        return self.intercept + self.slope * x


@dataclass(frozen=True)
class GrowthTemplate:
    """Immutable species rule set shared by reference across cells."""

    name: str
    max_depth: int
    branch_curve: BranchCurve
    transition_colors: tuple[str, str]  # (start, end) hex
    stiffness_range: tuple[float, float]  # (start, end)

    def __post_init__(self) -> None:
        if self.max_depth < 0:
            raise ValueError("max_depth must be nonnegative")
        for hex_color in self.transition_colors:
            hex_to_rgb(hex_color)
        start, end = self.stiffness_range
        if not (0.0 <= start <= 1.0 and 0.0 <= end <= 1.0):
            raise ValueError("Stiffness range must lie in [0, 1]")

    @property
    def start_color(self) -> RGBColor:
        return hex_to_rgb(self.transition_colors[0])

    @property
    def end_color(self) -> RGBColor:
        return hex_to_rgb(self.transition_colors[1])

    def branch_probability(self, generation: int, branch_depth: int) -> float:
        """Raw curve value for a cell; may lie outside [0, 1]."""
        if self.branch_curve.argument == "branch_depth":
            return self.branch_curve(branch_depth)
        return self.branch_curve(generation)


TEMPLATES: dict[str, GrowthTemplate] = {
    # Negative until generation 9, so young trees grow straight up first.
    "tree": GrowthTemplate(
        name="tree",
        max_depth=4,
        branch_curve=BranchCurve(kind="reciprocal", base=0.5, scale=5.0),
        transition_colors=("#66ba5b", "#4c4f46"),
        stiffness_range=(0.2, 0.8),
    ),
    "custom": GrowthTemplate(
        name="custom",
        max_depth=4,
        branch_curve=BranchCurve(kind="linear", intercept=0.2, slope=-0.05),
        transition_colors=("#6b8e23", "#6b3323"),
        stiffness_range=(0.6, 0.8),
    ),
}

SEGMENT_LENGTH_THRESHOLD = 2


@dataclass(frozen=True)
class GrowthConfig:
    """
    Fixed constants of the growth engine.

    Live tunables (time scale, spacing, increment, iteration cap) are not
    here; they come from GrowthSettings and are read when needed.
    """

    # Stem growth tick: base + depth * per_depth / time_control
    # Only the depth term is scaled, so the base period ignores time_control.
    stem_base_interval: float = 5000.0
    stem_depth_interval: float = 50.0

    # Reproduction delay: (base + g * per_gen + depth * g * per_depth_gen) / time_control
    reproduction_base_delay: float = 2500.0
    reproduction_generation_delay: float = 100.0
    reproduction_depth_generation_delay: float = 10.0

    # Iteration cap: max_iterations - g * decay_g - depth * decay_d
    # Deeper and later cells mature sooner.
    generation_iteration_decay: float = 0.6
    depth_iteration_decay: float = 5.0

    # Branch angle sampling (radians)
    min_branch_angle: float = math.pi / 6
    max_branch_angle: float = math.pi / 3
    max_downward_angle: float = math.pi - 0.5
    fallback_branch_angle: float = math.pi / 4

    # Continuations before a stem lineage ends in a leaf
    segment_length_threshold: int = SEGMENT_LENGTH_THRESHOLD

    # Stem support constraints
    pin_stiffness: float = 1.0
    pin_damping: float = 0.3
    anchor_damping: float = 0.2
    stem_anchor_spread: float = 20.0  # horizontal offset = spread + width * factor
    stem_anchor_width_factor: float = 5.0
    stem_anchor_drop: float = 40.0  # anchors sit below the body
    anchor_rebuild_distance: float = 15.0  # drift before anchors are recreated
    stem_air_friction: float = 0.5

    # Leaf lifecycle
    leaf_max_age: int = 80
    leaf_maturity_divisor: int = 5  # mature_age = max_age // divisor
    leaf_base_interval: float = 4000.0
    leaf_generation_interval: float = 100.0
    leaf_generation_interval_cap: float = 3000.0
    leaf_remove_delay: float = 20000.0
    leaf_radius: float = 2.0
    leaf_fill: str = "#62BD89"
    leaf_anchor_stiffness: float = 0.8
    leaf_anchor_drop: float = 4.0
    leaf_air_friction: float = 0.1
    leaf_start_color: RGBAColor = field(default=RGBAColor(102, 186, 91, 0.8))
    leaf_end_color: RGBAColor = field(default=RGBAColor(181, 91, 29, 0.9))

    # Seed anchor (static body the first stem pins to)
    seed_width: float = 40.0
    seed_height: float = 8.0

    def __post_init__(self) -> None:
        if self.min_branch_angle > self.max_branch_angle:
            raise ValueError("min_branch_angle must not exceed max_branch_angle")
        if self.segment_length_threshold < 0:
            raise ValueError("segment_length_threshold must be nonnegative")
        if self.leaf_max_age <= 0:
            raise ValueError("leaf_max_age must be positive")
        if self.leaf_maturity_divisor <= 0:
            raise ValueError("leaf_maturity_divisor must be positive")

    @property
    def leaf_mature_age(self) -> int:
        return self.leaf_max_age // self.leaf_maturity_divisor
