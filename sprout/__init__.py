"""
Sprout Growth Engine

A time-driven plant growth engine: cells expand, change color, stiffen and
spawn children on their own timers until the species template stops them.

Modules:
    config: Constants, species templates and color types
    appearance: Color and stiffness interpolation
    settings: Live settings store (pydantic) and YAML loading
    physics: Physics boundary and a point-mass reference world
    scheduler: Time-ordered event queue
    registry: Handle arena and renderer snapshots
    cells: Stem and leaf lifecycles and reproduction
    growth: Growth session and driver loop
    render: Matplotlib renderer
"""

from sprout.appearance import (
    leaf_color,
    lerp_color,
    lerp_stiffness,
    transition_ratio,
)
from sprout.cells import CellKind, GrowthContext, Leaf, Stem, StemState
from sprout.config import (
    SEGMENT_LENGTH_THRESHOLD,
    TEMPLATES,
    BranchCurve,
    GrowthConfig,
    GrowthTemplate,
    RGBAColor,
    RGBColor,
    hex_to_rgb,
)
from sprout.growth import GrowthSession, GrowthSummary
from sprout.physics import (
    BodyStyle,
    Circle,
    ConstraintSpec,
    PhysicsAdapter,
    PointMassWorld,
    Rectangle,
)
from sprout.registry import CellArena, LeafView, RegistrySnapshot, StemView
from sprout.render import render_plant, save_plant
from sprout.scheduler import EventQueue, GrowTick, PhysicsFrame, RemoveLeaf, Reproduce
from sprout.settings import (
    DisplaySettings,
    GrowthSettings,
    SettingChange,
    SettingsLockedError,
    SettingsStore,
    SimulationSettings,
    load_settings,
)

__all__ = [
    # Config
    "BranchCurve",
    "GrowthConfig",
    "GrowthTemplate",
    "RGBAColor",
    "RGBColor",
    "SEGMENT_LENGTH_THRESHOLD",
    "TEMPLATES",
    "hex_to_rgb",
    # Appearance
    "leaf_color",
    "lerp_color",
    "lerp_stiffness",
    "transition_ratio",
    # Settings
    "DisplaySettings",
    "GrowthSettings",
    "SettingChange",
    "SettingsLockedError",
    "SettingsStore",
    "SimulationSettings",
    "load_settings",
    # Physics boundary
    "BodyStyle",
    "Circle",
    "ConstraintSpec",
    "PhysicsAdapter",
    "PointMassWorld",
    "Rectangle",
    # Scheduling
    "EventQueue",
    "GrowTick",
    "PhysicsFrame",
    "RemoveLeaf",
    "Reproduce",
    # Cells and registries
    "CellArena",
    "CellKind",
    "GrowthContext",
    "Leaf",
    "LeafView",
    "RegistrySnapshot",
    "Stem",
    "StemState",
    "StemView",
    # Session
    "GrowthSession",
    "GrowthSummary",
    # Rendering
    "render_plant",
    "save_plant",
]
