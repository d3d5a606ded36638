"""
Live growth settings.

GrowthSettings is the read-only view cells pull tunables from. The
SettingsStore owns the current value, validates writes through pydantic and
notifies observers after every change. The "simulation" section holds
pre-growth settings that a front end may lock once growth starts; the
"display" section can change at any time.
"""

import logging
import pathlib
from collections.abc import Callable
from typing import Any, Literal, NamedTuple

import yaml
from pydantic import BaseModel, ConfigDict, Field

logger = logging.getLogger(__name__)

PRE_GROWTH_CATEGORY = "simulation"


class SimulationSettings(BaseModel):
    """Pre-growth settings."""

    model_config = ConfigDict(frozen=True)

    time_control: float = Field(default=10, ge=1, le=100, description="Time scale divisor")
    cell_spacing: float = Field(default=10, ge=1, le=50, description="Distance between cells")
    grow_increment: float = Field(
        default=0.5, ge=0.1, le=5, description="Width added per growth tick"
    )
    max_iterations: int = Field(
        default=80, ge=10, le=200, description="Max growth iterations of the seed stem"
    )
    cell_size: float = Field(
        default=1, ge=0.5, le=20, description="Initial radius of a new stem body"
    )
    plant_template: Literal["tree", "custom"] = Field(
        default="tree", description="Species template name"
    )
    base_position: tuple[float, float] = Field(
        default=(400.0, 480.0), description="World position of the seed anchor"
    )


class DisplaySettings(BaseModel):
    """Runtime display settings."""

    model_config = ConfigDict(frozen=True)

    constrain_visibility: bool = Field(default=False, description="Draw support constraints")
    render_skin: bool = Field(default=True, description="Render the organic plant skin")


class GrowthSettings(BaseModel):
    """Complete settings snapshot."""

    model_config = ConfigDict(frozen=True)

    simulation: SimulationSettings = Field(default_factory=SimulationSettings)
    display: DisplaySettings = Field(default_factory=DisplaySettings)


class SettingChange(NamedTuple):
    category: str
    key: str
    value: Any


Observer = Callable[[SettingChange], None]


class SettingsLockedError(RuntimeError):
    """Raised when a locked pre-growth setting is written."""


class SettingsStore:
    """Observable holder of the current GrowthSettings."""

    def __init__(self, settings: GrowthSettings | None = None) -> None:
        self._settings = settings if settings is not None else GrowthSettings()
        self._observers: list[Observer] = []
        self._pre_growth_locked = False

    @property
    def settings(self) -> GrowthSettings:
        return self._settings

    @property
    def simulation(self) -> SimulationSettings:
        return self._settings.simulation

    @property
    def display(self) -> DisplaySettings:
        return self._settings.display

    @property
    def pre_growth_locked(self) -> bool:
        return self._pre_growth_locked

    def add_observer(self, callback: Observer) -> None:
        self._observers.append(callback)

    def set_pre_growth_locked(self, locked: bool) -> None:
        self._pre_growth_locked = locked

    def replace(self, settings: GrowthSettings) -> None:
        """
        Swap in a whole snapshot (used before growth begins).

        Observers receive one SettingChange per key whose value differs.
        """
        if self._pre_growth_locked and settings.simulation != self.simulation:
            raise SettingsLockedError("Pre-growth settings are locked")
        before = self._settings.model_dump()
        self._settings = settings
        for category, values in settings.model_dump().items():
            section = getattr(settings, category)
            for key, value in values.items():
                if before[category][key] != value:
                    self._notify(SettingChange(category, key, getattr(section, key)))

    def _notify(self, change: SettingChange) -> None:
        logger.debug("Setting updated: %s.%s = %r", change.category, change.key, change.value)
        for callback in self._observers:
            callback(change)

    def update(self, category: str, key: str, value: Any) -> None:
        """
        Validate and apply a single setting, then notify observers.

        Raises:
            KeyError: unknown category or key
            SettingsLockedError: pre-growth section is locked
            pydantic.ValidationError: value out of range or wrong type
        """
        if category not in GrowthSettings.model_fields:
            raise KeyError(f"Unknown settings category: {category}")
        section = getattr(self._settings, category)
        if key not in type(section).model_fields:
            raise KeyError(f"Unknown setting: {category}.{key}")
        if category == PRE_GROWTH_CATEGORY and self._pre_growth_locked:
            raise SettingsLockedError(f"{category}.{key} is locked during growth")

        raw = self._settings.model_dump()
        raw[category][key] = value
        self._settings = GrowthSettings.model_validate(raw)
        self._notify(SettingChange(category, key, getattr(getattr(self._settings, category), key)))


def load_settings(path: str | pathlib.Path) -> GrowthSettings:
    """Read settings from a YAML mapping; missing keys keep their defaults."""
    path = pathlib.Path(path)
    with open(path, "r", encoding="utf-8") as f:
        raw = yaml.safe_load(f)
    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise ValueError(f"Settings file must contain a YAML mapping: {path}")
    return GrowthSettings.model_validate(raw)
