"""
Growth session: seed entry point and the single driver loop.

A session owns the arena, the event queue, the physics world and the random
generator. `begin_growth` plants the seed; `advance` then pops events in
deadline order and dispatches them to their cells:

    GrowTick     -> cell.grow_tick(), rescheduled while it returns True
    Reproduce    -> stem.reproduce()
    RemoveLeaf   -> leaf.remove_from_world()
    PhysicsFrame -> physics.step(interval)

Nothing here waits on a wall clock, so tests can drive growth
deterministically with a seeded generator.
"""

import logging
from dataclasses import dataclass

import numpy as np

from sprout.cells import GrowthContext, Leaf, Stem, StemState
from sprout.config import GrowthConfig, GrowthTemplate
from sprout.physics import BodyHandle, BodyStyle, PhysicsAdapter, PointMassWorld, Rectangle
from sprout.registry import CellArena, RegistrySnapshot
from sprout.scheduler import Event, EventQueue, GrowTick, PhysicsFrame, RemoveLeaf, Reproduce
from sprout.settings import GrowthSettings, SettingsStore

logger = logging.getLogger(__name__)


@dataclass
class GrowthSummary:
    """Scalar diagnostics of a session."""

    elapsed: float
    stems: int
    leaves: int
    finalized_stems: int
    fallen_leaves: int
    removed_leaves: int
    max_generation: int
    max_branch_depth: int
    events_processed: int

    def as_dict(self) -> dict[str, float]:
        return {
            "Elapsed": self.elapsed,
            "Stems": self.stems,
            "Leaves": self.leaves,
            "FinalizedStems": self.finalized_stems,
            "FallenLeaves": self.fallen_leaves,
            "RemovedLeaves": self.removed_leaves,
            "MaxGeneration": self.max_generation,
            "MaxBranchDepth": self.max_branch_depth,
            "EventsProcessed": self.events_processed,
        }


class GrowthSession:
    """One plant growing on one timeline."""

    def __init__(
        self,
        settings: SettingsStore | None = None,
        physics: PhysicsAdapter | None = None,
        rng: np.random.Generator | None = None,
        config: GrowthConfig | None = None,
        frame_interval: float | None = 16.0,
    ) -> None:
        self.context = GrowthContext(
            settings=settings if settings is not None else SettingsStore(),
            physics=physics if physics is not None else PointMassWorld(),
            arena=CellArena(),
            queue=EventQueue(),
            rng=rng if rng is not None else np.random.default_rng(),
            config=config if config is not None else GrowthConfig(),
        )
        self.frame_interval = frame_interval
        self.seed_anchor: BodyHandle | None = None
        self.seed_stem: Stem | None = None
        self.events_processed = 0
        self.removed_leaves = 0
        self._frames_running = False

    @property
    def arena(self) -> CellArena:
        return self.context.arena

    @property
    def queue(self) -> EventQueue:
        return self.context.queue

    @property
    def physics(self) -> PhysicsAdapter:
        return self.context.physics

    @property
    def settings(self) -> SettingsStore:
        return self.context.settings

    @property
    def now(self) -> float:
        return self.queue.now

    @property
    def started(self) -> bool:
        return self.seed_stem is not None

    def begin_growth(
        self,
        initial_settings: GrowthSettings | None = None,
        template: GrowthTemplate | None = None,
    ) -> Stem:
        """
        Plant the seed anchor and the first stem.

        Only the first call has any effect; later calls return the
        existing seed stem.
        """
        if self.seed_stem is not None:
            logger.warning("Growth already started; ignoring begin_growth")
            return self.seed_stem
        if initial_settings is not None:
            self.settings.replace(initial_settings)

        config = self.context.config
        simulation = self.settings.simulation
        self.seed_anchor = self.physics.create_body(
            Rectangle(config.seed_width, config.seed_height),
            simulation.base_position,
            BodyStyle(fill="#8b5a2b"),
            is_static=True,
        )
        self.seed_stem = Stem(
            self.context,
            width=simulation.cell_size,
            parent_body=self.seed_anchor,
            template=template,
        )
        if self.frame_interval is not None and self.frame_interval > 0:
            self.queue.push(PhysicsFrame(self.queue.after(self.frame_interval), self.frame_interval))
            self._frames_running = True
        logger.info(
            "Growth started with template %r at %s",
            self.seed_stem.template.name,
            simulation.base_position,
        )
        return self.seed_stem

    # -- driver loop ----------------------------------------------------------

    def step(self) -> Event | None:
        """Process the next event, if any."""
        if not len(self.queue):
            return None
        event = self.queue.pop()
        self._dispatch(event)
        self.events_processed += 1
        return event

    def _dispatch(self, event: Event) -> None:
        if isinstance(event, PhysicsFrame):
            self.physics.step(event.interval)
            self.queue.push(event.next())
            return

        cell = self.arena.get(event.handle)
        if cell is None:
            # cell was removed after this event was queued
            return
        if isinstance(event, GrowTick):
            if cell.grow_tick():
                self.queue.push(event.next())
        elif isinstance(event, Reproduce) and isinstance(cell, Stem):
            cell.reproduce()
        elif isinstance(event, RemoveLeaf) and isinstance(cell, Leaf):
            if cell.remove_from_world():
                self.removed_leaves += 1
        else:
            logger.warning(
                "Ignoring %s for %s cell %d", type(event).__name__, cell.kind.value, event.handle
            )

    def advance(self, duration: float) -> int:
        """Process every event due within `duration` ms. Returns the count."""
        deadline = self.now + duration
        processed = 0
        while True:
            due = self.queue.peek_time()
            if due is None or due > deadline:
                break
            self.step()
            processed += 1
        self.queue.advance_to(deadline)
        return processed

    def run_until_idle(self, max_events: int = 100_000) -> int:
        """
        Drain growth events until nothing but physics frames remain.

        Physics frames recur forever, so they do not count as pending work.
        """
        processed = 0
        while processed < max_events and self.has_pending_growth():
            self.step()
            processed += 1
        return processed

    def has_pending_growth(self) -> bool:
        # at most one PhysicsFrame is ever queued
        frames = 1 if self._frames_running else 0
        return len(self.queue) > frames

    # -- inspection -----------------------------------------------------------

    def snapshot(self) -> RegistrySnapshot:
        return self.arena.snapshot()

    def summary(self) -> GrowthSummary:
        stems = list(self.arena.stems())
        leaves = list(self.arena.leaves())
        return GrowthSummary(
            elapsed=self.now,
            stems=len(stems),
            leaves=len(leaves),
            finalized_stems=sum(1 for s in stems if s.state is StemState.FINALIZED),
            fallen_leaves=sum(1 for leaf in leaves if leaf.fallen),
            removed_leaves=self.removed_leaves,
            max_generation=max((s.generation for s in stems), default=0),
            max_branch_depth=max((s.branch_depth for s in stems), default=0),
            events_processed=self.events_processed,
        )

    def print_summary(self) -> None:
        """Print a formatted summary table to stdout."""
        summary = self.summary().as_dict()
        print("\n" + "=" * 40)
        print("GROWTH SUMMARY")
        print("=" * 40)
        for key, value in summary.items():
            if key == "Elapsed":
                print(f"{key:20s}: {value:>10.1f}")
            else:
                print(f"{key:20s}: {int(value):>10d}")
        print("=" * 40)

