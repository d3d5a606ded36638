"""
Tests for stem and leaf lifecycles.

These tests drive cells directly (no session loop) so every tick and
reproduction step is explicit.
"""

import math

import numpy as np
import pytest

from sprout.cells import Cell, GrowthContext, Leaf, Stem, StemState
from sprout.config import TEMPLATES, BranchCurve, GrowthConfig, GrowthTemplate
from sprout.physics import BodyStyle, PointMassWorld, Rectangle
from sprout.registry import CellArena
from sprout.scheduler import EventQueue, GrowTick, RemoveLeaf, Reproduce
from sprout.settings import GrowthSettings, SettingsStore, SimulationSettings


def make_context(
    max_iterations: int = 10,
    config: GrowthConfig | None = None,
    seed: int = 0,
) -> GrowthContext:
    settings = GrowthSettings(simulation=SimulationSettings(max_iterations=max_iterations))
    return GrowthContext(
        settings=SettingsStore(settings),
        physics=PointMassWorld(),
        arena=CellArena(),
        queue=EventQueue(),
        rng=np.random.default_rng(seed),
        config=config if config is not None else GrowthConfig(),
    )


def constant_template(probability: float, max_depth: int = 4) -> GrowthTemplate:
    return GrowthTemplate(
        name="constant",
        max_depth=max_depth,
        branch_curve=BranchCurve(kind="constant", value=probability),
        transition_colors=("#66ba5b", "#4c4f46"),
        stiffness_range=(0.2, 0.8),
    )


def plant_seed(context: GrowthContext, template: GrowthTemplate | None = None, **kwargs) -> Stem:
    anchor = context.physics.create_body(
        Rectangle(40, 8),
        context.settings.simulation.base_position,
        BodyStyle(),
        is_static=True,
    )
    return Stem(context, parent_body=anchor, template=template, **kwargs)


class TestStemCreation:
    """Tests for a freshly planted stem."""

    def test_base_cell_is_abstract(self) -> None:
        with pytest.raises(TypeError):
            Cell(make_context(), None)  # type: ignore[abstract]

    def test_registered_and_scheduled(self) -> None:
        """A new stem owns a body, three supports and two timers."""
        context = make_context()
        stem = plant_seed(context)

        assert context.arena.get(stem.handle) is stem
        assert len(stem.constraints) == 3
        assert [type(e) for e in context.queue.pending()] == [Reproduce, GrowTick]

    def test_position_one_spacing_above_parent(self) -> None:
        context = make_context()
        stem = plant_seed(context)
        x, y = context.settings.simulation.base_position
        assert stem.position == (x, y - context.settings.simulation.cell_spacing)

    def test_initial_appearance_is_template_start(self) -> None:
        context = make_context()
        stem = plant_seed(context)
        assert stem.color == TEMPLATES["tree"].start_color
        assert stem.stiffness == TEMPLATES["tree"].stiffness_range[0]
        assert stem.state is StemState.GROWING

    def test_timer_formulas(self) -> None:
        """Intervals and delays follow generation and depth."""
        context = make_context(max_iterations=80)
        stem = plant_seed(context, generation=3, branch_depth=2)
        assert stem.growth_interval() == 5000 + 2 * 50 / 10
        assert stem.reproduction_delay() == (2500 + 3 * 100 + 2 * 3 * 10) / 10
        assert math.isclose(stem.iteration_cap(), 80 - 3 * 0.6 - 2 * 5)


class TestStemGrowth:
    """Tests for ticking a stem to maturity."""

    def test_width_monotonic(self) -> None:
        context = make_context()
        stem = plant_seed(context)
        widths = [stem.width]
        for _ in range(10):
            stem.grow_tick()
            widths.append(stem.width)
        assert all(b > a for a, b in zip(widths, widths[1:]))
        assert widths[-1] == 1.0 + 10 * 0.5

    def test_mature_then_finalized(self) -> None:
        """The cap-reaching tick marks MATURE; the next one freezes."""
        context = make_context(max_iterations=10)
        stem = plant_seed(context)

        for _ in range(9):
            assert stem.grow_tick()
            assert stem.state is StemState.GROWING
        assert stem.grow_tick()
        assert stem.state is StemState.MATURE

        assert not stem.grow_tick()
        assert stem.state is StemState.FINALIZED
        assert context.physics.is_static(stem.body)
        assert stem.constraints == []
        assert context.physics.constraint_count == 0

    def test_finalized_stem_stops_ticking(self) -> None:
        context = make_context()
        stem = plant_seed(context)
        stem.finalize()
        width = stem.width
        assert not stem.grow_tick()
        assert stem.width == width

    def test_color_reaches_end_exactly(self) -> None:
        context = make_context()
        stem = plant_seed(context)
        for _ in range(10):
            stem.grow_tick()
        assert stem.color == TEMPLATES["tree"].end_color

    def test_stiffness_applied_to_supports(self) -> None:
        """Support constraints stiffen with the stem."""
        context = make_context()
        stem = plant_seed(context)
        for _ in range(5):
            stem.grow_tick()
        assert math.isclose(stem.stiffness, 0.5)
        for constraint in stem.constraints:
            assert math.isclose(context.physics.stiffness(constraint), 0.5)

    def test_anchors_rebuilt_after_drift(self) -> None:
        """Moving past the rebuild distance recreates all three supports."""
        context = make_context(max_iterations=10)
        stem = plant_seed(context)
        old = list(stem.constraints)
        x, y = stem.position
        context.physics.set_position(stem.body, (x + 30.0, y))

        stem.grow_tick()

        assert len(stem.constraints) == 3
        assert set(stem.constraints).isdisjoint(old)
        assert not any(context.physics.has_constraint(c) for c in old)

        config = context.config
        spread = config.stem_anchor_spread + stem.width * config.stem_anchor_width_factor
        _, left, right = (context.physics.constraint_spec(c) for c in stem.constraints)
        assert left.point_a == (x + 30.0 - spread, y + config.stem_anchor_drop)
        assert right.point_a == (x + 30.0 + spread, y + config.stem_anchor_drop)
        for constraint in stem.constraints:
            assert math.isclose(context.physics.stiffness(constraint), 0.2 + 0.6 / 10)

    def test_anchors_kept_for_small_drift(self) -> None:
        context = make_context()
        stem = plant_seed(context)
        old = list(stem.constraints)
        x, y = stem.position
        context.physics.set_position(stem.body, (x + 5.0, y))
        stem.grow_tick()
        assert stem.constraints == old

    def test_no_budget_finalizes_immediately(self) -> None:
        """A cap at or below zero counts as fully transitioned."""
        context = make_context(max_iterations=10)
        stem = plant_seed(context, generation=20)
        assert stem.iteration_cap() <= 0
        assert stem.transition_ratio() == 1.0
        assert not stem.grow_tick()
        assert stem.state is StemState.FINALIZED


class TestReproduction:
    """Tests for the one-shot reproduction step."""

    def test_continuation_below_threshold(self) -> None:
        context = make_context()
        stem = plant_seed(context, template=constant_template(0.0))

        children = stem.reproduce()

        assert len(children) == 1
        child = children[0]
        assert isinstance(child, Stem)
        assert (child.generation, child.branch_depth, child.segment_length) == (1, 0, 1)
        assert child.growth_angle == stem.growth_angle
        assert child.parent == stem.handle
        assert stem.reproduced

    def test_leaf_at_threshold(self) -> None:
        context = make_context()
        stem = plant_seed(context, template=constant_template(0.0), segment_length=2)

        children = stem.reproduce()

        assert len(children) == 1
        assert isinstance(children[0], Leaf)
        assert context.arena.leaf_count == 1

    def test_branch_and_continuation(self) -> None:
        """Probability one spawns a branch before the continuation."""
        context = make_context()
        stem = plant_seed(context, template=constant_template(1.0))

        branch, continuation = stem.reproduce()

        assert (branch.branch_depth, branch.segment_length) == (1, 0)
        assert (continuation.branch_depth, continuation.segment_length) == (0, 1)
        assert branch.growth_angle != 0.0

    def test_no_branch_at_max_depth(self) -> None:
        context = make_context()
        stem = plant_seed(context, template=constant_template(1.0, max_depth=1), branch_depth=1)
        assert stem.try_branch() is None

    def test_negative_probability_never_branches(self) -> None:
        """Young tree stems have a negative curve value and never branch."""
        context = make_context()
        stem = plant_seed(context)
        for _ in range(20):
            assert stem.try_branch() is None

    def test_depth_never_exceeds_max(self) -> None:
        context = make_context(max_iterations=200)
        template = constant_template(1.0, max_depth=2)
        frontier = [plant_seed(context, template=template)]
        for _ in range(4):
            spawned: list[Stem] = []
            for stem in frontier:
                spawned.extend(c for c in stem.reproduce() if isinstance(c, Stem))
            frontier = spawned

        depths = [stem.branch_depth for stem in context.arena.stems()]
        assert max(depths) == 2

    def test_reproduce_after_finalize_still_spawns(self) -> None:
        """Reproduction is not ordered against finalization."""
        context = make_context()
        stem = plant_seed(context)
        for _ in range(11):
            stem.grow_tick()
        assert stem.state is StemState.FINALIZED

        children = stem.reproduce()
        assert len(children) == 1
        assert context.arena.stem_count == 2

    def test_exhausted_stem_spawns_nothing(self) -> None:
        context = make_context(max_iterations=10)
        stem = plant_seed(context, template=constant_template(1.0), generation=20)
        assert stem.reproduce() == []
        assert stem.reproduced
        assert context.arena.stem_count == 1

    def test_branch_angle_range(self) -> None:
        """Turns are 30-60 degrees either way from the current angle."""
        context = make_context(seed=3)
        stem = plant_seed(context)
        for _ in range(50):
            turn = abs(stem.branch_angle())
            assert math.pi / 6 <= turn <= math.pi / 3

    def test_branch_angle_redirected_when_pointing_down(self) -> None:
        context = make_context(seed=5)
        stem = plant_seed(context, growth_angle=2.5)
        for _ in range(50):
            angle = stem.branch_angle()
            assert angle == math.pi / 4 or 2.5 - math.pi / 3 <= angle <= 2.5 - math.pi / 6


class TestLeaf:
    """Tests for the leaf lifecycle."""

    def make_leaf(self) -> tuple[GrowthContext, Stem, Leaf]:
        context = make_context(config=GrowthConfig(segment_length_threshold=0))
        stem = plant_seed(context, template=constant_template(0.0))
        (leaf,) = stem.reproduce()
        assert isinstance(leaf, Leaf)
        return context, stem, leaf

    def test_inherits_generation(self) -> None:
        context, stem, leaf = self.make_leaf()
        assert leaf.generation == stem.generation
        assert leaf.parent_stem is stem
        assert len(leaf.constraints) == 3

    def test_growth_interval(self) -> None:
        _, _, leaf = self.make_leaf()
        assert leaf.growth_interval() == 4000 / 10

    def test_maturity_triggers_one_new_segment(self) -> None:
        """The seventeenth tick (age 16) grows the parent exactly once."""
        context, stem, leaf = self.make_leaf()

        for _ in range(16):
            assert leaf.grow_tick()
        assert context.arena.stem_count == 1

        assert leaf.grow_tick()
        assert context.arena.stem_count == 2
        new_stem = list(context.arena.stems())[-1]
        assert (new_stem.generation, new_stem.segment_length) == (1, 0)

        while leaf.grow_tick():
            pass
        assert context.arena.stem_count == 2
        assert leaf.age == 80

    def test_detach_at_max_age(self) -> None:
        context, _, leaf = self.make_leaf()
        ticks = 0
        while leaf.grow_tick():
            ticks += 1
        assert ticks == 80
        assert leaf.fallen
        assert leaf.constraints == []
        assert len(context.queue.pending(RemoveLeaf)) == 1

    def test_detach_idempotent(self) -> None:
        context, _, leaf = self.make_leaf()
        assert leaf.detach()
        assert not leaf.detach()
        assert len(context.queue.pending(RemoveLeaf)) == 1
        assert not leaf.grow_tick()

    def test_remove_from_world_once(self) -> None:
        context, _, leaf = self.make_leaf()
        leaf.detach()
        assert leaf.remove_from_world()
        assert not leaf.remove_from_world()
        assert context.arena.leaf_count == 0
        assert not context.physics.has_body(leaf.body)

    def test_color_and_maturity(self) -> None:
        context, _, leaf = self.make_leaf()
        assert leaf.color == context.config.leaf_start_color
        for _ in range(8):
            leaf.grow_tick()
        assert leaf.maturity == 0.5
        while leaf.grow_tick():
            pass
        # (80 - 16) / 80 of the way to the autumn color when it falls
        assert leaf.color.r == 165
        assert leaf.maturity == 1.0
