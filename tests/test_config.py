"""
Tests for templates, branch curves and fixed constants.
"""

import math

import pytest

from sprout.config import (
    SEGMENT_LENGTH_THRESHOLD,
    TEMPLATES,
    BranchCurve,
    GrowthConfig,
    GrowthTemplate,
    RGBColor,
    hex_to_rgb,
)


class TestHexToRgb:
    """Tests for hex color parsing."""

    def test_parses_channels(self) -> None:
        """Each byte maps to one channel."""
        assert hex_to_rgb("#66ba5b") == RGBColor(102, 186, 91)

    def test_hash_is_optional(self) -> None:
        assert hex_to_rgb("4c4f46") == RGBColor(76, 79, 70)

    def test_css_and_mpl_forms(self) -> None:
        """Colors convert for CSS and matplotlib."""
        color = RGBColor(255, 0, 51)
        assert color.to_css() == "rgb(255,0,51)"
        assert color.to_mpl() == (1.0, 0.0, 0.2)


class TestBranchCurve:
    """Tests for declarative branch probability curves."""

    def test_constant(self) -> None:
        curve = BranchCurve(kind="constant", value=0.3)
        assert curve(0) == 0.3
        assert curve(50) == 0.3

    def test_reciprocal_matches_tree_formula(self) -> None:
        """Reciprocal curve is base - scale / (x + 1)."""
        curve = BranchCurve(kind="reciprocal", base=0.5, scale=5.0)
        for generation in range(20):
            assert math.isclose(curve(generation), 0.5 - 5 / (generation + 1))

    def test_reciprocal_guards_negative_input(self) -> None:
        """Denominator never drops below one."""
        curve = BranchCurve(kind="reciprocal", base=0.5, scale=5.0)
        assert math.isfinite(curve(-1))
        assert curve(-1) == curve(0)

    def test_linear(self) -> None:
        curve = BranchCurve(kind="linear", intercept=0.2, slope=-0.05)
        assert math.isclose(curve(2), 0.1)

    def test_out_of_range_values_are_not_clipped(self) -> None:
        """Saturation happens at the gate, not in the curve."""
        assert BranchCurve(kind="reciprocal", base=0.5, scale=5.0)(0) == -4.5
        assert BranchCurve(kind="constant", value=3.0)(0) == 3.0

    def test_unknown_kind_rejected(self) -> None:
        with pytest.raises(ValueError):
            BranchCurve(kind="sigmoid")

    def test_unknown_argument_rejected(self) -> None:
        with pytest.raises(ValueError):
            BranchCurve(argument="age")


class TestGrowthTemplate:
    """Tests for species templates."""

    def test_builtin_templates(self) -> None:
        """Both shipped templates are present and bounded in depth."""
        assert set(TEMPLATES) == {"tree", "custom"}
        for template in TEMPLATES.values():
            assert template.max_depth == 4

    def test_tree_colors(self) -> None:
        tree = TEMPLATES["tree"]
        assert tree.start_color == RGBColor(102, 186, 91)
        assert tree.end_color == RGBColor(76, 79, 70)

    def test_probability_argument_selection(self) -> None:
        """Curve is fed generation or branch depth as configured."""
        by_depth = GrowthTemplate(
            name="d",
            max_depth=3,
            branch_curve=BranchCurve(kind="linear", slope=1.0, argument="branch_depth"),
            transition_colors=("#000000", "#ffffff"),
            stiffness_range=(0.1, 0.9),
        )
        assert by_depth.branch_probability(generation=7, branch_depth=2) == 2.0
        assert TEMPLATES["custom"].branch_probability(generation=2, branch_depth=0) == pytest.approx(0.1)

    def test_template_is_immutable(self) -> None:
        with pytest.raises(AttributeError):
            TEMPLATES["tree"].max_depth = 10  # type: ignore[misc]

    def test_invalid_stiffness_rejected(self) -> None:
        with pytest.raises(ValueError):
            GrowthTemplate(
                name="bad",
                max_depth=1,
                branch_curve=BranchCurve(),
                transition_colors=("#000000", "#ffffff"),
                stiffness_range=(0.1, 1.5),
            )

    def test_negative_depth_rejected(self) -> None:
        with pytest.raises(ValueError):
            GrowthTemplate(
                name="bad",
                max_depth=-1,
                branch_curve=BranchCurve(),
                transition_colors=("#000000", "#ffffff"),
                stiffness_range=(0.1, 0.5),
            )


class TestGrowthConfig:
    """Tests for engine constants."""

    def test_defaults(self) -> None:
        config = GrowthConfig()
        assert config.segment_length_threshold == SEGMENT_LENGTH_THRESHOLD == 2
        assert config.leaf_max_age == 80
        assert config.leaf_mature_age == 16

    def test_branch_angles_between_30_and_60_degrees(self) -> None:
        config = GrowthConfig()
        assert math.isclose(math.degrees(config.min_branch_angle), 30.0)
        assert math.isclose(math.degrees(config.max_branch_angle), 60.0)

    def test_inverted_angle_range_rejected(self) -> None:
        with pytest.raises(ValueError):
            GrowthConfig(min_branch_angle=1.0, max_branch_angle=0.5)

    def test_nonpositive_leaf_age_rejected(self) -> None:
        with pytest.raises(ValueError):
            GrowthConfig(leaf_max_age=0)
