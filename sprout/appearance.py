"""
Appearance interpolation for growing cells.

Stems fade from the template's start color to its end color and stiffen
from the start to the end of the template's stiffness range as they age:

    ratio = clamp(age / iteration_cap, 0, 1)
    value = start + (end - start) * ratio

Leaves keep their start color until maturity, then fade towards autumn
colors (alpha included):

    ratio = (age - mature_age) / max_age   if age > mature_age else 0
"""

import math

from sprout.config import GrowthTemplate, RGBAColor, RGBColor


def clamp_ratio(ratio: float) -> float:
    """Clamp to [0, 1]; NaN counts as 0."""
    if math.isnan(ratio):
        return 0.0
    return min(max(ratio, 0.0), 1.0)


def transition_ratio(age: float, iteration_cap: float) -> float:
    """
    Progress fraction of a stem towards maturity.

    A cap of zero or below means the cell is born mature, so the ratio is 1.
    """
    if iteration_cap <= 0:
        return 1.0
    return clamp_ratio(age / iteration_cap)


def _round_half_up(x: float) -> int:
    return int(math.floor(x + 0.5))


def _lerp_channel(start: int, end: int, ratio: float) -> int:
    return _round_half_up(start + (end - start) * ratio)


def lerp_color(start: RGBColor, end: RGBColor, ratio: float) -> RGBColor:
    """Channel-wise linear interpolation; exact at both endpoints."""
    ratio = clamp_ratio(ratio)
    return RGBColor(
        r=_lerp_channel(start.r, end.r, ratio),
        g=_lerp_channel(start.g, end.g, ratio),
        b=_lerp_channel(start.b, end.b, ratio),
    )


def lerp_stiffness(stiffness_range: tuple[float, float], ratio: float) -> float:
    start, end = stiffness_range
    return start + (end - start) * clamp_ratio(ratio)


def stem_color(template: GrowthTemplate, ratio: float) -> RGBColor:
    return lerp_color(template.start_color, template.end_color, ratio)


def leaf_transition_ratio(age: int, mature_age: int, max_age: int) -> float:
    if age <= mature_age or max_age <= 0:
        return 0.0
    return clamp_ratio((age - mature_age) / max_age)


def leaf_color(
    age: int,
    mature_age: int,
    max_age: int,
    start: RGBAColor,
    end: RGBAColor,
) -> RGBAColor:
    """Leaf color at a given age."""
    ratio = leaf_transition_ratio(age, mature_age, max_age)
    return RGBAColor(
        r=_lerp_channel(start.r, end.r, ratio),
        g=_lerp_channel(start.g, end.g, ratio),
        b=_lerp_channel(start.b, end.b, ratio),
        a=start.a + (end.a - start.a) * ratio,
    )
