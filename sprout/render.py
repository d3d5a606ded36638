"""
Organic plant renderer.

Draws a registry snapshot with matplotlib:
- stems as cubic Bezier curves from the parent position to the stem
  position, control points at 25% / 75%, line width = stem width
- leaves as two petal ellipses rotated +-45 degrees whose size grows with
  age until maturity

World coordinates use +y down, so the y axis is inverted.
"""

from __future__ import annotations

import matplotlib.pyplot as plt
from matplotlib.patches import Circle, Ellipse, PathPatch
from matplotlib.path import Path

from sprout.registry import LeafView, RegistrySnapshot, StemView

LEAF_BASE_SIZE = 4.0
LEAF_WIDTH_GROWTH = 0.2  # per tick of age, until maturity
LEAF_HEIGHT_GROWTH = 0.3


def stem_path(stem: StemView) -> Path | None:
    """Bezier path from parent to stem; None for a stem without a parent."""
    if stem.parent_position is None:
        return None
    (sx, sy), (ex, ey) = stem.parent_position, stem.position
    dx, dy = ex - sx, ey - sy
    vertices = [
        (sx, sy),
        (sx + dx * 0.25, sy + dy * 0.25),
        (ex - dx * 0.25, ey - dy * 0.25),
        (ex, ey),
    ]
    codes = [Path.MOVETO, Path.CURVE4, Path.CURVE4, Path.CURVE4]
    return Path(vertices, codes)


def leaf_petal_size(leaf: LeafView) -> tuple[float, float]:
    """(width, height) of the petal pair for a leaf's age."""
    grown = min(leaf.age, leaf.mature_age)
    return (
        LEAF_BASE_SIZE * grown * LEAF_WIDTH_GROWTH,
        LEAF_BASE_SIZE * grown * LEAF_HEIGHT_GROWTH,
    )


def leaf_petals(leaf: LeafView) -> list[Ellipse]:
    width, height = leaf_petal_size(leaf)
    x, y = leaf.position
    color = leaf.color.to_mpl()
    return [
        Ellipse(
            (x + side * width / 3, y),
            width=2 * width / 3,
            height=height,
            angle=side * 45.0,
            facecolor=color,
            edgecolor="none",
        )
        for side in (-1, 1)
    ]


def render_plant(
    snapshot: RegistrySnapshot,
    ax: plt.Axes | None = None,
    background: str = "#f5f1e6",
    margin: float = 40.0,
    skin: bool = True,
) -> plt.Axes:
    """
    Draw stems first, then leaves on top.

    With skin=False the raw bodies are drawn instead: one circle per stem
    and per leaf.

    Returns:
        The axes drawn on (created if not given)
    """
    if ax is None:
        _, ax = plt.subplots(figsize=(8, 8))
    ax.set_facecolor(background)

    xs: list[float] = []
    ys: list[float] = []
    for stem in snapshot.stems:
        xs.append(stem.position[0])
        ys.append(stem.position[1])
        if not skin:
            ax.add_patch(Circle(stem.position, stem.width, facecolor=stem.color.to_mpl()))
            continue
        path = stem_path(stem)
        if path is None:
            continue
        ax.add_patch(
            PathPatch(
                path,
                facecolor="none",
                edgecolor=stem.color.to_mpl(),
                linewidth=stem.width,
                capstyle="round",
            )
        )

    for leaf in snapshot.leaves:
        xs.append(leaf.position[0])
        ys.append(leaf.position[1])
        if not skin:
            ax.add_patch(Circle(leaf.position, leaf.radius, facecolor=leaf.color.to_mpl()))
            continue
        for petal in leaf_petals(leaf):
            ax.add_patch(petal)

    if xs:
        ax.set_xlim(min(xs) - margin, max(xs) + margin)
        ax.set_ylim(max(ys) + margin, min(ys) - margin)
    else:
        ax.invert_yaxis()
    ax.set_aspect("equal")
    ax.axis("off")
    return ax


def save_plant(
    snapshot: RegistrySnapshot,
    filepath: str,
    dpi: int = 150,
    skin: bool = True,
) -> None:
    """Render a snapshot and save it to an image file."""
    fig, ax = plt.subplots(figsize=(8, 8))
    render_plant(snapshot, ax=ax, skin=skin)
    fig.savefig(filepath, dpi=dpi, bbox_inches="tight", facecolor=fig.get_facecolor())
    plt.close(fig)
    print(f"Saved to {filepath}")
