"""
Arena owning every live cell.

Cells are addressed by stable integer handles instead of references, so a
removed leaf never leaves a dangling pointer behind. Two ordered registries
(stems, leaves) record creation order for the renderer. Stems are permanent
skeleton; leaves are spliced out after they fall.
"""

from collections.abc import Iterator
from typing import TYPE_CHECKING, NamedTuple

from sprout.config import RGBAColor, RGBColor

if TYPE_CHECKING:
    from sprout.cells import Cell, Leaf, Stem


class StemView(NamedTuple):
    """What a renderer needs to draw one stem segment."""

    handle: int
    position: tuple[float, float]
    parent_position: tuple[float, float] | None
    color: RGBColor
    width: float
    generation: int
    branch_depth: int
    state: str


class LeafView(NamedTuple):
    handle: int
    position: tuple[float, float]
    color: RGBAColor
    radius: float
    age: int
    mature_age: int
    maturity: float  # min(age, mature_age) / mature_age
    fallen: bool


class RegistrySnapshot(NamedTuple):
    stems: list[StemView]
    leaves: list[LeafView]


class CellArena:
    """Handle-based owner of all cells."""

    def __init__(self) -> None:
        self._cells: dict[int, "Cell"] = {}
        self._stems: list[int] = []
        self._leaves: list[int] = []
        self._next_handle = 0

    def __len__(self) -> int:
        return len(self._cells)

    def __contains__(self, handle: int) -> bool:
        return handle in self._cells

    def add_stem(self, stem: "Stem") -> int:
        handle = self._allocate(stem)
        self._stems.append(handle)
        return handle

    def add_leaf(self, leaf: "Leaf") -> int:
        handle = self._allocate(leaf)
        self._leaves.append(handle)
        return handle

    def _allocate(self, cell: "Cell") -> int:
        handle = self._next_handle
        self._next_handle += 1
        self._cells[handle] = cell
        return handle

    def get(self, handle: int) -> "Cell | None":
        return self._cells.get(handle)

    def remove_leaf(self, handle: int) -> bool:
        """Drop a leaf; returns False if it was already gone."""
        if handle not in self._cells or handle not in self._leaves:
            return False
        self._leaves.remove(handle)
        del self._cells[handle]
        return True

    def stems(self) -> Iterator["Stem"]:
        for handle in self._stems:
            yield self._cells[handle]  # type: ignore[misc]

    def leaves(self) -> Iterator["Leaf"]:
        for handle in self._leaves:
            yield self._cells[handle]  # type: ignore[misc]

    @property
    def stem_count(self) -> int:
        return len(self._stems)

    @property
    def leaf_count(self) -> int:
        return len(self._leaves)

    def snapshot(self) -> RegistrySnapshot:
        """Ordered copy of all live stems and leaves."""
        return RegistrySnapshot(
            stems=[stem.view() for stem in self.stems()],
            leaves=[leaf.view() for leaf in self.leaves()],
        )
