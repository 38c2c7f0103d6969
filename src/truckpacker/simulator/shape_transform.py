"""
Piece shape transform — local cell offsets to absolute grid cells.

For every local offset of a template:
    1. take the offset relative to the template's pivot,
    2. rotate it,
    3. round each component half-away-from-zero,
    4. add the anchor cell.

The shape is never re-normalised to a non-negative corner: the anchor
absorbs negative relative offsets, so rotating in place keeps the pivot
cell fixed instead of making the piece jump.
"""

from typing import Iterable, List, Optional, Tuple

import numpy as np

from truckpacker.config import Cell, PieceTemplate
from truckpacker.simulator.rotation import Rotation


def round_half_away(values: np.ndarray) -> np.ndarray:
    """Round to nearest integer, ties away from zero (numpy rounds to even)."""
    return np.sign(values) * np.floor(np.abs(values) + 0.5)


def rotate_offsets(
    offsets: Iterable[Cell], rotation: Rotation,
) -> List[Cell]:
    """Rotate integer offsets and snap the result back onto the lattice."""
    pts = np.asarray(list(offsets), dtype=np.float64)
    if pts.size == 0:
        return []
    rotated = round_half_away(pts @ rotation.as_matrix().T).astype(int)
    return [(int(x), int(y), int(z)) for x, y, z in rotated]


def compute_world_cells(
    template: Optional[PieceTemplate],
    anchor: Cell,
    rotation: Rotation,
) -> List[Cell]:
    """
    Absolute cells a template occupies at *anchor* under *rotation*.

    Returns an empty list when there is no template or it has no cells;
    the validator reports that as an invalid shape.
    """
    if template is None or not template.cells:
        return []

    px, py, pz = template.pivot
    relative = [(x - px, y - py, z - pz) for x, y, z in template.cells]
    ax, ay, az = anchor
    return [(x + ax, y + ay, z + az) for x, y, z in rotate_offsets(relative, rotation)]


def bounding_box(cells: Iterable[Cell]) -> Tuple[Cell, Cell]:
    """Inclusive (min, max) corners of *cells*."""
    arr = np.asarray(list(cells), dtype=int)
    if arr.size == 0:
        raise ValueError("bounding_box of an empty cell set")
    lo = arr.min(axis=0)
    hi = arr.max(axis=0)
    return (
        (int(lo[0]), int(lo[1]), int(lo[2])),
        (int(hi[0]), int(hi[1]), int(hi[2])),
    )


def footprint(cells: Iterable[Cell]) -> Cell:
    """Extent of the bounding box in cells along (x, y, z)."""
    lo, hi = bounding_box(cells)
    return (hi[0] - lo[0] + 1, hi[1] - lo[1] + 1, hi[2] - lo[2] + 1)


def top_cells(cells: Iterable[Cell]) -> List[Cell]:
    """The highest cell of every (x, z) column of a shape."""
    tops = {}
    for x, y, z in cells:
        if (x, z) not in tops or y > tops[(x, z)]:
            tops[(x, z)] = y
    return sorted((x, y, z) for (x, z), y in tops.items())
