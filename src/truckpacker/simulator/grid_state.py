"""
Occupancy grid — tracks which cells of the cargo space are taken.

The OccupancyGrid is the single owner of occupancy state.  It provides:

  Spatial queries:
    .is_inside(cell)             — within [0, dimension) on every axis
    .is_free(cell)               — inside and not occupied
    .is_occupied(cell)           — inside and occupied
    .can_place(cells)            — atomic dry-run check for a cell set

  Mutation (registry only):
    .place(id, cells)            — mark cells, record id -> cells
    .remove(id)                  — free id's cells, forget the id

  Coordinate conversion:
    .cell_to_world(cell)         — continuous-space center of a cell
    .world_to_cell(point)        — cell containing a continuous point
    .cells_world_center(cells)   — center of a cell set's bounds

Out-of-range queries never raise: they report "not inside / not free /
not occupied" and callers clamp or pre-filter.
"""

import logging
from typing import Dict, Iterable, List, Optional, Sequence

import numpy as np

from truckpacker.config import Cell, GridConfig
from truckpacker.simulator.rotation import Pose

logger = logging.getLogger(__name__)


class OccupancyGrid:
    """
    Fixed-size 3D boolean lattice plus an id -> cells map.

    Invariant: a cell is occupied iff it belongs to exactly one live
    placement's cell list.  The registry keeps this true by only calling
    ``place`` with cells that passed ``can_place`` in the same step.
    """

    __slots__ = ("config", "_occ", "_cells_by_id")

    def __init__(self, config: Optional[GridConfig] = None) -> None:
        self.config: GridConfig = config or GridConfig()
        self._occ: np.ndarray = np.zeros(self.config.size, dtype=bool)
        self._cells_by_id: Dict[int, List[Cell]] = {}

    # ── Properties ───────────────────────────────────────────────────────

    @property
    def size(self) -> Cell:
        return self.config.size

    @property
    def cell_size(self) -> float:
        return self.config.cell_size

    @property
    def origin(self) -> Pose:
        return self.config.origin

    # ── Spatial queries ──────────────────────────────────────────────────

    def is_inside(self, cell: Cell) -> bool:
        x, y, z = cell
        w, h, d = self.config.size
        return 0 <= x < w and 0 <= y < h and 0 <= z < d

    def is_free(self, cell: Cell) -> bool:
        return self.is_inside(cell) and not self._occ[cell[0], cell[1], cell[2]]

    def is_occupied(self, cell: Cell) -> bool:
        return self.is_inside(cell) and bool(self._occ[cell[0], cell[1], cell[2]])

    def can_place(self, cells: Sequence[Cell]) -> bool:
        """
        True iff every cell is inside and free.

        An empty set is rejected; one bad cell rejects the whole set, and so
        does a cell listed twice.
        """
        if not cells or len(set(cells)) != len(cells):
            return False
        return all(self.is_free(c) for c in cells)

    def owner_of(self, cell: Cell) -> Optional[int]:
        """Placement id occupying *cell*, or None."""
        if not self.is_occupied(cell):
            return None
        for pid, cells in self._cells_by_id.items():
            if cell in cells:
                return pid
        return None

    # ── Mutation (registry only) ─────────────────────────────────────────

    def place(self, placement_id: int, cells: Sequence[Cell]) -> None:
        """
        Mark *cells* occupied and record them under *placement_id*.

        No occupancy validation happens here: callers must have checked
        ``can_place`` first.  Cells outside the lattice are skipped for the
        lattice write (numpy would wrap negative indices), and a live id is
        released before being re-recorded.
        """
        if placement_id in self._cells_by_id:
            logger.warning("Placement %d already on the grid, replacing its cells",
                           placement_id)
            self.remove(placement_id)

        stored: List[Cell] = []
        for c in cells:
            cell = (int(c[0]), int(c[1]), int(c[2]))
            if self.is_inside(cell):
                self._occ[cell] = True
            stored.append(cell)
        self._cells_by_id[placement_id] = stored

    def remove(self, placement_id: int) -> bool:
        """Free every cell of *placement_id*; False if the id is unknown."""
        cells = self._cells_by_id.pop(placement_id, None)
        if cells is None:
            return False
        for c in cells:
            if self.is_inside(c):
                self._occ[c] = False
        return True

    def clear(self) -> None:
        self._occ[...] = False
        self._cells_by_id.clear()

    # ── Bookkeeping queries ──────────────────────────────────────────────

    def cells_of(self, placement_id: int) -> Optional[List[Cell]]:
        """Copy of the cells recorded for *placement_id*, or None."""
        cells = self._cells_by_id.get(placement_id)
        return list(cells) if cells is not None else None

    def placement_ids(self) -> List[int]:
        return sorted(self._cells_by_id)

    def occupied_count(self) -> int:
        return int(np.count_nonzero(self._occ))

    def fill_rate(self) -> float:
        """Fraction of all cells that are occupied."""
        total = self.config.cell_count
        return self.occupied_count() / total if total else 0.0

    def occupancy_copy(self) -> np.ndarray:
        """Safe copy of the boolean lattice, indexed [x, y, z]."""
        return self._occ.copy()

    # ── Coordinate conversion ────────────────────────────────────────────

    def cell_to_local(self, cell: Cell) -> np.ndarray:
        """Grid-local center of *cell*: ``(index + 0.5) * cell_size``."""
        return (np.asarray(cell, dtype=np.float64) + 0.5) * self.cell_size

    def cell_to_world(self, cell: Cell, pose: Optional[Pose] = None) -> np.ndarray:
        """World-space center of *cell* under *pose* (default: grid origin)."""
        pose = pose or self.origin
        return pose.transform_point(self.cell_to_local(cell))

    def world_to_cell(self, point: Iterable[float], pose: Optional[Pose] = None) -> Cell:
        """
        Cell containing a world-space point.

        The result may lie outside the grid; use ``clamp_cell`` or
        ``is_inside`` before relying on it.
        """
        pose = pose or self.origin
        local = pose.inverse_transform_point(point)
        idx = np.floor(local / self.cell_size + 1e-9).astype(int)
        return (int(idx[0]), int(idx[1]), int(idx[2]))

    def clamp_cell(self, cell: Cell) -> Cell:
        w, h, d = self.config.size
        x, y, z = cell
        return (min(max(x, 0), w - 1), min(max(y, 0), h - 1), min(max(z, 0), d - 1))

    def cells_world_center(
        self, cells: Sequence[Cell], pose: Optional[Pose] = None,
    ) -> np.ndarray:
        """
        Center of the bounding box of the cells' world-space centers.

        This is where a visual instance of a placement gets positioned.
        """
        if not cells:
            raise ValueError("cells_world_center needs at least one cell")
        pts = np.array([self.cell_to_world(c, pose) for c in cells])
        return (pts.min(axis=0) + pts.max(axis=0)) * 0.5

    # ── Reference points (camera framing) ────────────────────────────────

    def _extent(self) -> np.ndarray:
        return np.asarray(self.config.size, dtype=np.float64) * self.cell_size

    def _local_to_world(self, local) -> np.ndarray:
        return self.origin.transform_point(local)

    def world_center(self) -> np.ndarray:
        return self._local_to_world(self._extent() * 0.5)

    def floor_center(self) -> np.ndarray:
        sx, _, sz = self._extent()
        return self._local_to_world((sx * 0.5, 0.0, sz * 0.5))

    def ceiling_center(self) -> np.ndarray:
        sx, sy, sz = self._extent()
        return self._local_to_world((sx * 0.5, sy, sz * 0.5))

    def layer_center(self, layer: int, use_cell_center: bool = True) -> np.ndarray:
        """Center of horizontal cell layer *layer* (middle of the cell by default)."""
        sx, _, sz = self._extent()
        y = (layer + 0.5) * self.cell_size if use_cell_center else layer * self.cell_size
        return self._local_to_world((sx * 0.5, y, sz * 0.5))

    def left_wall_center(self) -> np.ndarray:
        _, sy, sz = self._extent()
        return self._local_to_world((0.0, sy * 0.5, sz * 0.5))

    def right_wall_center(self) -> np.ndarray:
        sx, sy, sz = self._extent()
        return self._local_to_world((sx, sy * 0.5, sz * 0.5))

    def front_wall_center(self) -> np.ndarray:
        sx, sy, _ = self._extent()
        return self._local_to_world((sx * 0.5, sy * 0.5, 0.0))

    def back_wall_center(self) -> np.ndarray:
        sx, sy, sz = self._extent()
        return self._local_to_world((sx * 0.5, sy * 0.5, sz))

    # ── Representation ───────────────────────────────────────────────────

    def __repr__(self) -> str:
        w, h, d = self.config.size
        return (
            f"OccupancyGrid({w}x{h}x{d}, "
            f"placements={len(self._cells_by_id)}, "
            f"fill={self.fill_rate():.1%})"
        )
