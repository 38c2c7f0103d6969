"""
Placement registry — committed placements plus the ordered undo history.

The grid owns occupancy; the registry owns the Placement records and the
history of ids.  History is an order-preserving list rather than a stack
so that an arbitrary id can be dropped (pick-up for relocation) without
disturbing the entries placed after it.

Invariant: every id in ``history`` is a live placement on the grid.
"""

import logging
from typing import Dict, List, Optional, Sequence

from truckpacker.config import Cell, PieceTemplate, Placement
from truckpacker.simulator.grid_state import OccupancyGrid
from truckpacker.simulator.rotation import Rotation

logger = logging.getLogger(__name__)


class PlacementRegistry:
    """
    Records successful placements and supports LIFO undo.

    ``confirm`` trusts its caller: the cells must have passed the validator
    in the same step.
    """

    def __init__(self, grid: OccupancyGrid) -> None:
        self._grid = grid
        self._placements: Dict[int, Placement] = {}
        self._history: List[int] = []
        self._next_id: int = 1

    # ── Queries ──────────────────────────────────────────────────────────

    @property
    def grid(self) -> OccupancyGrid:
        return self._grid

    @property
    def history(self) -> List[int]:
        """Copy of the undo history, oldest first."""
        return list(self._history)

    @property
    def next_id(self) -> int:
        return self._next_id

    def get(self, placement_id: int) -> Optional[Placement]:
        return self._placements.get(placement_id)

    def placements(self) -> List[Placement]:
        return [self._placements[pid] for pid in sorted(self._placements)]

    def __contains__(self, placement_id: int) -> bool:
        return placement_id in self._placements

    def __len__(self) -> int:
        return len(self._placements)

    # ── Mutation ─────────────────────────────────────────────────────────

    def _allocate_id(self) -> int:
        while self._next_id in self._placements:
            self._next_id += 1
        pid = self._next_id
        self._next_id += 1
        return pid

    def confirm(
        self,
        template: PieceTemplate,
        cells: Sequence[Cell],
        rotation: Optional[Rotation] = None,
        placement_id: Optional[int] = None,
    ) -> int:
        """
        Commit *cells* to the grid and push the id onto the history.

        Pass *placement_id* to keep the id of a piece being relocated; it
        must not be live.  Otherwise the next unused positive id is taken.

        Raises:
            ValueError: *placement_id* is live or not positive.
        """
        if placement_id is None:
            placement_id = self._allocate_id()
        elif placement_id in self._placements:
            raise ValueError(f"Placement {placement_id} is still live")
        elif placement_id <= 0:
            raise ValueError(f"Placement ids must be positive, got {placement_id}")
        else:
            self._next_id = max(self._next_id, placement_id + 1)

        placement = Placement(
            placement_id=placement_id,
            template=template,
            cells=tuple(cells),
            rotation=rotation or Rotation.identity(),
        )
        self._grid.place(placement_id, placement.cells)
        self._placements[placement_id] = placement
        self._history.append(placement_id)
        logger.debug("Committed %s as placement %d (%d cells)",
                     template.name, placement_id, len(placement.cells))
        return placement_id

    def undo(self) -> Optional[int]:
        """Remove the most recent placement; None when history is empty."""
        if not self._history:
            return None
        placement_id = self._history.pop()
        self._grid.remove(placement_id)
        self._placements.pop(placement_id, None)
        return placement_id

    def remove_by_id(self, placement_id: int) -> bool:
        """
        Remove one placement wherever it sits in the history.

        The relative order of the remaining history entries is preserved.
        """
        if placement_id not in self._placements:
            return False
        self._grid.remove(placement_id)
        del self._placements[placement_id]
        if placement_id in self._history:
            self._history.remove(placement_id)
        return True

    def restore(
        self,
        placement: Placement,
        history_index: Optional[int] = None,
        track_history: bool = True,
    ) -> None:
        """
        Put a previously removed placement back under its own id.

        Used to cancel a pick-up and by the layout loader.  *history_index*
        re-inserts the id at its former history position (default: end);
        with *track_history* False the id stays out of the undo history.

        Raises:
            ValueError: the placement id is still live.
        """
        if placement.placement_id in self._placements:
            raise ValueError(f"Placement {placement.placement_id} is still live")
        self._grid.place(placement.placement_id, placement.cells)
        self._placements[placement.placement_id] = placement
        self._next_id = max(self._next_id, placement.placement_id + 1)
        if not track_history:
            return
        if history_index is None or history_index >= len(self._history):
            self._history.append(placement.placement_id)
        else:
            self._history.insert(max(history_index, 0), placement.placement_id)

    def clear(self) -> None:
        for pid in list(self._placements):
            self._grid.remove(pid)
        self._placements.clear()
        self._history.clear()
