"""
Placement engine — the step-driven authority for piece placement.

Data flow (one tick of the caller's loop):
  1. Controller resolves pointer input into an anchor cell and builds a
     Candidate(template, anchor, rotation).
  2. Controller calls   engine.step(candidate)  -> ValidationResult
     (ghost colour + warning text come from this result).
  3. On the confirm input, controller calls  engine.confirm()
     -> the cached, already-validated step is committed, an id returned.
  4. engine.undo() / engine.pick_up(id) / engine.cancel() edit history.

Every state change is followed by a PlacementEvent delivered synchronously
to registered listeners (visual instance, pop animation, audio cue).

Usage:
    engine = PlacementEngine(EngineConfig())
    result = engine.step(Candidate(sofa, (0, 0, 0)))
    if result.accepted:
        pid = engine.confirm()
"""

import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional, Set, Tuple, Union

from truckpacker.config import Candidate, Cell, EngineConfig, GridConfig, Placement
from truckpacker.monitoring.metrics import SessionMetrics
from truckpacker.simulator.grid_state import OccupancyGrid
from truckpacker.simulator.registry import PlacementRegistry
from truckpacker.simulator.shape_transform import top_cells
from truckpacker.simulator.validator import (
    RejectReason,
    ValidationResult,
    evaluate_placement,
)

logger = logging.getLogger(__name__)

HELD_PIECE_MISMATCH = "HeldPieceMismatch"


# ---------------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------------

class EventKind(Enum):
    PLACED = "placed"
    MOVED = "moved"
    UNDONE = "undone"
    PICKED_UP = "picked_up"
    RESTORED = "restored"


@dataclass(frozen=True)
class PlacementEvent:
    """Post-commit notification for the presentation layer."""
    kind: EventKind
    placement_id: int
    cells: Tuple[Cell, ...] = ()


Listener = Callable[[PlacementEvent], None]


# ---------------------------------------------------------------------------
# StepRecord -- immutable log entry for each confirm attempt
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class StepRecord:
    """
    Log of a single confirm attempt (success or rejection).

    Per-tick ``step`` calls are not recorded; only confirms are.
    """
    step: int
    piece: str
    success: bool
    placement_id: Optional[int] = None
    cells: Tuple[Cell, ...] = ()
    rejection_reason: str = ""
    fill_rate_after: float = 0.0
    elapsed_ms: float = 0.0

    def to_dict(self) -> dict:
        d = {
            "step": self.step,
            "piece": self.piece,
            "success": self.success,
            "fill_rate_after": round(self.fill_rate_after, 6),
            "elapsed_ms": round(self.elapsed_ms, 3),
        }
        if self.success:
            d["placement_id"] = self.placement_id
            d["cells"] = [list(c) for c in self.cells]
        else:
            d["rejection_reason"] = self.rejection_reason
        return d


# ---------------------------------------------------------------------------
# PlacementEngine
# ---------------------------------------------------------------------------

class PlacementEngine:
    """
    Grid + validator + registry behind one single-threaded façade.

    The engine is advanced only by its caller; nothing here blocks or
    schedules.  A multi-threaded host must serialise all calls itself.

    Public interface
    ~~~~~~~~~~~~~~~~
    evaluate(candidate)   -> ValidationResult   (pure)
    step(candidate)       -> ValidationResult   (cached for confirm)
    confirm()             -> id | None
    undo()                -> id | None
    pick_up(id)           -> Placement | None
    cancel()              -> id | None
    add_listener(cb)      -> None
    get_step_log()        -> List[StepRecord]
    get_summary()         -> dict
    """

    def __init__(self, config: Optional[EngineConfig] = None) -> None:
        if isinstance(config, GridConfig):
            config = EngineConfig(grid=config)
        self._config = config or EngineConfig()
        self._grid = OccupancyGrid(self._config.grid)
        self._registry = PlacementRegistry(self._grid)
        self._listeners: List[Listener] = []
        self._current: Optional[Tuple[Candidate, ValidationResult]] = None
        self._held: Optional[Placement] = None
        self._held_index: Optional[int] = None
        self._step_log: List[StepRecord] = []
        self._step_counter: int = 0
        self.metrics = SessionMetrics(grid_cells=self._config.grid.cell_count)

    # -- Public: state access ------------------------------------------------

    @property
    def config(self) -> EngineConfig:
        return self._config

    @property
    def grid(self) -> OccupancyGrid:
        return self._grid

    @property
    def registry(self) -> PlacementRegistry:
        return self._registry

    @property
    def held(self) -> Optional[Placement]:
        """The picked-up placement being relocated, if any."""
        return self._held

    @property
    def current(self) -> Optional[ValidationResult]:
        """Result of the latest ``step`` that is still valid to confirm."""
        return self._current[1] if self._current else None

    def history(self) -> List[int]:
        return self._registry.history

    def cells_of(self, placement_id: int) -> Optional[List[Cell]]:
        return self._grid.cells_of(placement_id)

    # -- Public: listeners ---------------------------------------------------

    def add_listener(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: Listener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    # -- Public: validation --------------------------------------------------

    def protected_cells(self) -> Set[Cell]:
        """Cells directly above the top of every live fragile placement."""
        protected: Set[Cell] = set()
        for placement in self._registry.placements():
            if not placement.template.fragile_top:
                continue
            for x, y, z in top_cells(placement.cells):
                protected.add((x, y + 1, z))
        return protected

    def evaluate(self, candidate: Candidate) -> ValidationResult:
        """Validate *candidate* against the current grid; no side effects."""
        protected = (
            self.protected_cells()
            if self._config.protect_placed_fragile_tops else None
        )
        return evaluate_placement(
            self._grid, candidate,
            protected_cells=protected,
            upright_tolerance=self._config.upright_tolerance,
        )

    def step(self, candidate: Candidate) -> ValidationResult:
        """
        Evaluate this tick's candidate and keep it as the one to confirm.
        """
        result = self.evaluate(candidate)
        self._current = (candidate, result)
        log = logger.info if self._config.verbose else logger.debug
        log("step anchor=%s accepted=%s reason=%s",
            candidate.anchor, result.accepted,
            result.reason.value if result.reason else "-")
        return result

    # -- Public: commit ------------------------------------------------------

    def confirm(self) -> Optional[int]:
        """
        Commit the latest accepted step.

        Returns the placement id, or None (and records a rejection) when
        there is no step, the step was rejected, or a piece is held and the
        step used another template.  A held piece keeps its original id.
        """
        t0 = time.perf_counter()
        if self._current is None:
            self._record_rejection("", "No candidate evaluated this step", t0)
            return None

        candidate, result = self._current
        piece = candidate.template.name if candidate.template else ""
        if not result.accepted:
            self._record_rejection(piece, result.reason.value, t0, result.reason)
            return None
        if self._held is not None and candidate.template is not self._held.template:
            self._record_rejection(
                piece, f"Holding '{self._held.template.name}', not '{piece}'",
                t0, HELD_PIECE_MISMATCH,
            )
            return None

        reuse_id = self._held.placement_id if self._held else None
        pid = self._registry.confirm(
            candidate.template, result.cells, candidate.rotation,
            placement_id=reuse_id,
        )
        kind = EventKind.MOVED if reuse_id is not None else EventKind.PLACED
        self._held = None
        self._held_index = None
        self._current = None

        if kind is EventKind.MOVED:
            self.metrics.record_move()
        self.metrics.record_confirm(self._grid.fill_rate())

        self._step_log.append(StepRecord(
            step=self._step_counter, piece=piece, success=True,
            placement_id=pid, cells=result.cells,
            fill_rate_after=self._grid.fill_rate(),
            elapsed_ms=(time.perf_counter() - t0) * 1000,
        ))
        self._step_counter += 1
        logger.info("%s %s as placement %d at %s",
                    "Moved" if kind is EventKind.MOVED else "Placed",
                    piece, pid, candidate.anchor)
        self._emit(PlacementEvent(kind, pid, result.cells))
        return pid

    def undo(self) -> Optional[int]:
        """Undo the most recent placement; None if there is nothing to undo."""
        cells = None
        history = self._registry.history
        if history:
            cells = tuple(self._grid.cells_of(history[-1]) or ())
        pid = self._registry.undo()
        if pid is None:
            logger.debug("Undo requested with empty history")
            return None
        self._current = None
        self.metrics.record_undo(self._grid.fill_rate())
        logger.info("Undid placement %d", pid)
        self._emit(PlacementEvent(EventKind.UNDONE, pid, cells or ()))
        return pid

    def pick_up(self, placement_id: int) -> Optional[Placement]:
        """
        Lift a live placement off the grid for relocation.

        The caller then steps candidates with ``held.template`` and
        confirms (same id) or cancels (restored where it was).
        """
        if self._held is not None:
            logger.warning("Already holding placement %d", self._held.placement_id)
            return None
        placement = self._registry.get(placement_id)
        if placement is None:
            logger.warning("Cannot pick up unknown placement %d", placement_id)
            return None

        history = self._registry.history
        self._held_index = history.index(placement_id) if placement_id in history else None
        self._registry.remove_by_id(placement_id)
        self._held = placement
        self._current = None
        logger.info("Picked up placement %d (%s)", placement_id, placement.template.name)
        self._emit(PlacementEvent(EventKind.PICKED_UP, placement_id, placement.cells))
        return placement

    def cancel(self) -> Optional[int]:
        """Put a held piece back at its original cells and history slot."""
        if self._held is None:
            return None
        placement = self._held
        self._registry.restore(
            placement,
            history_index=self._held_index,
            track_history=self._held_index is not None,
        )
        self._held = None
        self._held_index = None
        self._current = None
        logger.info("Restored placement %d", placement.placement_id)
        self._emit(PlacementEvent(EventKind.RESTORED, placement.placement_id, placement.cells))
        return placement.placement_id

    # -- Public: logs & summary ----------------------------------------------

    def get_step_log(self) -> List[StepRecord]:
        return list(self._step_log)

    def get_latest_step(self) -> Optional[StepRecord]:
        return self._step_log[-1] if self._step_log else None

    def get_summary(self) -> dict:
        """
        Keys: fill_rate, placements, occupied_cells, confirms,
              rejections, undo_depth, holding.
        """
        placed = [r for r in self._step_log if r.success]
        return {
            "fill_rate": self._grid.fill_rate(),
            "placements": len(self._registry),
            "occupied_cells": self._grid.occupied_count(),
            "confirms": len(placed),
            "rejections": len(self._step_log) - len(placed),
            "undo_depth": len(self._registry.history),
            "holding": self._held.placement_id if self._held else None,
        }

    # -- Private helpers -----------------------------------------------------

    def _record_rejection(
        self,
        piece: str,
        reason: str,
        t0: float,
        reject_reason: Union[RejectReason, str, None] = None,
    ) -> None:
        self.metrics.record_rejection(reject_reason)
        self._step_log.append(StepRecord(
            step=self._step_counter, piece=piece, success=False,
            rejection_reason=reason,
            fill_rate_after=self._grid.fill_rate(),
            elapsed_ms=(time.perf_counter() - t0) * 1000,
        ))
        self._step_counter += 1
        logger.debug("Confirm rejected: %s", reason)

    def _emit(self, event: PlacementEvent) -> None:
        for listener in list(self._listeners):
            listener(event)
