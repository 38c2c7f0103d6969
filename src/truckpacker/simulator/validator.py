"""
Placement validator — ordered rule pipeline over a candidate cell set.

Every rule is a stateless check function that either returns or raises a
``PlacementError`` subclass carrying its reject reason.  The first failing
rule decides the reason; the order is fixed:

  1. Shape     — the shape transform produced at least one cell
  2. Space     — every cell is inside the grid and free
  3. Support   — a cell sits on the floor or on occupied geometry
  4. Fragile   — (fragile_top only) nothing occupied right above the piece
  5. Standing  — (must_be_standing only) footprint is exactly 1 × 2 × 1
  6. Upright   — (forbid_upside_down only) local up does not point down

``validate_placement`` raises; ``evaluate_placement`` never raises and
returns a ``ValidationResult`` for controllers that colour a ghost and
show a warning every step.  Neither one mutates the grid.
"""

from dataclasses import dataclass
from enum import Enum
from typing import AbstractSet, Optional, Sequence, Tuple

from truckpacker.config import Candidate, Cell, PieceTemplate
from truckpacker.simulator.grid_state import OccupancyGrid
from truckpacker.simulator.rotation import WORLD_UP, Rotation
from truckpacker.simulator.shape_transform import compute_world_cells, footprint


# ─────────────────────────────────────────────────────────────────────────────
# Reasons & errors
# ─────────────────────────────────────────────────────────────────────────────

class RejectReason(Enum):
    """Why a candidate was rejected; exactly one per rejection."""
    INVALID_SHAPE = "InvalidShape"
    BLOCKED = "Blocked"
    UNSUPPORTED = "Unsupported"
    FRAGILE_VIOLATION = "FragileViolation"
    NOT_STANDING = "NotStanding"
    UPSIDE_DOWN = "UpsideDown"


REJECT_MESSAGES = {
    RejectReason.INVALID_SHAPE: "This piece has no shape to place.",
    RejectReason.BLOCKED: "Not enough free space here.",
    RejectReason.UNSUPPORTED: "The piece needs to rest on the floor or on another piece.",
    RejectReason.FRAGILE_VIOLATION: "Nothing can be stacked on a fragile top.",
    RejectReason.NOT_STANDING: "This piece must stand upright (1 x 2 x 1).",
    RejectReason.UPSIDE_DOWN: "This piece cannot be placed upside down.",
}


class PlacementError(Exception):
    """Base class for placement validation errors."""
    reason: RejectReason = RejectReason.INVALID_SHAPE


class InvalidShapeError(PlacementError):
    """The template produced no cells."""
    reason = RejectReason.INVALID_SHAPE


class BlockedError(PlacementError):
    """A cell is outside the grid or already occupied."""
    reason = RejectReason.BLOCKED


class UnsupportedError(PlacementError):
    """No cell touches the floor or existing geometry from above."""
    reason = RejectReason.UNSUPPORTED


class FragileViolationError(PlacementError):
    """Something would rest on a fragile top."""
    reason = RejectReason.FRAGILE_VIOLATION


class NotStandingError(PlacementError):
    """A must-stand piece does not have a 1 × 2 × 1 footprint."""
    reason = RejectReason.NOT_STANDING


class UpsideDownError(PlacementError):
    """The piece's local up points downward."""
    reason = RejectReason.UPSIDE_DOWN


# ─────────────────────────────────────────────────────────────────────────────
# Result
# ─────────────────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class ValidationResult:
    """Accept/reject decision for one candidate."""
    accepted: bool
    cells: Tuple[Cell, ...] = ()
    reason: Optional[RejectReason] = None
    message: str = ""

    @property
    def warning(self) -> str:
        """On-screen warning text, empty when accepted."""
        if self.reason is None:
            return ""
        return REJECT_MESSAGES[self.reason]

    def to_dict(self) -> dict:
        return {
            "accepted": self.accepted,
            "reason": self.reason.value if self.reason else None,
            "cells": [list(c) for c in self.cells],
            "message": self.message,
        }


# ─────────────────────────────────────────────────────────────────────────────
# Rule checks
# ─────────────────────────────────────────────────────────────────────────────

STANDING_FOOTPRINT = (1, 2, 1)


def check_shape(cells: Sequence[Cell]) -> None:
    if not cells:
        raise InvalidShapeError("Shape transform produced no cells")


def check_space(grid: OccupancyGrid, cells: Sequence[Cell]) -> None:
    if grid.can_place(cells):
        return
    for c in cells:
        if not grid.is_inside(c):
            raise BlockedError(f"Cell {c} is outside the {grid.size} grid")
    for c in cells:
        if grid.is_occupied(c):
            raise BlockedError(f"Cell {c} is occupied by placement {grid.owner_of(c)}")
    if len(set(cells)) != len(cells):
        raise BlockedError("Shape collapses onto the same cell more than once")
    raise BlockedError("Cells cannot be placed")


def check_support(grid: OccupancyGrid, cells: Sequence[Cell]) -> None:
    own = set(cells)
    for x, y, z in cells:
        if y == 0:
            return
        below = (x, y - 1, z)
        if below not in own and grid.is_occupied(below):
            return
    raise UnsupportedError("Piece would float: no cell rests on the floor or another piece")


def check_fragile(
    grid: OccupancyGrid,
    cells: Sequence[Cell],
    template: PieceTemplate,
    protected_cells: Optional[AbstractSet[Cell]] = None,
) -> None:
    """
    Candidate side: a fragile candidate may not slide under occupied cells.

    Placed side (only when *protected_cells* is given): no candidate may
    take a cell directly above a live fragile piece's top.
    """
    own = set(cells)
    if template.fragile_top:
        for x, y, z in cells:
            above = (x, y + 1, z)
            if above not in own and grid.is_occupied(above):
                raise FragileViolationError(
                    f"Cell {above} above fragile piece '{template.name}' is occupied"
                )
    if protected_cells:
        hit = own & set(protected_cells)
        if hit:
            raise FragileViolationError(
                f"Cell {min(hit)} rests on top of a fragile piece"
            )


def check_standing(cells: Sequence[Cell], template: PieceTemplate) -> None:
    if not template.must_be_standing:
        return
    dims = footprint(cells)
    if dims != STANDING_FOOTPRINT:
        raise NotStandingError(
            f"'{template.name}' must stand 1x2x1, footprint is "
            f"{dims[0]}x{dims[1]}x{dims[2]}"
        )


def check_upright(
    rotation: Rotation, template: PieceTemplate, tolerance: float = 1e-6,
) -> None:
    if not template.forbid_upside_down:
        return
    up = rotation.up()
    dot = float(up[0] * WORLD_UP[0] + up[1] * WORLD_UP[1] + up[2] * WORLD_UP[2])
    if dot < -tolerance:
        raise UpsideDownError(f"'{template.name}' would be upside down (up·Y = {dot:.2f})")


# ─────────────────────────────────────────────────────────────────────────────
# Validator
# ─────────────────────────────────────────────────────────────────────────────

def validate_placement(
    grid: OccupancyGrid,
    template: Optional[PieceTemplate],
    cells: Sequence[Cell],
    rotation: Rotation,
    protected_cells: Optional[AbstractSet[Cell]] = None,
    upright_tolerance: float = 1e-6,
) -> bool:
    """
    Validate a candidate cell set against every rule, in order.

    Returns:
        True if all checks pass.

    Raises:
        InvalidShapeError:     no template or no cells.
        BlockedError:          a cell is outside the grid or occupied.
        UnsupportedError:      nothing under the piece.
        FragileViolationError: something would rest on a fragile top.
        NotStandingError:      must-stand footprint is not 1 × 2 × 1.
        UpsideDownError:       local up points downward.
    """
    if template is None:
        raise InvalidShapeError("No piece template")
    check_shape(cells)
    check_space(grid, cells)
    check_support(grid, cells)
    check_fragile(grid, cells, template, protected_cells)
    check_standing(cells, template)
    check_upright(rotation, template, upright_tolerance)
    return True


def evaluate_placement(
    grid: OccupancyGrid,
    candidate: Candidate,
    protected_cells: Optional[AbstractSet[Cell]] = None,
    upright_tolerance: float = 1e-6,
) -> ValidationResult:
    """Compute the candidate's cells and validate them without raising."""
    cells = tuple(compute_world_cells(candidate.template, candidate.anchor, candidate.rotation))
    try:
        validate_placement(
            grid, candidate.template, cells, candidate.rotation,
            protected_cells=protected_cells,
            upright_tolerance=upright_tolerance,
        )
    except PlacementError as e:
        return ValidationResult(accepted=False, cells=cells, reason=e.reason, message=str(e))
    return ValidationResult(accepted=True, cells=cells)
