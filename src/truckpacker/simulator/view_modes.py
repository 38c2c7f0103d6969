"""
View-mode anchor resolution.

The controller raycasts the pointer onto a plane (external) and hands us
the raw hit cell.  Each view mode locks one axis to a face of the grid;
perspective mode works on the active horizontal layer instead.
"""

from enum import Enum
from typing import Tuple

from truckpacker.config import Cell, GridConfig


class ViewMode(Enum):
    PERSPECTIVE = "perspective"   # floor + two back walls
    TOP_2D = "top"                # floor layer
    BOTTOM_2D = "bottom"          # ceiling layer
    LEFT_2D = "left"              # x = 0 wall
    RIGHT_2D = "right"            # x = width - 1 wall
    FRONT_2D = "front"            # z = 0 wall
    BACK_2D = "back"              # z = depth - 1 wall


def _clamp(value: int, lo: int, hi: int) -> int:
    return min(max(value, lo), hi)


def locked_axis(mode: ViewMode, grid: GridConfig) -> Tuple[int, int]:
    """
    (axis index, fixed cell index) a 2D view pins, or (-1, -1) for perspective.
    """
    w, h, d = grid.size
    return {
        ViewMode.TOP_2D: (1, 0),
        ViewMode.BOTTOM_2D: (1, h - 1),
        ViewMode.LEFT_2D: (0, 0),
        ViewMode.RIGHT_2D: (0, w - 1),
        ViewMode.FRONT_2D: (2, 0),
        ViewMode.BACK_2D: (2, d - 1),
    }.get(mode, (-1, -1))


def resolve_anchor(
    hit_cell: Cell,
    mode: ViewMode,
    grid: GridConfig,
    active_layer: int = 0,
) -> Tuple[Cell, int]:
    """
    Turn a raw hit cell into the anchor for this step.

    Returns ``(anchor, active_layer)``; the layer follows the anchor's y so
    switching back to perspective keeps the same height.
    """
    w, h, d = grid.size
    x, y, z = hit_cell

    if mode is ViewMode.PERSPECTIVE:
        layer = _clamp(active_layer, 0, h - 1)
        anchor = (_clamp(x, 0, w - 1), layer, _clamp(z, 0, d - 1))
        return anchor, layer

    cell = [_clamp(x, 0, w - 1), _clamp(y, 0, h - 1), _clamp(z, 0, d - 1)]
    axis, fixed = locked_axis(mode, grid)
    cell[axis] = fixed
    anchor = (cell[0], cell[1], cell[2])
    return anchor, anchor[1]


def step_layer(active_layer: int, delta: int, grid: GridConfig) -> int:
    """Move the perspective layer up/down (scroll), clamped to the grid."""
    return _clamp(active_layer + delta, 0, grid.height - 1)
