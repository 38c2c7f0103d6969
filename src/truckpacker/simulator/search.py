"""
First-fit search — Bottom-Left-Fill over anchors and quarter-turns.

Algorithm:
  1. For each allowed rotation of the piece:
  2.   Scan anchors bottom layer first:  y low→high, z front→back, x left→right
  3.   Evaluate the candidate with the engine's own validator
  4. Return the lowest accepted (y, z, x, rotation index), or None.

The search only proposes candidates the engine would accept, so a caller
can step + confirm the result directly.
"""

from typing import Optional, Sequence, Tuple

from truckpacker.config import Candidate, Cell, PieceTemplate
from truckpacker.simulator.placement_engine import PlacementEngine
from truckpacker.simulator.rotation import Rotation, quarter_turns


def _first_accepted(
    engine: PlacementEngine, template: PieceTemplate, rotation: Rotation,
) -> Optional[Cell]:
    w, h, d = engine.grid.size
    for y in range(h):
        for z in range(d):
            for x in range(w):
                if engine.evaluate(Candidate(template, (x, y, z), rotation)).accepted:
                    return (x, y, z)
    return None


def find_first_fit(
    engine: PlacementEngine,
    template: PieceTemplate,
    rotations: Optional[Sequence[Rotation]] = None,
) -> Optional[Candidate]:
    """Lowest bottom-left anchor/rotation at which *template* is accepted."""
    if rotations is None:
        rotations = quarter_turns()

    best: Optional[Tuple[int, int, int, int]] = None  # (y, z, x, ridx)
    for ridx, rotation in enumerate(rotations):
        anchor = _first_accepted(engine, template, rotation)
        if anchor is None:
            continue
        x, y, z = anchor
        if best is None or (y, z, x, ridx) < best:
            best = (y, z, x, ridx)

    if best is None:
        return None
    y, z, x, ridx = best
    return Candidate(template, (x, y, z), rotations[ridx])
