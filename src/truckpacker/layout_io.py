"""
Layout persistence — save and reload a packed grid as JSON.

File layout:

    {
      "version": 1,
      "config": {... EngineConfig.to_dict() ...},
      "placements": [{"id": 1, "piece": "sofa", "cells": [[0,0,0], ...],
                      "rotation": [w, x, y, z]}, ...],
      "history": [1, 3, 2]
    }

Templates are stored by name and resolved against a catalog on load.
"""

import json
import logging
from pathlib import Path
from typing import Dict, Optional

from truckpacker.config import EngineConfig, PieceTemplate, Placement, as_cell
from truckpacker.simulator.placement_engine import PlacementEngine
from truckpacker.simulator.rotation import Rotation

logger = logging.getLogger(__name__)

LAYOUT_VERSION = 1


def layout_to_dict(engine: PlacementEngine) -> dict:
    registry = engine.registry
    return {
        "version": LAYOUT_VERSION,
        "config": engine.config.to_dict(),
        "placements": [p.to_dict() for p in registry.placements()],
        "history": registry.history,
    }


def save_layout(engine: PlacementEngine, output_path) -> Path:
    """Write the engine's live placements and undo history to JSON."""
    if engine.held is not None:
        logger.warning("Saving while placement %d is picked up; it is not saved",
                       engine.held.placement_id)
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    with output_path.open("w", encoding="utf-8") as f:
        json.dump(layout_to_dict(engine), f, indent=2)
    logger.info("Saved %d placements to %s", len(engine.registry), output_path)
    return output_path


def layout_from_dict(
    data: dict,
    catalog: Dict[str, PieceTemplate],
    config: Optional[EngineConfig] = None,
) -> PlacementEngine:
    """
    Rebuild an engine from layout data.

    Raises:
        ValueError: unknown piece name, unsupported version, overlapping or
                    out-of-grid cells, or a history id with no placement.
    """
    version = data.get("version", LAYOUT_VERSION)
    if version != LAYOUT_VERSION:
        raise ValueError(f"Unsupported layout version: {version}")

    if config is None:
        config = EngineConfig.from_dict(data.get("config", {}))
    engine = PlacementEngine(config)
    grid = engine.grid

    placements = {}
    for entry in data.get("placements", []):
        name = entry["piece"]
        if name not in catalog:
            raise ValueError(f"Layout references unknown piece {name!r}")
        placement = Placement(
            placement_id=int(entry["id"]),
            template=catalog[name],
            cells=tuple(as_cell(c) for c in entry["cells"]),
            rotation=Rotation.from_list(entry.get("rotation", [1.0, 0.0, 0.0, 0.0])),
        )
        if placement.placement_id <= 0 or placement.placement_id in placements:
            raise ValueError(f"Invalid or duplicate placement id {placement.placement_id}")
        if not grid.can_place(placement.cells):
            raise ValueError(
                f"Placement {placement.placement_id} overlaps or leaves the grid"
            )
        grid.place(placement.placement_id, placement.cells)
        placements[placement.placement_id] = placement

    history = [int(pid) for pid in data.get("history", [])]
    for pid in history:
        if pid not in placements:
            raise ValueError(f"History references unknown placement {pid}")

    # Re-commit through the registry in history order so the undo log matches.
    grid.clear()
    for pid in history:
        engine.registry.restore(placements[pid])
    for pid in sorted(set(placements) - set(history)):
        engine.registry.restore(placements[pid], track_history=False)

    logger.info("Loaded %d placements (%d undoable)", len(placements), len(history))
    return engine


def load_layout(
    input_path,
    catalog: Dict[str, PieceTemplate],
    config: Optional[EngineConfig] = None,
) -> PlacementEngine:
    input_path = Path(input_path)
    if not input_path.exists():
        raise FileNotFoundError(f"Layout file not found: {input_path}")
    with input_path.open("r", encoding="utf-8") as f:
        data = json.load(f)
    return layout_from_dict(data, catalog, config)
