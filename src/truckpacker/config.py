"""
Central configuration and data models for the truck-packing grid.

All modules import their core types from here to ensure consistency
across the grid, validator, registry, engine and persistence layers.

Classes:
    PieceTemplate — immutable authored shape (cell offsets + rule flags)
    Placement     — committed, id-tagged occupation of grid cells
    Candidate     — per-step proposal (template + anchor + rotation)
    GridConfig    — grid dimensions in cells and the cell edge length
    EngineConfig  — all tuneable parameters of one placement engine
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Tuple

import yaml

from truckpacker.simulator.rotation import Pose, Rotation


Cell = Tuple[int, int, int]


def as_cell(values) -> Cell:
    """Coerce any 3-sequence of integers into a ``Cell`` tuple."""
    x, y, z = values
    return (int(x), int(y), int(z))


# ─────────────────────────────────────────────────────────────────────────────
# Piece template (authoring-time shape data)
# ─────────────────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class PieceTemplate:
    """
    A furniture piece as authored: its shape and its physical rules.

    Attributes:
        name:               Unique catalog name.
        cells:              Local integer cell offsets (the shape).
        pivot:              Rotation/anchor reference in the same local frame.
                            Need not be one of the occupied cells.
        fragile_top:        Nothing may rest directly on this piece.
        must_be_standing:   Footprint must be exactly 1 × 2 × 1 (2 = vertical).
        forbid_upside_down: Local up may not point downward after rotation.
    """
    name: str
    cells: Tuple[Cell, ...]
    pivot: Cell = (0, 0, 0)
    fragile_top: bool = False
    must_be_standing: bool = False
    forbid_upside_down: bool = False

    def __post_init__(self) -> None:
        object.__setattr__(self, "cells", tuple(as_cell(c) for c in self.cells))
        object.__setattr__(self, "pivot", as_cell(self.pivot))
        if len(set(self.cells)) != len(self.cells):
            raise ValueError(f"Piece '{self.name}' lists the same cell offset twice")

    @property
    def size(self) -> int:
        """Number of occupied cells."""
        return len(self.cells)

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "cells": [list(c) for c in self.cells],
            "pivot": list(self.pivot),
            "fragile_top": self.fragile_top,
            "must_be_standing": self.must_be_standing,
            "forbid_upside_down": self.forbid_upside_down,
        }

    @classmethod
    def from_dict(cls, d: dict) -> "PieceTemplate":
        return cls(
            name=d["name"],
            cells=tuple(as_cell(c) for c in d["cells"]),
            pivot=as_cell(d.get("pivot", (0, 0, 0))),
            fragile_top=bool(d.get("fragile_top", False)),
            must_be_standing=bool(d.get("must_be_standing", False)),
            forbid_upside_down=bool(d.get("forbid_upside_down", False)),
        )


# ─────────────────────────────────────────────────────────────────────────────
# Candidate (ephemeral, recomputed every step)
# ─────────────────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class Candidate:
    """A not-yet-committed placement under evaluation."""
    template: Optional[PieceTemplate]
    anchor: Cell
    rotation: Rotation = field(default_factory=Rotation.identity)

    def __post_init__(self) -> None:
        object.__setattr__(self, "anchor", as_cell(self.anchor))


# ─────────────────────────────────────────────────────────────────────────────
# Placement (validated, immutable result of a confirm)
# ─────────────────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class Placement:
    """
    A committed placement inside the grid.

    Frozen so it can be handed to the presentation layer without risk of
    accidental mutation; a move is a remove followed by a new Placement.

    Attributes:
        placement_id: Positive id, unique among live placements.
        template:     The piece this placement instantiates.
        cells:        Absolute grid cells occupied.
        rotation:     Rotation applied to the template.
    """
    placement_id: int
    template: PieceTemplate
    cells: Tuple[Cell, ...]
    rotation: Rotation = field(default_factory=Rotation.identity)

    def __post_init__(self) -> None:
        object.__setattr__(self, "cells", tuple(as_cell(c) for c in self.cells))

    def to_dict(self) -> dict:
        return {
            "id": self.placement_id,
            "piece": self.template.name,
            "cells": [list(c) for c in self.cells],
            "rotation": self.rotation.to_list(),
        }


# ─────────────────────────────────────────────────────────────────────────────
# Grid Configuration
# ─────────────────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class GridConfig:
    """
    Dimensions of the cargo grid.

    Attributes:
        width:     Cells along x.
        height:    Cells along y (vertical).
        depth:     Cells along z.
        cell_size: Edge length of one cell in world units.
        origin:    Pose of the grid's (0, 0, 0) corner in world space.
    """
    width: int = 6
    height: int = 4
    depth: int = 10
    cell_size: float = 1.0
    origin: Pose = field(default_factory=Pose)

    def __post_init__(self) -> None:
        for name in ("width", "height", "depth"):
            value = getattr(self, name)
            if not isinstance(value, int) or value <= 0:
                raise ValueError(f"{name} must be a positive integer, got {value!r}")
        if not isinstance(self.cell_size, (int, float)) or self.cell_size <= 0:
            raise ValueError(f"cell_size must be a positive number, got {self.cell_size!r}")

    @property
    def size(self) -> Cell:
        return (self.width, self.height, self.depth)

    @property
    def cell_count(self) -> int:
        return self.width * self.height * self.depth

    def to_dict(self) -> dict:
        return {"width": self.width, "height": self.height,
                "depth": self.depth, "cell_size": self.cell_size,
                "origin": self.origin.to_dict()}

    @classmethod
    def from_dict(cls, d: dict) -> "GridConfig":
        d = dict(d)
        origin = d.pop("origin", None)
        if origin is not None:
            d["origin"] = Pose.from_dict(origin)
        return cls(**d)


# ─────────────────────────────────────────────────────────────────────────────
# Engine Configuration
# ─────────────────────────────────────────────────────────────────────────────

@dataclass
class EngineConfig:
    """
    All tuneable parameters for one placement engine.

    Attributes:
        grid:                       Grid dimensions.
        protect_placed_fragile_tops: Also reject candidates that would occupy
                                    the cell right above a live fragile piece.
        upright_tolerance:          Slack on the up·up test before a piece
                                    counts as upside down.
        verbose:                    Log every step at INFO instead of DEBUG.
    """
    grid: GridConfig = field(default_factory=GridConfig)
    protect_placed_fragile_tops: bool = False
    upright_tolerance: float = 1e-6
    verbose: bool = False

    def __post_init__(self) -> None:
        if isinstance(self.grid, dict):
            self.grid = GridConfig.from_dict(self.grid)
        if self.upright_tolerance < 0:
            raise ValueError("upright_tolerance must be non-negative")

    def to_dict(self) -> dict:
        return {
            "grid": self.grid.to_dict(),
            "protect_placed_fragile_tops": self.protect_placed_fragile_tops,
            "upright_tolerance": self.upright_tolerance,
            "verbose": self.verbose,
        }

    @classmethod
    def from_dict(cls, d: dict) -> "EngineConfig":
        return cls(**d)


def load_config(config_path) -> EngineConfig:
    """
    Load an engine configuration from a YAML file.

    Raises:
        FileNotFoundError: If the file doesn't exist.
        ValueError:        If the file is empty, malformed or has bad keys.
    """
    config_path = Path(config_path)
    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    with open(config_path, "r", encoding="utf-8") as f:
        try:
            data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ValueError(f"Error parsing YAML config: {e}")

    if not data:
        raise ValueError("Configuration file is empty")

    try:
        return EngineConfig.from_dict(data)
    except (TypeError, ValueError) as e:
        raise ValueError(f"Error creating config from data: {e}")
