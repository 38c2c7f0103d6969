"""
truckpacker — grid occupancy and placement validation for packing
furniture into a truck.

Public API:
    from truckpacker import EngineConfig, GridConfig, PieceTemplate, Candidate
    from truckpacker import PlacementEngine, OccupancyGrid, PlacementRegistry
    from truckpacker import Rotation, yaw, pitch, roll
    from truckpacker import load_catalog, save_layout, load_layout
"""

from truckpacker.config import (
    Candidate,
    EngineConfig,
    GridConfig,
    PieceTemplate,
    Placement,
    load_config,
)
from truckpacker.simulator.rotation import Pose, Rotation, pitch, roll, yaw
from truckpacker.simulator.grid_state import OccupancyGrid
from truckpacker.simulator.validator import (
    PlacementError,
    RejectReason,
    ValidationResult,
    evaluate_placement,
    validate_placement,
)
from truckpacker.simulator.registry import PlacementRegistry
from truckpacker.simulator.placement_engine import (
    EventKind,
    PlacementEngine,
    PlacementEvent,
)
from truckpacker.catalog import load_catalog, parse_catalog
from truckpacker.layout_io import load_layout, save_layout
from truckpacker.logging_config import setup_logging

__version__ = "0.1.0"

__all__ = [
    "Candidate",
    "EngineConfig",
    "GridConfig",
    "PieceTemplate",
    "Placement",
    "load_config",
    "Pose",
    "Rotation",
    "pitch",
    "roll",
    "yaw",
    "OccupancyGrid",
    "PlacementError",
    "RejectReason",
    "ValidationResult",
    "evaluate_placement",
    "validate_placement",
    "PlacementRegistry",
    "EventKind",
    "PlacementEngine",
    "PlacementEvent",
    "load_catalog",
    "parse_catalog",
    "load_layout",
    "save_layout",
    "setup_logging",
]
