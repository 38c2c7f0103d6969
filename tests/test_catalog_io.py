"""
Tests for configuration loading, the piece catalog and layout files.

Run with:
    python -m pytest tests/test_catalog_io.py -v
"""

import sys
import os
import json

import pytest
import yaml
from pydantic import ValidationError

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from truckpacker.catalog import load_catalog, parse_catalog
from truckpacker.config import Candidate, EngineConfig, GridConfig, PieceTemplate, load_config
from truckpacker.layout_io import layout_from_dict, layout_to_dict, load_layout, save_layout
from truckpacker.simulator.placement_engine import PlacementEngine
from truckpacker.simulator.rotation import Rotation

DATASET_DIR = os.path.join(os.path.dirname(__file__), "..", "dataset")


# ---------------------------------------------------------------------------
# Shared fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def catalog():
    return {
        "cube": PieceTemplate(name="cube", cells=((0, 0, 0),)),
        "bar": PieceTemplate(name="bar", cells=((0, 0, 0), (1, 0, 0)), fragile_top=True),
    }


@pytest.fixture
def packed_engine(catalog):
    engine = PlacementEngine(EngineConfig(grid=GridConfig(width=4, height=3, depth=4)))
    for template, anchor, rotation in [
        (catalog["bar"], (0, 0, 0), Rotation.identity()),
        (catalog["cube"], (3, 0, 3), Rotation.identity()),
        (catalog["bar"], (2, 0, 1), Rotation.about_axis("y", 90)),
    ]:
        engine.step(Candidate(template, anchor, rotation))
        assert engine.confirm() is not None
    return engine


# ---------------------------------------------------------------------------
# 1. Engine configuration
# ---------------------------------------------------------------------------

class TestLoadConfig:
    def test_load_yaml(self, tmp_path):
        path = tmp_path / "engine.yaml"
        path.write_text(yaml.safe_dump({
            "grid": {"width": 3, "height": 2, "depth": 5, "cell_size": 0.5},
            "protect_placed_fragile_tops": True,
        }))
        cfg = load_config(path)
        assert cfg.grid.size == (3, 2, 5)
        assert cfg.grid.cell_size == 0.5
        assert cfg.protect_placed_fragile_tops is True

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path / "nope.yaml")

    def test_empty_file(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("")
        with pytest.raises(ValueError):
            load_config(path)

    def test_unknown_key(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("colour: red\n")
        with pytest.raises(ValueError):
            load_config(path)

    def test_bad_grid(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("grid: {width: 0}\n")
        with pytest.raises(ValueError):
            load_config(path)

    def test_negative_tolerance(self):
        with pytest.raises(ValueError):
            EngineConfig(upright_tolerance=-1.0)


# ---------------------------------------------------------------------------
# 2. Catalog
# ---------------------------------------------------------------------------

class TestCatalog:
    def test_sample_catalog_loads(self):
        templates = load_catalog(os.path.join(DATASET_DIR, "furniture.yaml"))
        assert {"sofa", "lamp", "box"} <= set(templates)
        lamp = templates["lamp"]
        assert lamp.must_be_standing and lamp.fragile_top
        assert templates["sofa"].pivot == (1, 0, 0)

    def test_parse_defaults(self):
        templates = parse_catalog({"pieces": [{"name": "box", "cells": [[0, 0, 0]]}]})
        box = templates["box"]
        assert box.pivot == (0, 0, 0)
        assert not (box.fragile_top or box.must_be_standing or box.forbid_upside_down)

    def test_duplicate_names(self):
        data = {"pieces": [{"name": "a", "cells": [[0, 0, 0]]},
                           {"name": "a", "cells": [[0, 0, 0]]}]}
        with pytest.raises(ValueError):
            parse_catalog(data)

    @pytest.mark.parametrize("piece", [
        {"name": "", "cells": [[0, 0, 0]]},
        {"name": "a", "cells": []},
        {"name": "a", "cells": [[0, 0]]},
        {"name": "a", "cells": [[0, 0, 0], [0, 0, 0]]},
        {"name": "a", "cells": [[0, 0, 0]], "pivot": [0, 0]},
    ])
    def test_malformed_pieces(self, piece):
        with pytest.raises(ValidationError):
            parse_catalog({"pieces": [piece]})

    def test_missing_and_empty_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_catalog(tmp_path / "missing.yaml")
        empty = tmp_path / "empty.yaml"
        empty.write_text("")
        with pytest.raises(ValueError):
            load_catalog(empty)


# ---------------------------------------------------------------------------
# 3. Layout files
# ---------------------------------------------------------------------------

class TestLayout:
    def test_save_and_load(self, packed_engine, catalog, tmp_path):
        path = save_layout(packed_engine, tmp_path / "out" / "layout.json")
        loaded = load_layout(path, catalog)
        assert loaded.config.grid.size == (4, 3, 4)
        assert loaded.history() == packed_engine.history()
        assert (loaded.grid.occupancy_copy() == packed_engine.grid.occupancy_copy()).all()
        for placement in packed_engine.registry.placements():
            again = loaded.registry.get(placement.placement_id)
            assert again.cells == placement.cells
            assert again.rotation.is_close(placement.rotation)
            assert again.template is catalog[placement.template.name]

    def test_loaded_engine_keeps_working(self, packed_engine, catalog):
        loaded = layout_from_dict(layout_to_dict(packed_engine), catalog)
        assert loaded.undo() == 3
        loaded.step(Candidate(catalog["cube"], (0, 0, 3)))
        assert loaded.confirm() == 4

    def test_file_contents(self, packed_engine, tmp_path):
        path = save_layout(packed_engine, tmp_path / "layout.json")
        data = json.loads(path.read_text())
        assert data["version"] == 1
        assert data["history"] == [1, 2, 3]
        assert data["placements"][0] == {
            "id": 1, "piece": "bar", "cells": [[0, 0, 0], [1, 0, 0]],
            "rotation": [1.0, 0.0, 0.0, 0.0],
        }

    def test_non_history_placements_are_not_undoable(self, packed_engine, catalog):
        data = layout_to_dict(packed_engine)
        data["history"] = [3]
        loaded = layout_from_dict(data, catalog)
        assert len(loaded.registry) == 3
        assert loaded.undo() == 3
        assert loaded.undo() is None
        assert len(loaded.registry) == 2

    def test_unknown_piece(self, packed_engine):
        with pytest.raises(ValueError):
            layout_from_dict(layout_to_dict(packed_engine), {})

    def test_overlap_rejected(self, packed_engine, catalog):
        data = layout_to_dict(packed_engine)
        data["placements"][1]["cells"] = [[0, 0, 0]]
        with pytest.raises(ValueError):
            layout_from_dict(data, catalog)

    def test_unknown_history_id(self, packed_engine, catalog):
        data = layout_to_dict(packed_engine)
        data["history"].append(42)
        with pytest.raises(ValueError):
            layout_from_dict(data, catalog)

    def test_bad_version(self, packed_engine, catalog):
        data = layout_to_dict(packed_engine)
        data["version"] = 99
        with pytest.raises(ValueError):
            layout_from_dict(data, catalog)

    def test_missing_file(self, catalog, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_layout(tmp_path / "none.json", catalog)
