"""
Tests for the scripted session replay runner.

Run with:
    python -m pytest tests/test_replay.py -v
"""

import sys
import os
import json
import logging

import pytest
import yaml

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from truckpacker.catalog import load_catalog
from truckpacker.config import EngineConfig
from truckpacker.runner.replay import SessionReplay, main, parse_rotation
from truckpacker.simulator.placement_engine import PlacementEngine
from truckpacker.simulator.rotation import Rotation

DATASET_DIR = os.path.join(os.path.dirname(__file__), "..", "dataset")


@pytest.fixture(autouse=True)
def reset_logging():
    """main() attaches handlers to the package logger; drop them afterwards."""
    yield
    logger = logging.getLogger("truckpacker")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    logger.setLevel(logging.NOTSET)


@pytest.fixture
def catalog():
    return load_catalog(os.path.join(DATASET_DIR, "furniture.yaml"))


@pytest.fixture
def replay(catalog):
    return SessionReplay(PlacementEngine(EngineConfig()), catalog)


# ---------------------------------------------------------------------------
# 1. Rotation tokens
# ---------------------------------------------------------------------------

class TestParseRotation:
    def test_empty_is_identity(self):
        assert parse_rotation(None).is_close(Rotation.identity())
        assert parse_rotation([]).is_close(Rotation.identity())

    def test_signed_steps(self):
        assert parse_rotation(["yaw", "-yaw"]).is_close(Rotation.identity())
        assert parse_rotation(["-pitch"]).is_close(Rotation.about_axis("x", -90))

    def test_order_is_world_frame(self):
        expected = Rotation.about_axis("z", 90) * Rotation.about_axis("y", 90)
        assert parse_rotation(["yaw", "roll"]).is_close(expected)

    def test_unknown_step(self):
        with pytest.raises(ValueError):
            parse_rotation(["spin"])


# ---------------------------------------------------------------------------
# 2. Actions
# ---------------------------------------------------------------------------

class TestActions:
    def test_place_and_reject(self, replay):
        results = replay.run([
            {"place": "sofa", "anchor": [1, 0, 0]},
            {"place": "box", "anchor": [3, 2, 5]},
        ])
        assert results[0]["ok"] and results[0]["id"] == 1
        assert not results[1]["ok"]
        assert results[1]["reason"] == "Unsupported"

    def test_fit(self, replay):
        result = replay.apply({"fit": "box"})
        assert result["ok"]
        assert result["anchor"] == [0, 0, 0]

    def test_move_and_cancel(self, replay):
        replay.apply({"place": "box", "anchor": [0, 0, 0]})
        moved = replay.apply({"move": 1, "anchor": [4, 0, 4]})
        assert moved["action"] == "move" and moved["id"] == 1
        assert replay.engine.cells_of(1) == [(4, 0, 4)]

        failed = replay.apply({"move": 1, "anchor": [4, 3, 4]})
        assert not failed["ok"]
        assert replay.engine.held is None
        assert replay.engine.cells_of(1) == [(4, 0, 4)]

    def test_pick_up_cancel_undo(self, replay):
        replay.apply({"place": "box", "anchor": [0, 0, 0]})
        assert replay.apply({"pick_up": 1})["ok"]
        assert replay.apply("cancel")["id"] == 1
        assert replay.apply("undo")["id"] == 1
        assert replay.apply("undo")["ok"] is False

    def test_unknown_piece(self, replay):
        with pytest.raises(ValueError):
            replay.apply({"place": "piano"})

    def test_unknown_action(self, replay):
        with pytest.raises(ValueError):
            replay.apply({"dance": True})


# ---------------------------------------------------------------------------
# 3. Command line
# ---------------------------------------------------------------------------

class TestMain:
    def test_demo_session(self, tmp_path, capsys):
        layout = tmp_path / "layout.json"
        metrics = tmp_path / "metrics.json"
        code = main([
            "--script", os.path.join(DATASET_DIR, "demo_session.yaml"),
            "--output", str(layout),
            "--metrics", str(metrics),
        ])
        assert code == 0
        data = json.loads(layout.read_text())
        assert data["version"] == 1
        assert len(data["placements"]) == len(data["history"])
        stats = json.loads(metrics.read_text())
        assert stats["rejections_by_reason"] == {"NotStanding": 1, "Unsupported": 1}
        assert stats["moved"] == 1
        assert "Confirmed" in capsys.readouterr().out

    def test_inline_catalog(self, tmp_path):
        script = tmp_path / "script.yaml"
        script.write_text(yaml.safe_dump({
            "config": {"grid": {"width": 2, "height": 2, "depth": 2}},
            "catalog": {"pieces": [{"name": "box", "cells": [[0, 0, 0]]}]},
            "actions": [{"place": "box", "anchor": [1, 0, 1]}, "undo"],
        }))
        assert main(["--script", str(script)]) == 0

    @pytest.mark.parametrize("content", [
        "",
        "actions: []\n",
        "catalog: {pieces: []}\nactions: [{place: sofa}]\n",
        "catalog: {pieces: [{name: a, cells: []}]}\n",
        "catalog: {pieces: [{name: a, cells: [[0,0,0]]}]}\nactions: [{jump: a}]\n",
    ])
    def test_malformed_script_exits_1(self, tmp_path, content):
        script = tmp_path / "bad.yaml"
        script.write_text(content)
        assert main(["--script", str(script)]) == 1

    def test_missing_script(self, tmp_path):
        assert main(["--script", str(tmp_path / "missing.yaml")]) == 1
