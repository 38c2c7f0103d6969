"""Replay a scripted placement session against the engine.

A script is a YAML file:

    config:                 # optional, EngineConfig fields
      grid: {width: 6, height: 4, depth: 10}
    catalog: furniture.yaml # path relative to the script, or inline
                            # {pieces: [...]} as in the catalog format
    actions:
      - place: sofa
        anchor: [0, 0, 0]
        rotate: [yaw, -pitch]
      - fit: lamp           # first-fit search, then confirm
      - move: 1
        anchor: [3, 0, 0]
      - pick_up: 2
      - cancel
      - undo

Usage:
    truckpacker-replay --script dataset/demo_session.yaml --output layout.json
"""

from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import Any, Callable

import yaml
from pydantic import ValidationError

from truckpacker.catalog import load_catalog, parse_catalog
from truckpacker.config import Candidate, EngineConfig, PieceTemplate, as_cell
from truckpacker.layout_io import save_layout
from truckpacker.logging_config import setup_logging
from truckpacker.monitoring.metrics import export_to_json, print_summary
from truckpacker.simulator.placement_engine import PlacementEngine
from truckpacker.simulator.rotation import Rotation, pitch, roll, yaw
from truckpacker.simulator.search import find_first_fit

logger = logging.getLogger(__name__)

_TURNS: dict[str, Callable[[Rotation, float], Rotation]] = {
    "yaw": yaw,
    "pitch": pitch,
    "roll": roll,
}


def parse_rotation(steps: list[str] | None) -> Rotation:
    """Compose quarter-turn tokens (``yaw``, ``-pitch``, ...) in order."""
    rotation = Rotation.identity()
    for token in steps or []:
        sign = -1.0 if token.startswith("-") else 1.0
        name = token.lstrip("+-")
        if name not in _TURNS:
            raise ValueError(f"Unknown rotation step {token!r}")
        rotation = _TURNS[name](rotation, sign * 90.0)
    return rotation


class SessionReplay:
    """Drives a PlacementEngine through a list of scripted actions."""

    def __init__(self, engine: PlacementEngine, catalog: dict[str, PieceTemplate]):
        self.engine = engine
        self.catalog = catalog
        self.results: list[dict[str, Any]] = []

    def run(self, actions: list[Any]) -> list[dict[str, Any]]:
        for index, action in enumerate(actions):
            outcome = self.apply(action)
            outcome["index"] = index
            self.results.append(outcome)
        return self.results

    def apply(self, action: Any) -> dict[str, Any]:
        if isinstance(action, str):
            action = {action: True}
        if not isinstance(action, dict):
            raise ValueError(f"Malformed action: {action!r}")

        if "place" in action:
            template = self._template(action["place"])
            return self._place(template, action)
        if "fit" in action:
            return self._fit(self._template(action["fit"]))
        if "move" in action:
            held = self.engine.pick_up(int(action["move"]))
            if held is None:
                return {"action": "move", "ok": False}
            outcome = self._place(held.template, action)
            if not outcome["ok"]:
                self.engine.cancel()
            outcome["action"] = "move"
            return outcome
        if "pick_up" in action:
            held = self.engine.pick_up(int(action["pick_up"]))
            return {"action": "pick_up", "ok": held is not None}
        if "cancel" in action:
            return {"action": "cancel", "ok": True, "id": self.engine.cancel()}
        if "undo" in action:
            pid = self.engine.undo()
            return {"action": "undo", "ok": pid is not None, "id": pid}
        raise ValueError(f"Unknown action: {action!r}")

    def _template(self, name: str) -> PieceTemplate:
        if name not in self.catalog:
            raise ValueError(f"Unknown piece {name!r}")
        return self.catalog[name]

    def _place(self, template: PieceTemplate, action: dict) -> dict[str, Any]:
        candidate = Candidate(
            template=template,
            anchor=as_cell(action.get("anchor", (0, 0, 0))),
            rotation=parse_rotation(action.get("rotate")),
        )
        result = self.engine.step(candidate)
        pid = self.engine.confirm()
        return {
            "action": "place",
            "piece": template.name,
            "ok": pid is not None,
            "id": pid,
            "reason": result.reason.value if result.reason else None,
        }

    def _fit(self, template: PieceTemplate) -> dict[str, Any]:
        candidate = find_first_fit(self.engine, template)
        if candidate is None:
            return {"action": "fit", "piece": template.name, "ok": False, "id": None}
        self.engine.step(candidate)
        pid = self.engine.confirm()
        return {"action": "fit", "piece": template.name, "ok": pid is not None,
                "id": pid, "anchor": list(candidate.anchor)}


def load_script(script_path: Path) -> tuple[EngineConfig, dict[str, PieceTemplate], list]:
    with script_path.open("r", encoding="utf-8") as f:
        data = yaml.safe_load(f)
    if not data:
        raise ValueError(f"Script is empty: {script_path}")

    config = EngineConfig.from_dict(data.get("config") or {})

    catalog_ref = data.get("catalog")
    if isinstance(catalog_ref, str):
        catalog = load_catalog(script_path.parent / catalog_ref)
    elif isinstance(catalog_ref, dict):
        catalog = parse_catalog(catalog_ref)
    else:
        raise ValueError("Script needs a 'catalog' path or inline catalog")

    return config, catalog, list(data.get("actions") or [])


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Replay a scripted truck-packing session.")
    parser.add_argument("--script", required=True, help="Path to the YAML session script")
    parser.add_argument("--output", help="Write the final layout JSON here")
    parser.add_argument("--metrics", help="Write session metrics JSON here")
    parser.add_argument("--verbose", action="store_true", help="Log every step")
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(logging.DEBUG if args.verbose else logging.INFO)

    try:
        config, catalog, actions = load_script(Path(args.script))
        config.verbose = config.verbose or args.verbose
        engine = PlacementEngine(config)
        SessionReplay(engine, catalog).run(actions)
    except (FileNotFoundError, ValueError, KeyError, TypeError,
            ValidationError, yaml.YAMLError) as e:
        logger.error("Cannot replay %s: %s", args.script, e)
        return 1

    if args.output:
        save_layout(engine, args.output)
    if args.metrics:
        export_to_json(engine.metrics, args.metrics)
    print(print_summary(engine.metrics))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
