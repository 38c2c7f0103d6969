"""Metrics tracking and export for placement sessions.

Provides a dataclass for tracking what happened during a packing session
(confirms, rejections by reason, undos, moves) and utilities for exporting
it to JSON and CSV formats.
"""

from __future__ import annotations

import csv
import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

NO_CANDIDATE = "NoCandidate"


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class SessionMetrics:
    """Counters for one placement session.

    Attributes:
        grid_cells: Total number of cells in the grid.
        confirmed: Successful confirms (new placements and moves).
        rejected: Confirm attempts on a rejected or missing step.
        undone: Successful undos.
        moved: Confirms that relocated a picked-up piece.
        fill_rate: Occupied fraction after the latest change.
        peak_fill_rate: Highest fill rate seen.
        rejections_by_reason: Reject reason token -> count.
        started_at: Session start timestamp.
        last_change_at: Timestamp of the latest counted event.
    """

    grid_cells: int = 0
    confirmed: int = 0
    rejected: int = 0
    undone: int = 0
    moved: int = 0
    fill_rate: float = 0.0
    peak_fill_rate: float = 0.0
    rejections_by_reason: dict[str, int] = field(default_factory=dict)
    started_at: datetime = field(default_factory=_now)
    last_change_at: datetime | None = None

    def record_confirm(self, fill_rate: float) -> None:
        """Count a successful confirm.

        Example:
            >>> m = SessionMetrics(grid_cells=240)
            >>> m.record_confirm(0.25)
            >>> m.confirmed, m.peak_fill_rate
            (1, 0.25)
        """
        self.confirmed += 1
        self._update_fill(fill_rate)

    def record_move(self) -> None:
        self.moved += 1

    def record_undo(self, fill_rate: float) -> None:
        self.undone += 1
        self._update_fill(fill_rate)

    def record_rejection(self, reason: Any = None) -> None:
        """Count a rejected confirm under its reason token.

        Args:
            reason: A ``RejectReason`` (or anything with ``.value``), a plain
                string, or None when no candidate had been evaluated.

        Example:
            >>> m = SessionMetrics()
            >>> m.record_rejection("Blocked")
            >>> m.rejections_by_reason
            {'Blocked': 1}
        """
        key = getattr(reason, "value", reason) or NO_CANDIDATE
        self.rejected += 1
        self.rejections_by_reason[key] = self.rejections_by_reason.get(key, 0) + 1
        self.last_change_at = _now()

    def _update_fill(self, fill_rate: float) -> None:
        self.fill_rate = fill_rate
        self.peak_fill_rate = max(self.peak_fill_rate, fill_rate)
        self.last_change_at = _now()

    @property
    def acceptance_rate(self) -> float:
        attempts = self.confirmed + self.rejected
        return self.confirmed / attempts if attempts else 0.0

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary with ISO timestamps."""
        return {
            "grid_cells": self.grid_cells,
            "confirmed": self.confirmed,
            "rejected": self.rejected,
            "undone": self.undone,
            "moved": self.moved,
            "fill_rate": round(self.fill_rate, 6),
            "peak_fill_rate": round(self.peak_fill_rate, 6),
            "acceptance_rate": round(self.acceptance_rate, 6),
            "rejections_by_reason": dict(sorted(self.rejections_by_reason.items())),
            "started_at": self.started_at.isoformat(),
            "last_change_at": self.last_change_at.isoformat() if self.last_change_at else None,
        }


def export_to_json(metrics: SessionMetrics, output_path: Path | str) -> None:
    """Export session metrics to a JSON file, creating parent directories."""
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    with output_path.open("w") as f:
        json.dump(metrics.to_dict(), f, indent=2)


def export_to_csv(metrics: SessionMetrics, output_path: Path | str) -> None:
    """Export rejections per reason to a CSV file.

    One row per reason seen; a header-only file when nothing was rejected.
    """
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    with output_path.open("w", newline="") as f:
        writer = csv.DictWriter(f, fieldnames=["reason", "count"])
        writer.writeheader()
        for reason, count in sorted(metrics.rejections_by_reason.items()):
            writer.writerow({"reason": reason, "count": count})


def print_summary(metrics: SessionMetrics) -> str:
    """Generate human-readable summary of session metrics.

    Example:
        >>> m = SessionMetrics(grid_cells=240)
        >>> "Confirmed: 0" in print_summary(m)
        True
    """
    lines = [
        "=" * 60,
        f"Placement session ({metrics.grid_cells} cells)",
        "=" * 60,
        f"Confirmed: {metrics.confirmed}",
        f"Moved:     {metrics.moved}",
        f"Undone:    {metrics.undone}",
        f"Rejected:  {metrics.rejected}",
    ]
    for reason, count in sorted(metrics.rejections_by_reason.items()):
        lines.append(f"  {reason}: {count}")
    lines += [
        "",
        f"Fill rate: {metrics.fill_rate:.1%} (peak {metrics.peak_fill_rate:.1%})",
        f"Started:   {metrics.started_at.isoformat()}",
        "=" * 60,
    ]
    return "\n".join(lines)
