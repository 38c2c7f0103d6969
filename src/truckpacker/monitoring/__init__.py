"""Monitoring module for truckpacker.

Provides metrics tracking and export for placement sessions.
"""

from .metrics import (
    SessionMetrics,
    export_to_csv,
    export_to_json,
    print_summary,
)

__all__ = [
    "SessionMetrics",
    "export_to_csv",
    "export_to_json",
    "print_summary",
]
