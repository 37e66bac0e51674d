"""Utility helpers for PaceBot."""

from pacebot.utils.clock import Clock, SystemClock
from pacebot.utils.helpers import read_json_snapshot, write_json_snapshot

__all__ = [
    "Clock",
    "SystemClock",
    "read_json_snapshot",
    "write_json_snapshot",
]
