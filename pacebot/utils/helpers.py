"""Filesystem helpers shared by the snapshot-backed stores."""

import json
import os
import tempfile
from pathlib import Path
from typing import Any

from loguru import logger


def read_json_snapshot(path: Path) -> dict[str, Any]:
    """
    Read a JSON object from disk.

    An absent, unreadable or malformed file yields an empty dict; a missing
    snapshot is the normal first-run state, not an error.
    """
    if not path.exists():
        return {}

    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
        logger.warning(f"Ignoring unreadable snapshot {path}: {e}")
        return {}

    if not isinstance(data, dict):
        logger.warning(f"Ignoring snapshot {path}: expected an object, got {type(data).__name__}")
        return {}

    return data


def write_json_snapshot(path: Path, data: dict[str, Any]) -> None:
    """
    Atomically write a JSON object to disk.

    The payload goes to a temp file in the same directory which then replaces
    the target, so a crash mid-write never leaves a truncated snapshot.
    Raises OSError on failure.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", dir=path.parent)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2, ensure_ascii=False)
        os.replace(tmp_name, path)
    except BaseException:
        try:
            os.unlink(tmp_name)
        except OSError:
            pass
        raise
