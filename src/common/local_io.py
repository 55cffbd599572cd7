"""Local file I/O utilities."""

from __future__ import annotations

import json
import logging
import os
import time
from pathlib import Path
from typing import Any

from common.serialization import serialize_dataclass

logger = logging.getLogger(__name__)


def unique_tmp_path(directory: Path, prefix: str, suffix: str = "") -> Path:
    """Build a time-suffixed temp file path inside ``directory``.

    Leftover temp files from crashed runs never collide with a new one.
    """
    return Path(directory) / f"{prefix}{time.time_ns()}{suffix}"


def replace_file(src: Path, dest: Path) -> None:
    """Move ``src`` onto ``dest`` in a single rename, replacing any existing file.

    Both paths must be on the same filesystem.
    """
    os.replace(src, dest)


def remove_if_exists(path: Path) -> bool:
    """Delete ``path``, logging instead of raising. Returns True if removed."""
    try:
        Path(path).unlink()
    except FileNotFoundError:
        return False
    except OSError as e:
        logger.warning("Failed to remove %s: %s", path, e)
        return False
    return True


def write_json_atomic(data: dict[str, Any], path: Path, indent: int = 4) -> None:
    """Write ``data`` as JSON to ``path`` via a temp file and rename."""
    path = Path(path)
    tmp_path = unique_tmp_path(path.parent, f".{path.name}.")
    try:
        with tmp_path.open("w", encoding="utf-8") as f:
            json.dump(data, f, indent=indent)
            f.flush()
            os.fsync(f.fileno())
        replace_file(tmp_path, path)
    except OSError:
        remove_if_exists(tmp_path)
        raise


def write_bytes_atomic(content: bytes, path: Path) -> None:
    """Write ``content`` to ``path`` via a temp file and rename."""
    path = Path(path)
    tmp_path = unique_tmp_path(path.parent, f".{path.name}.")
    try:
        tmp_path.write_bytes(content)
        replace_file(tmp_path, path)
    except OSError:
        remove_if_exists(tmp_path)
        raise


def append_jsonl_record(record: Any, path: Path) -> None:
    """Append one dataclass record as a JSON line to ``path``."""
    serialized = serialize_dataclass(record)
    with Path(path).open("a", encoding="utf-8") as f:
        f.write(json.dumps(serialized, default=str, ensure_ascii=False) + "\n")
