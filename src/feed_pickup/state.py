"""Persisted record of the last ingested feed version."""

from __future__ import annotations

import json
import logging
from pathlib import Path

from common.local_io import write_json_atomic
from feed_pickup.errors import StateWriteError
from feed_pickup.models import FetchState

logger = logging.getLogger(__name__)


class FetchStateStore:
    def __init__(self, path: str | Path):
        self.path = Path(path)

    def initialize(self) -> None:
        """Create the state file with default values if it does not exist."""
        if self.path.exists():
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        try:
            write_json_atomic(FetchState().to_dict(), self.path)
        except OSError as e:
            logger.warning("Could not create state file %s: %s", self.path, e)

    def read_state(self) -> FetchState:
        """Read the stored state. Missing or broken files yield the default."""
        try:
            with self.path.open(encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError:
            return FetchState()
        except (OSError, ValueError) as e:
            logger.warning("Could not read state file %s: %s", self.path, e)
            return FetchState()

        if not isinstance(data, dict):
            logger.warning("State file %s does not hold an object, using defaults", self.path)
            return FetchState()

        try:
            return FetchState.from_dict(data)
        except ValueError as e:
            logger.warning("Invalid state in %s: %s", self.path, e)
            return FetchState()

    def last_modified(self) -> int:
        return self.read_state().feed_last_modified

    def write_state(self, new_timestamp: int) -> bool:
        """Store ``new_timestamp`` keeping the rest of the record.

        A failed write is logged and reported as False; it only costs a
        redundant download on a later cycle.
        """
        state = self.read_state()
        state.feed_last_modified = int(new_timestamp)
        try:
            self._write(state)
        except StateWriteError as e:
            logger.error("%s", e)
            return False
        return True

    def _write(self, state: FetchState) -> None:
        try:
            write_json_atomic(state.to_dict(), self.path)
        except OSError as e:
            raise StateWriteError(f"Failed to write {self.path}: {e}") from e
