"""Data models for the feed pickup client."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Optional

from feed_pickup.errors import FeedError

DATA_FILE_NAME = "data.json"
COMPRESSED_EXT = ".xml.gz"
XML_EXT = ".xml"
ERROR_FILE_NAME = "error.txt"
REPORT_FILE_NAME = "report.xml"
REPORT_BUFFER_FILE_NAME = "report_buffer.jsonl"

STATE_TIMESTAMP_KEY = "feedLastModifiedTimestamp"


@dataclass
class FetchState:
    """Last successfully ingested feed version.

    ``extra`` holds any other keys found in the state file so a rewrite keeps them.
    """
    feed_last_modified: int = 0
    extra: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "FetchState":
        extra = {k: v for k, v in data.items() if k != STATE_TIMESTAMP_KEY}
        value = data.get(STATE_TIMESTAMP_KEY, 0)
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ValueError(f"{STATE_TIMESTAMP_KEY} must be a number, got {value!r}")
        return cls(feed_last_modified=int(value), extra=extra)

    def to_dict(self) -> dict[str, Any]:
        data = dict(self.extra)
        data[STATE_TIMESTAMP_KEY] = self.feed_last_modified
        return data


@dataclass(frozen=True)
class ChannelPaths:
    """Stable on-disk locations of one channel's artifacts."""
    channel_dir: Path
    data_file: Path
    compressed_file: Path
    xml_file: Path
    error_file: Path
    report_file: Path
    report_buffer_file: Path

    @classmethod
    def for_channel(
        cls,
        working_dir: str | Path,
        channel_id: str,
        filename: Optional[str] = None,
        report_file: Optional[str | Path] = None,
    ) -> "ChannelPaths":
        channel_dir = Path(working_dir) / channel_id
        name = filename or channel_id
        return cls(
            channel_dir=channel_dir,
            data_file=channel_dir / DATA_FILE_NAME,
            compressed_file=channel_dir / f"{name}{COMPRESSED_EXT}",
            xml_file=channel_dir / f"{name}{XML_EXT}",
            error_file=channel_dir / ERROR_FILE_NAME,
            report_file=Path(report_file) if report_file else channel_dir / REPORT_FILE_NAME,
            report_buffer_file=channel_dir / REPORT_BUFFER_FILE_NAME,
        )


@dataclass
class DownloadResult:
    """Outcome of streaming the remote feed to disk."""
    path: Path
    status_code: int
    content_type: Optional[str]
    is_error_response: bool
    last_modified: int = 0


@dataclass
class StatusReportEntry:
    """Import status of a single listing."""
    listing_key: str
    status: str
    url: str
    message: str
    timestamp: Any


class CycleOutcome(str, Enum):
    UPDATED = "updated"
    UP_TO_DATE = "up_to_date"
    LOCK_BUSY = "lock_busy"
    # The server sent an error body instead of the feed; kept in error.txt
    ERROR_RESPONSE = "error_response"
    FAILED = "failed"


@dataclass
class CycleResult:
    """Result of one update cycle."""
    outcome: CycleOutcome
    error: Optional[FeedError] = None
    feed_last_modified: int = 0
    status_code: Optional[int] = None

    @property
    def ok(self) -> bool:
        return self.error is None
