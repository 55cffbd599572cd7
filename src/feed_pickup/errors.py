"""Error kinds raised by the feed pickup stages.

Every error carries the name of the stage that failed so callers can tell a
probe failure from a broken download without inspecting the message.
"""

from __future__ import annotations


class FeedError(Exception):
    """Base class for feed pickup failures."""

    stage = "feed"

    def __init__(self, message: str, channel_id: str | None = None):
        super().__init__(message)
        self.channel_id = channel_id

    def __str__(self) -> str:
        message = super().__str__()
        if self.channel_id:
            return f"[{self.stage}:{self.channel_id}] {message}"
        return f"[{self.stage}] {message}"


class LockError(FeedError):
    """Acquiring or releasing the process lock failed."""

    stage = "lock"


class ProbeError(FeedError):
    """Transport failure while checking the remote feed metadata."""

    stage = "probe"


class DownloadError(FeedError):
    """Streaming or moving the downloaded feed failed."""

    stage = "download"


class DecompressError(FeedError):
    """Decompressing the feed or moving the result failed."""

    stage = "decompress"


class StateWriteError(FeedError):
    """Persisting the fetch state failed. Logged, never propagated."""

    stage = "state"


class ReportError(FeedError):
    """Recording or generating the status report failed."""

    stage = "report"
