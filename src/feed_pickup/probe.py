"""Check the remote feed's modification time without downloading it."""

from __future__ import annotations

import logging

import requests

from common.datetime import http_date_to_millis, millis_to_datetime
from feed_pickup.config import FeedConfig
from feed_pickup.errors import ProbeError
from feed_pickup.state import FetchStateStore

logger = logging.getLogger(__name__)


class FeedProbe:
    def __init__(self, config: FeedConfig, state_store: FetchStateStore):
        self.config = config
        self.state_store = state_store

    def remote_last_modified(self) -> int | None:
        """HEAD the feed URL and return its Last-Modified in epoch millis.

        Returns None for any non-200 answer or a missing/unparseable header.
        """
        try:
            response = requests.head(
                self.config.feed_url,
                auth=self.config.auth,
                timeout=self.config.request_timeout,
                allow_redirects=True,
            )
        except requests.RequestException as e:
            raise ProbeError(f"HEAD {self.config.feed_url} failed: {e}", self.config.channel_id) from e

        if response.status_code != 200:
            # Treated as "no update" rather than an error; a persistent
            # non-200 here never surfaces beyond this warning.
            logger.warning(
                "HEAD %s returned %s, treating feed as not updated",
                self.config.feed_url,
                response.status_code,
            )
            return None

        header = response.headers.get("last-modified")
        last_modified = http_date_to_millis(header)
        if last_modified is None:
            logger.warning("No usable Last-Modified header on %s: %r", self.config.feed_url, header)
        return last_modified

    def check_for_update(self) -> bool:
        remote = self.remote_last_modified()
        if remote is None:
            return False
        stored = self.state_store.last_modified()
        logger.debug(
            "Remote feed modified at %s, stored %s",
            millis_to_datetime(remote).isoformat(),
            millis_to_datetime(stored).isoformat(),
        )
        return remote > stored
