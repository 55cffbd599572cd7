"""Update cycle for one feed channel.

A cycle runs while holding the process lock:

    probe -> (up to date | download -> decompress -> store timestamp)

Download strictly precedes decompression, which strictly precedes storing
the new timestamp. A crash anywhere before the last step leaves the old
timestamp in place, so the next cycle fetches the feed again.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, Iterator, Optional

from lxml import etree

from feed_pickup import listings
from feed_pickup.config import FeedConfig
from feed_pickup.decompress import decompress_feed
from feed_pickup.download import FeedDownloader
from feed_pickup.errors import FeedError
from feed_pickup.lock import ProcessLock
from feed_pickup.models import ChannelPaths, CycleOutcome, CycleResult, StatusReportEntry
from feed_pickup.probe import FeedProbe
from feed_pickup.report import StatusReport
from feed_pickup.state import FetchStateStore

logger = logging.getLogger(__name__)


class FeedChannel:
    def __init__(self, config: FeedConfig, lock: Optional[ProcessLock] = None):
        self.config = config
        self.channel_id = config.channel_id
        self.paths = ChannelPaths.for_channel(
            config.working_dir,
            config.channel_id,
            filename=config.filename,
            report_file=config.report.path,
        )
        self.lock = lock or ProcessLock(config.lock.path, config.lock.stale_after_seconds)
        self.state_store = FetchStateStore(self.paths.data_file)
        self.probe = FeedProbe(config, self.state_store)
        self.downloader = FeedDownloader(config, self.paths)
        self.report = StatusReport(
            self.paths.report_file,
            self.paths.report_buffer_file,
            enabled=config.report.enabled,
        )

        self.paths.channel_dir.mkdir(parents=True, exist_ok=True)
        self.state_store.initialize()
        self.report.initialize()

    def check_and_get_new_file(
        self,
        on_done: Optional[Callable[[Optional[FeedError]], None]] = None,
    ) -> CycleResult:
        """Fetch the feed if the remote copy is newer than the stored one.

        ``on_done`` receives the error, or None on success (including when
        the cycle was skipped because another one holds the lock). It is
        called after the lock has been released.
        """
        run = self.lock.run_exclusively(self._update_cycle, on_done)

        if run.error is not None:
            logger.error("Update cycle for %s failed: %s", self.channel_id, run.error)
            last_modified = run.value.feed_last_modified if run.value else 0
            return CycleResult(CycleOutcome.FAILED, error=run.error, feed_last_modified=last_modified)
        if not run.ran:
            return CycleResult(CycleOutcome.LOCK_BUSY)
        return run.value

    def _update_cycle(self) -> CycleResult:
        if not self.probe.check_for_update():
            logger.info("Feed file for %s is up to date", self.channel_id)
            return CycleResult(CycleOutcome.UP_TO_DATE, feed_last_modified=self.state_store.last_modified())

        logger.info("New feed available for %s, downloading", self.channel_id)
        download = self.downloader.download()
        if download.is_error_response:
            logger.info("Feed for %s not updated, server sent an error response", self.channel_id)
            return CycleResult(
                CycleOutcome.ERROR_RESPONSE,
                feed_last_modified=self.state_store.last_modified(),
                status_code=download.status_code,
            )

        decompress_feed(self.paths, self.channel_id)

        if download.last_modified:
            self.state_store.write_state(download.last_modified)
        else:
            logger.warning("Download of %s carried no Last-Modified, state left as is", self.channel_id)

        logger.info("Feed for %s updated", self.channel_id)
        return CycleResult(CycleOutcome.UPDATED, feed_last_modified=download.last_modified)

    def clear_feed_files(self) -> None:
        """Remove the downloaded and decompressed feed for this channel."""
        for path in (self.paths.compressed_file, self.paths.xml_file):
            try:
                path.unlink()
            except FileNotFoundError:
                continue
            except OSError as e:
                raise FeedError(f"Failed to remove feed file {path}: {e}", self.channel_id) from e
            logger.info("Removed %s", path)

    def get_xml(self) -> Optional[etree._ElementTree]:
        return listings.get_xml(self.paths.xml_file)

    def get_xml_string(self) -> str:
        return listings.get_xml_string(self.paths.xml_file)

    def iter_listings(self) -> Iterator[etree._Element]:
        return listings.iter_listings(self.paths.xml_file)

    def get_single_listing_dict(self, element) -> dict:
        return listings.listing_to_dict(element)

    def add_status_report_for_listing(
        self,
        listing_key: str,
        status: str,
        url: str,
        message: str,
        timestamp,
    ) -> StatusReportEntry:
        return self.report.add_status_report_for_listing(listing_key, status, url, message, timestamp)

    def generate_report_file(self) -> Path:
        return self.report.generate_report_file()
