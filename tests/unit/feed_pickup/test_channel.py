"""Tests for the feed_pickup.channel update cycle."""

import gzip
from unittest.mock import Mock, patch

import pytest
import requests

from feed_pickup.channel import FeedChannel
from feed_pickup.errors import DecompressError, ProbeError
from feed_pickup.lock import ProcessLock
from feed_pickup.models import CycleOutcome

OLD_MILLIS = 1704067200000
NEW_DATE = "Tue, 02 Jan 2024 00:00:00 GMT"
NEW_MILLIS = 1704153600000


@pytest.fixture
def channel(config) -> FeedChannel:
    channel = FeedChannel(config)
    channel.state_store.write_state(OLD_MILLIS)
    return channel


@pytest.fixture
def remote(make_response, feed_gz):
    """Patch HEAD/GET so the remote serves a newer feed."""
    with patch("feed_pickup.probe.requests.head") as mock_head, \
            patch("feed_pickup.download.requests.get") as mock_get:
        mock_head.return_value = make_response(headers={"Last-Modified": NEW_DATE})
        mock_get.return_value = make_response(
            headers={"Content-Type": "application/x-gzip", "Last-Modified": NEW_DATE},
            body=feed_gz,
        )
        yield Mock(head=mock_head, get=mock_get)


class TestFeedChannelInit:
    def test_creates_channel_files(self, config) -> None:
        channel = FeedChannel(config)
        assert channel.paths.data_file.exists()
        assert channel.paths.report_file.exists()
        assert channel.paths.report_buffer_file.exists()
        assert channel.state_store.last_modified() == 0

    def test_custom_filename(self, config) -> None:
        config.filename = "feed"
        channel = FeedChannel(config)
        assert channel.paths.compressed_file.name == "feed.xml.gz"
        assert channel.paths.xml_file.name == "feed.xml"
        assert config.feed_url.endswith("/chan/feed.xml.gz")


class TestCheckAndGetNewFile:
    def test_updates_all_artifacts(self, channel, remote, feed_xml, feed_gz) -> None:
        on_done = Mock()

        result = channel.check_and_get_new_file(on_done)

        assert result.outcome is CycleOutcome.UPDATED
        assert result.ok
        assert result.feed_last_modified == NEW_MILLIS
        assert channel.paths.compressed_file.read_bytes() == feed_gz
        assert channel.paths.xml_file.read_bytes() == feed_xml
        assert channel.state_store.last_modified() == NEW_MILLIS
        assert not channel.lock.is_locked()
        on_done.assert_called_once_with(None)

    def test_up_to_date_skips_download(self, channel, remote, make_response) -> None:
        remote.head.return_value = make_response(headers={"Last-Modified": "Mon, 01 Jan 2024 00:00:00 GMT"})

        result = channel.check_and_get_new_file()

        assert result.outcome is CycleOutcome.UP_TO_DATE
        assert result.feed_last_modified == OLD_MILLIS
        remote.get.assert_not_called()
        assert channel.state_store.last_modified() == OLD_MILLIS
        assert not channel.lock.is_locked()

    def test_busy_lock_is_noop_success(self, channel, remote) -> None:
        holder = ProcessLock(channel.lock.path)
        assert holder.try_acquire()
        on_done = Mock()

        result = channel.check_and_get_new_file(on_done)

        assert result.outcome is CycleOutcome.LOCK_BUSY
        assert result.ok
        remote.head.assert_not_called()
        on_done.assert_called_once_with(None)
        holder.release()

    def test_probe_error_fails_and_unlocks(self, channel, remote) -> None:
        remote.head.side_effect = requests.Timeout("timed out")
        on_done = Mock()

        result = channel.check_and_get_new_file(on_done)

        assert result.outcome is CycleOutcome.FAILED
        assert isinstance(result.error, ProbeError)
        on_done.assert_called_once_with(result.error)
        assert not channel.lock.is_locked()

    def test_error_response_keeps_feed_and_state(self, channel, remote, make_response) -> None:
        channel.paths.compressed_file.write_bytes(b"previous feed")
        remote.get.return_value = make_response(
            status_code=403, headers={"Content-Type": "text/plain"}, body=b"Forbidden"
        )
        on_done = Mock()

        result = channel.check_and_get_new_file(on_done)

        assert result.outcome is CycleOutcome.ERROR_RESPONSE
        assert result.ok
        assert result.status_code == 403
        assert result.feed_last_modified == OLD_MILLIS
        on_done.assert_called_once_with(None)
        assert channel.paths.error_file.read_bytes() == b"Forbidden"
        assert channel.paths.compressed_file.read_bytes() == b"previous feed"
        assert channel.state_store.last_modified() == OLD_MILLIS
        assert not channel.lock.is_locked()

    def test_decompress_failure_keeps_previous_xml_and_state(self, channel, remote, make_response) -> None:
        channel.paths.xml_file.write_bytes(b"<old/>")
        remote.get.return_value = make_response(
            headers={"Content-Type": "application/x-gzip", "Last-Modified": NEW_DATE},
            body=b"corrupted archive",
        )

        result = channel.check_and_get_new_file()

        assert isinstance(result.error, DecompressError)
        assert channel.paths.compressed_file.read_bytes() == b"corrupted archive"
        assert channel.paths.xml_file.read_bytes() == b"<old/>"
        assert channel.state_store.last_modified() == OLD_MILLIS
        assert not channel.lock.is_locked()

    def test_crash_after_download_leaves_previous_version(self, channel, remote, feed_gz) -> None:
        channel.paths.xml_file.write_bytes(b"<old/>")

        with patch("feed_pickup.channel.decompress_feed", side_effect=KeyboardInterrupt):
            with pytest.raises(KeyboardInterrupt):
                channel.check_and_get_new_file()

        assert channel.paths.compressed_file.read_bytes() == feed_gz
        assert channel.paths.xml_file.read_bytes() == b"<old/>"
        assert channel.state_store.last_modified() == OLD_MILLIS
        assert not channel.lock.is_locked()
        leftovers = [p.name for p in channel.paths.channel_dir.iterdir() if p.name.startswith("tmp_")]
        assert leftovers == []
        assert channel.paths.report_buffer_file.exists()

    def test_failed_state_write_still_succeeds(self, channel, remote) -> None:
        with patch("feed_pickup.state.write_json_atomic", side_effect=OSError("disk full")):
            result = channel.check_and_get_new_file()

        assert result.outcome is CycleOutcome.UPDATED
        assert result.ok
        assert channel.state_store.last_modified() == OLD_MILLIS

    def test_second_cycle_is_up_to_date(self, channel, remote) -> None:
        channel.check_and_get_new_file()
        result = channel.check_and_get_new_file()

        assert result.outcome is CycleOutcome.UP_TO_DATE
        assert remote.get.call_count == 1

    def test_injected_lock_is_used(self, config, remote) -> None:
        lock = Mock(spec=ProcessLock)
        lock.run_exclusively.return_value = Mock(ran=False, error=None, value=None)

        result = FeedChannel(config, lock=lock).check_and_get_new_file()

        assert result.outcome is CycleOutcome.LOCK_BUSY
        lock.run_exclusively.assert_called_once()


class TestClearFeedFiles:
    def test_removes_feed_files(self, channel) -> None:
        channel.paths.compressed_file.write_bytes(gzip.compress(b"<x/>"))
        channel.paths.xml_file.write_bytes(b"<x/>")

        channel.clear_feed_files()

        assert not channel.paths.compressed_file.exists()
        assert not channel.paths.xml_file.exists()
        assert channel.paths.data_file.exists()

    def test_missing_files_are_ignored(self, channel) -> None:
        channel.clear_feed_files()


class TestListingAccess:
    def test_reads_listings_after_update(self, channel, remote) -> None:
        channel.check_and_get_new_file()

        keys = [channel.get_single_listing_dict(el)["Listing"]["ListingKey"] for el in channel.iter_listings()]

        assert keys == ["abc-1", "abc-2"]
        assert channel.get_xml() is not None
        assert "<Listing>" in channel.get_xml_string()

    def test_no_feed_yet(self, channel) -> None:
        assert channel.get_xml() is None
        assert channel.get_xml_string() == ""
