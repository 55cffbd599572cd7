"""Stream the remote compressed feed to disk."""

from __future__ import annotations

import logging
from pathlib import Path

import requests

from common.datetime import http_date_to_millis
from common.local_io import remove_if_exists, replace_file, unique_tmp_path
from feed_pickup.config import FeedConfig
from feed_pickup.errors import DownloadError
from feed_pickup.models import ChannelPaths, DownloadResult

logger = logging.getLogger(__name__)


def media_type(content_type: str | None) -> str:
    """Strip parameters such as ``; charset=...`` from a Content-Type."""
    if not content_type:
        return ""
    return content_type.split(";", 1)[0].strip().lower()


class FeedDownloader:
    """Downloads the feed into a temp file and moves it into place.

    A 200 carrying one of the accepted content types replaces the compressed
    artifact. Any other response is still drained to disk and replaces the
    error artifact instead, leaving the compressed artifact untouched.
    """

    def __init__(self, config: FeedConfig, paths: ChannelPaths):
        self.config = config
        self.paths = paths
        self._accepted = {media_type(t) for t in config.accepted_content_types}

    def is_success_response(self, response: requests.Response) -> bool:
        content_type = response.headers.get("content-type")
        return response.status_code == 200 and media_type(content_type) in self._accepted

    def download(self) -> DownloadResult:
        self.paths.channel_dir.mkdir(parents=True, exist_ok=True)
        tmp_path = unique_tmp_path(self.paths.channel_dir, "tmp_")
        try:
            result = self._stream_to(tmp_path)
            self._move_into_place(tmp_path, result)
        except DownloadError:
            remove_if_exists(tmp_path)
            raise
        return result

    def _stream_to(self, tmp_path: Path) -> DownloadResult:
        url = self.config.feed_url
        channel_id = self.config.channel_id
        try:
            response = requests.get(
                url,
                auth=self.config.auth,
                stream=True,
                timeout=self.config.request_timeout,
            )
        except requests.RequestException as e:
            raise DownloadError(f"GET {url} failed: {e}", channel_id) from e

        try:
            is_error = not self.is_success_response(response)
            result = DownloadResult(
                path=tmp_path,
                status_code=response.status_code,
                content_type=response.headers.get("content-type"),
                is_error_response=is_error,
            )
            if not is_error:
                result.last_modified = http_date_to_millis(response.headers.get("last-modified")) or 0

            written = 0
            with tmp_path.open("wb") as f:
                for chunk in response.iter_content(chunk_size=self.config.chunk_size):
                    if chunk:
                        f.write(chunk)
                        written += len(chunk)
        except requests.RequestException as e:
            raise DownloadError(f"Streaming {url} failed: {e}", channel_id) from e
        except OSError as e:
            raise DownloadError(f"Writing {tmp_path} failed: {e}", channel_id) from e
        finally:
            response.close()

        logger.info(
            "Downloaded %d bytes from %s (status %s, %s)",
            written,
            url,
            result.status_code,
            result.content_type,
        )
        return result

    def _move_into_place(self, tmp_path: Path, result: DownloadResult) -> None:
        target = self.paths.error_file if result.is_error_response else self.paths.compressed_file
        try:
            replace_file(tmp_path, target)
        except OSError as e:
            raise DownloadError(
                f"Moving {tmp_path} to {target} failed: {e}", self.config.channel_id
            ) from e
        result.path = target
        if result.is_error_response:
            logger.error(
                "Feed server answered %s (%s), response saved to %s",
                result.status_code,
                result.content_type,
                target,
            )
