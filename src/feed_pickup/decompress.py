"""Unpack the compressed feed next to it."""

from __future__ import annotations

import gzip
import logging
import shutil
import zlib
from pathlib import Path

from common.local_io import remove_if_exists, replace_file, unique_tmp_path
from feed_pickup.errors import DecompressError
from feed_pickup.models import ChannelPaths

logger = logging.getLogger(__name__)

CHUNK_SIZE = 1024 * 1024


def decompress_feed(paths: ChannelPaths, channel_id: str | None = None) -> Path:
    """Gunzip the compressed artifact into the decompressed artifact.

    The output is written to a temp file first, so the stable path holds
    either the previous complete XML or the new complete XML.
    """
    tmp_path = unique_tmp_path(paths.channel_dir, "tmp_xml_", ".xml")
    try:
        with gzip.open(paths.compressed_file, "rb") as src, tmp_path.open("wb") as dest:
            shutil.copyfileobj(src, dest, CHUNK_SIZE)
        replace_file(tmp_path, paths.xml_file)
    except (OSError, EOFError, zlib.error) as e:
        remove_if_exists(tmp_path)
        raise DecompressError(
            f"Failed to decompress {paths.compressed_file}: {e}", channel_id
        ) from e

    logger.info("Decompressed %s to %s", paths.compressed_file, paths.xml_file)
    return paths.xml_file
