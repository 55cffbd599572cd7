"""Per-listing import status report.

Entries are appended to a JSON-lines buffer while listings are imported and
turned into the final XML report in one go by ``generate_report_file``.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path

from lxml import etree

from common.local_io import (
    append_jsonl_record,
    remove_if_exists,
    replace_file,
    unique_tmp_path,
    write_bytes_atomic,
)
from feed_pickup.errors import ReportError
from feed_pickup.models import StatusReportEntry

logger = logging.getLogger(__name__)

# Buffer batches taken for a report that is not written yet
PENDING_PREFIX = "report_pending_"

REPORT_FIELDS = (
    ("listing-key", "listing_key"),
    ("status", "status"),
    ("url", "url"),
    ("message", "message"),
    ("timestamp", "timestamp"),
)


class StatusReport:
    def __init__(self, report_file: str | Path, buffer_file: str | Path, enabled: bool = True):
        self.report_file = Path(report_file)
        self.buffer_file = Path(buffer_file)
        self.enabled = enabled

    def initialize(self) -> None:
        """Create empty report and buffer files if they are missing."""
        if not self.enabled:
            return
        for path in (self.report_file, self.buffer_file):
            path.parent.mkdir(parents=True, exist_ok=True)
            path.touch(exist_ok=True)

    def add_status_report_for_listing(
        self,
        listing_key: str,
        status: str,
        url: str,
        message: str,
        timestamp,
    ) -> StatusReportEntry:
        if not self.enabled:
            raise ReportError("Reporting is not set up for this channel")

        entry = StatusReportEntry(
            listing_key=listing_key,
            status=status,
            url=url,
            message=message,
            timestamp=timestamp,
        )
        missing = [attr for _, attr in REPORT_FIELDS if getattr(entry, attr) is None]
        if missing:
            raise ValueError(f"Missing report fields: {', '.join(missing)}")

        try:
            append_jsonl_record(entry, self.buffer_file)
        except OSError as e:
            raise ReportError(f"Failed to append to {self.buffer_file}: {e}") from e
        return entry

    def read_entries(self, path: Path | None = None) -> list[dict]:
        path = path or self.buffer_file
        try:
            lines = path.read_text(encoding="utf-8").splitlines()
        except FileNotFoundError:
            return []
        except OSError as e:
            raise ReportError(f"Failed to read {path}: {e}") from e

        entries = []
        for line_no, line in enumerate(lines, start=1):
            if not line.strip():
                continue
            try:
                entries.append(json.loads(line))
            except ValueError:
                logger.warning("Skipping unreadable report line %d in %s", line_no, path)
        return entries

    def generate_report_file(self) -> Path:
        """Write all buffered entries to the XML report and empty the buffer.

        The buffer is moved aside before it is read, so entries appended
        while the report is being written land in a fresh buffer and are
        kept for the next report.
        """
        if not self.enabled:
            raise ReportError("Reporting is not set up for this channel")

        pending = self._take_pending()
        entries = []
        for path in pending:
            entries.extend(self.read_entries(path))
        content = build_report_xml(entries)
        try:
            self.report_file.parent.mkdir(parents=True, exist_ok=True)
            write_bytes_atomic(content, self.report_file)
        except OSError as e:
            raise ReportError(f"Failed to write report {self.report_file}: {e}") from e

        for path in pending:
            remove_if_exists(path)
        logger.info("Wrote %d listing statuses to %s", len(entries), self.report_file)
        return self.report_file

    def _take_pending(self) -> list[Path]:
        """Move the buffer aside and return every batch not yet reported.

        Batches left behind by an earlier failed run are picked up too.
        """
        directory = self.buffer_file.parent
        leftovers = sorted(directory.glob(f"{PENDING_PREFIX}*.jsonl"))
        pending = unique_tmp_path(directory, PENDING_PREFIX, ".jsonl")
        try:
            replace_file(self.buffer_file, pending)
        except FileNotFoundError:
            return leftovers
        except OSError as e:
            raise ReportError(f"Failed to move aside {self.buffer_file}: {e}") from e
        try:
            self.buffer_file.touch(exist_ok=True)
        except OSError as e:
            logger.warning("Failed to recreate %s: %s", self.buffer_file, e)
        return leftovers + [pending]


def build_report_xml(entries: list[dict]) -> bytes:
    root = etree.Element("listing-status")
    listings = etree.SubElement(root, "listings")
    for entry in entries:
        listing = etree.SubElement(listings, "listing")
        for tag, key in REPORT_FIELDS:
            value = entry.get(key)
            etree.SubElement(listing, tag).text = "" if value is None else str(value)
    return etree.tostring(root, xml_declaration=True, encoding="UTF-8", pretty_print=True)
