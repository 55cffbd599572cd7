"""Common CLI helper utilities."""

from __future__ import annotations

import logging


def setup_logging(verbose: bool = False) -> None:
    """Configure standard logging format for CLI tools."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s - %(levelname)s - %(message)s",
    )
    # Lock and connection chatter is only useful when debugging
    logging.getLogger("filelock").setLevel(logging.INFO)
    logging.getLogger("urllib3").setLevel(logging.WARNING)
