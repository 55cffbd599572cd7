"""Shared fixtures for feed_pickup tests."""

import gzip
from unittest.mock import Mock

import pytest
from requests.structures import CaseInsensitiveDict

from feed_pickup.config import FeedConfig, LockConfig, ReportConfig

FEED_XML = (
    b'<?xml version="1.0" encoding="UTF-8"?>\n'
    b'<Listings xmlns="http://rets.org/xsd/Syndication/2012-03">'
    b"<Listing><ListingKey>abc-1</ListingKey><ListPrice>100000</ListPrice></Listing>"
    b"<Listing><ListingKey>abc-2</ListingKey><ListPrice>250000</ListPrice></Listing>"
    b"</Listings>"
)


@pytest.fixture
def config(tmp_path) -> FeedConfig:
    return FeedConfig(
        channel_id="chan",
        username="user",
        password="secret",
        pickup_url="https://feeds.example.com/pickup/",
        working_dir=str(tmp_path / "work"),
        chunk_size=16,
        lock=LockConfig(path=str(tmp_path / "process.lock"), stale_after_seconds=3600),
        report=ReportConfig(enabled=True),
    )


@pytest.fixture
def feed_xml() -> bytes:
    return FEED_XML


@pytest.fixture
def feed_gz() -> bytes:
    return gzip.compress(FEED_XML)


@pytest.fixture
def make_response():
    """Build a fake streaming requests response."""

    def _make(status_code=200, headers=None, body=b"", chunk_size=16) -> Mock:
        response = Mock()
        response.status_code = status_code
        response.headers = CaseInsensitiveDict(headers or {})
        chunks = [body[i:i + chunk_size] for i in range(0, len(body), chunk_size)]
        response.iter_content.return_value = iter(chunks)
        return response

    return _make
