"""Configuration loader for feed pickup."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

from common.config import ConfigSingleton, find_config_path, load_yaml

load_dotenv()

PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
CONFIG_DIR = PROJECT_ROOT / "configs"
CONFIG_ENV_VAR = "FEED_PICKUP_CONFIG"

DEFAULT_PICKUP_URL = "https://feeds.listhub.com/pickup/"
DEFAULT_WORKING_DIR = ".tmp"
DEFAULT_LOCK_PATH = "process.lock"


@dataclass
class LockConfig:
    path: str = DEFAULT_LOCK_PATH
    # A lock file older than this is assumed to be left over from a crash
    stale_after_seconds: float | None = 24 * 60 * 60


@dataclass
class ReportConfig:
    enabled: bool = True
    path: str | None = None  # defaults to <working_dir>/<channel>/report.xml


@dataclass
class FeedConfig:
    channel_id: str = ""
    username: str = ""
    password: str = ""
    filename: str | None = None
    pickup_url: str = DEFAULT_PICKUP_URL
    working_dir: str = DEFAULT_WORKING_DIR
    request_timeout: float | None = None
    chunk_size: int = 64 * 1024
    accepted_content_types: list[str] = field(default_factory=lambda: ["application/x-gzip"])
    lock: LockConfig = field(default_factory=LockConfig)
    report: ReportConfig = field(default_factory=ReportConfig)

    def __post_init__(self) -> None:
        if not self.username or not self.password:
            raise ValueError("Missing username or password for the feed pickup account")
        if not self.channel_id:
            raise ValueError("Missing channel id")
        if self.chunk_size <= 0:
            raise ValueError(f"chunk_size must be positive, got {self.chunk_size}")
        if not self.accepted_content_types:
            raise ValueError("accepted_content_types must not be empty")

    @property
    def feed_name(self) -> str:
        return self.filename or self.channel_id

    @property
    def feed_url(self) -> str:
        return f"{self.pickup_url.rstrip('/')}/{self.channel_id}/{self.feed_name}.xml.gz"

    @property
    def auth(self) -> tuple[str, str]:
        return (self.username, self.password)


def load_config(config_name: str | None = None, channel_id: str | None = None) -> FeedConfig:
    """Load configuration from YAML file.

    Args:
        config_name: Name of config file (without .yaml extension) or a path.
                    If None, uses FEED_PICKUP_CONFIG env var or "prod".
        channel_id: Overrides the configured channel.

    Returns:
        Loaded FeedConfig object
    """
    config_path = find_config_path(config_name, CONFIG_DIR, env_var=CONFIG_ENV_VAR)
    data = load_yaml(config_path)
    if channel_id:
        data["channel_id"] = channel_id
    return _parse_config(data)


def resolve_lock_path(path: str) -> str:
    """Anchor a relative lock path at the project root.

    Every process must agree on the lock file no matter where it was started.
    """
    lock_path = Path(path).expanduser()
    if not lock_path.is_absolute():
        lock_path = PROJECT_ROOT / lock_path
    return str(lock_path)


def _parse_config(data: dict) -> FeedConfig:
    """Parse config dictionary into FeedConfig object.

    Credentials and channel fall back to LISTHUB_* environment variables.
    """
    lock_data = data.get("lock", {}) or {}
    lock = LockConfig(
        path=resolve_lock_path(lock_data.get("path", DEFAULT_LOCK_PATH)),
        stale_after_seconds=lock_data.get("stale_after_seconds", LockConfig.stale_after_seconds),
    )

    report_data = data.get("report", {}) or {}
    report = ReportConfig(
        enabled=report_data.get("enabled", True),
        path=report_data.get("path"),
    )

    kwargs = {}
    if "accepted_content_types" in data:
        kwargs["accepted_content_types"] = list(data["accepted_content_types"])

    return FeedConfig(
        channel_id=data.get("channel_id") or os.environ.get("LISTHUB_CHANNEL_ID", ""),
        username=data.get("username") or os.environ.get("LISTHUB_USERNAME", ""),
        password=data.get("password") or os.environ.get("LISTHUB_PASSWORD", ""),
        filename=data.get("filename"),
        pickup_url=data.get("pickup_url", DEFAULT_PICKUP_URL),
        working_dir=data.get("working_dir", DEFAULT_WORKING_DIR),
        request_timeout=data.get("request_timeout"),
        chunk_size=data.get("chunk_size", 64 * 1024),
        lock=lock,
        report=report,
        **kwargs,
    )


_manager = ConfigSingleton(load_config)
get_config = _manager.get
set_config = _manager.set
reset_config = _manager.reset
