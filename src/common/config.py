"""Shared configuration utilities."""

import os
import threading
from pathlib import Path
from typing import Callable, Generic, TypeVar

import yaml

T = TypeVar('T')

YAML_SUFFIXES = (".yaml", ".yml")


def find_config_path(
    config_name: str | None,
    config_dir: Path,
    default_name: str = "prod",
    env_var: str | None = None,
) -> Path:
    """Resolve a config name or path to an existing YAML file.

    Args:
        config_name: Name inside ``config_dir`` (without .yaml), a path to a
            .yaml/.yml file, or None to fall back to ``env_var`` / ``default_name``
        config_dir: Directory containing named config files
        default_name: Name used when neither argument nor env var is set
        env_var: Environment variable holding a config name or path

    Raises:
        FileNotFoundError: If the resolved file doesn't exist
    """
    name = config_name or (os.environ.get(env_var) if env_var else None) or default_name

    candidate = Path(name)
    config_path = candidate if candidate.suffix in YAML_SUFFIXES else Path(config_dir) / f"{name}.yaml"

    if not config_path.is_file():
        raise FileNotFoundError(f"Config file not found: {config_path}")
    return config_path


def load_yaml(path: Path) -> dict:
    """Load a YAML mapping; an empty file loads as {}."""
    with open(path, encoding="utf-8") as f:
        data = yaml.safe_load(f)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"Config file {path} must contain a mapping")
    return data


class ConfigSingleton(Generic[T]):
    """Process-wide config holder with get/set/reset.

    Loading happens lazily on the first ``get`` and at most once, even when
    several threads ask at the same time.

    Example:
        >>> _manager = ConfigSingleton(load_my_config)
        >>> get_config = _manager.get
        >>> set_config = _manager.set
        >>> reset_config = _manager.reset
    """

    def __init__(self, loader: Callable[[], T] | None = None):
        self._loader = loader
        self._value: T | None = None
        self._guard = threading.Lock()

    def get(self) -> T:
        with self._guard:
            if self._value is None:
                if self._loader is None:
                    raise RuntimeError("No config loaded and no loader set")
                self._value = self._loader()
            return self._value

    def set(self, config: T) -> None:
        with self._guard:
            self._value = config

    def reset(self) -> None:
        with self._guard:
            self._value = None
