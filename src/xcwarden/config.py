"""Configuration loading and parsing for xcwarden."""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field, fields
from pathlib import Path

import yaml

from xcwarden.errors import InvalidConfiguration

logger = logging.getLogger("xcwarden")

CONFIG_FILENAMES = ["config.yml", "config.yaml"]

DEFAULT_HOME = "~/.xcwarden"


@dataclass
class WardenConfig:
    """Parsed xcwarden configuration."""
    home: Path = field(default_factory=lambda: Path(DEFAULT_HOME).expanduser())
    flush_delay: float = 0.5
    tail_lines: int = 100
    cross_process_lock: bool = False
    marker_name: str = ".xcwarden.rc"
    xcrun: str = "/usr/bin/xcrun"
    xcodebuild: str = "/usr/bin/xcodebuild"

    @property
    def state_file(self) -> Path:
        return self.home / "state.json"

    @property
    def log_dir(self) -> Path:
        return self.home / "logs"


def _home_dir(home: str | os.PathLike | None) -> Path:
    if home is not None:
        return Path(home).expanduser()
    return Path(os.environ.get("XCWARDEN_HOME", DEFAULT_HOME)).expanduser()


def _check_type(key: str, value: object, expected: type) -> None:
    if expected is float and isinstance(value, int) and not isinstance(value, bool):
        return
    if not isinstance(value, expected) or (expected is not bool and isinstance(value, bool)):
        raise InvalidConfiguration(f"'{key}' must be of type {expected.__name__}, got {value!r}")


def load_config(home: str | os.PathLike | None = None) -> WardenConfig:
    """Load config from <home>/config.yml, falling back to defaults."""
    root = _home_dir(home)

    raw = {}
    for filename in CONFIG_FILENAMES:
        config_path = root / filename
        if config_path.exists():
            try:
                raw = yaml.safe_load(config_path.read_text(encoding="utf-8")) or {}
            except yaml.YAMLError as exc:
                raise InvalidConfiguration(f"{config_path} is not valid YAML: {exc}") from exc
            break

    if not isinstance(raw, dict):
        raise InvalidConfiguration("top level of the config file must be a mapping")

    types = {f.name: f.type for f in fields(WardenConfig) if f.name != "home"}
    expected_types = {"float": float, "int": int, "bool": bool, "str": str}

    overrides = {}
    for key, value in raw.items():
        if key not in types:
            logger.warning("Unknown config key '%s' ignored", key)
            continue
        _check_type(key, value, expected_types[types[key]])
        overrides[key] = value

    config = WardenConfig(home=root, **overrides)
    config.flush_delay = float(config.flush_delay)

    if config.flush_delay < 0:
        raise InvalidConfiguration("'flush_delay' must not be negative")
    if config.tail_lines <= 0:
        raise InvalidConfiguration("'tail_lines' must be positive")
    if not config.marker_name or "/" in config.marker_name:
        raise InvalidConfiguration(f"'marker_name' must be a plain file name, got {config.marker_name!r}")

    return config
