"""Configuration file handling for depcat."""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Any

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib

import tomli_w

from depcat.constants import (
    DEFAULT_ON_DUPLICATE,
    DEFAULT_TOP_N,
    ON_DUPLICATE_CHOICES,
)

# Config filename
CONFIG_FILENAME = "config.toml"


def get_config_path(depcat_dir: str | Path) -> Path:
    """Get the path to the config file.

    Args:
        depcat_dir: Path to .depcat directory

    Returns:
        Path to config.toml
    """
    return Path(depcat_dir) / CONFIG_FILENAME


def load_config(depcat_dir: str | Path) -> dict[str, Any]:
    """Load configuration from .depcat/config.toml.

    Args:
        depcat_dir: Path to .depcat directory

    Returns:
        Configuration dictionary, or empty dict if no readable config exists
    """
    config_path = get_config_path(depcat_dir)
    if not config_path.exists():
        return {}

    try:
        with config_path.open("rb") as f:
            return tomllib.load(f)
    except (tomllib.TOMLDecodeError, OSError) as e:
        logging.getLogger(__name__).warning(
            "Ignoring unreadable config %s: %s",
            config_path,
            e,
        )
        return {}


def save_config(depcat_dir: str | Path, config: dict[str, Any]) -> None:
    """Save configuration to .depcat/config.toml.

    Args:
        depcat_dir: Path to .depcat directory
        config: Configuration dictionary to save
    """
    config_path = get_config_path(depcat_dir)
    config_path.parent.mkdir(parents=True, exist_ok=True)

    with config_path.open("wb") as f:
        tomli_w.dump(config, f)


def get_on_duplicate(depcat_dir: str | Path) -> str:
    """Get the duplicate-edge policy: ``"reject"`` or ``"overwrite"``."""
    value = load_config(depcat_dir).get("on_duplicate", DEFAULT_ON_DUPLICATE)
    if value not in ON_DUPLICATE_CHOICES:
        logging.getLogger(__name__).warning(
            "Unknown on_duplicate value %r, using %r",
            value,
            DEFAULT_ON_DUPLICATE,
        )
        return DEFAULT_ON_DUPLICATE
    return value


def get_stats_top_n(depcat_dir: str | Path) -> int:
    """Get how many items the stats rankings keep."""
    value = load_config(depcat_dir).get("stats_top_n", DEFAULT_TOP_N)
    if not isinstance(value, int) or isinstance(value, bool) or value < 1:
        return DEFAULT_TOP_N
    return value


def get_default_operator_override(depcat_dir: str | Path) -> str | None:
    """Get the configured default operator, if any."""
    value = load_config(depcat_dir).get("default_operator")
    return value if isinstance(value, str) and value else None
