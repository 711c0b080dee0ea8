"""Configuration loading for sysdash.

Loads settings from TOML config files with sensible defaults.
Search order: explicit --config path → ~/.config/sysdash/config.toml → defaults only.
"""

from __future__ import annotations

import logging
import math
import sys
import tomllib
from pathlib import Path
from typing import Any

DEFAULT_CONFIG: dict[str, Any] = {
    "interval": 1.0,
    "layout": "adaptive",
    "cpu_group_size": 5,
    "logging": {
        "file": "",
        "level": "WARNING",
    },
}

LAYOUT_MODES = ("fixed", "adaptive")

_DEFAULT_PATH = Path.home() / ".config" / "sysdash" / "config.toml"


def _deep_merge(base: dict[str, Any], overlay: dict[str, Any]) -> dict[str, Any]:
    """Merge overlay into base. Nested dicts are merged at the first level only."""
    merged = dict(base)
    for key, value in overlay.items():
        if key in merged and isinstance(merged[key], dict) and isinstance(value, dict):
            merged[key] = {**merged[key], **value}
        else:
            merged[key] = value
    return merged


def _fail(message: str) -> None:
    print(f"sysdash: {message}", file=sys.stderr)
    raise SystemExit(1)


def validate_config(config: dict[str, Any]) -> dict[str, Any]:
    """Check value types and ranges, exiting with a message on the first problem."""
    interval = config.get("interval")
    if (
        isinstance(interval, bool)
        or not isinstance(interval, (int, float))
        or not math.isfinite(interval)
        or interval <= 0
    ):
        _fail(f"interval must be a positive number, got {interval!r}")

    if config.get("layout") not in LAYOUT_MODES:
        _fail(f"layout must be one of {', '.join(LAYOUT_MODES)}, got {config.get('layout')!r}")

    group = config.get("cpu_group_size")
    if isinstance(group, bool) or not isinstance(group, int) or group < 1:
        _fail(f"cpu_group_size must be an integer >= 1, got {group!r}")

    if not isinstance(config.get("logging"), dict):
        _fail("[logging] must be a table")
    if not isinstance(config["logging"].get("file", ""), str):
        _fail(f"[logging] file must be a string, got {config['logging']['file']!r}")
    level = str(config["logging"].get("level", "WARNING")).upper()
    if not isinstance(logging.getLevelName(level), int):
        _fail(f"unknown logging level {level!r}")

    return config


def _apply_user_config(user_config: dict[str, Any], source: Path) -> dict[str, Any]:
    """Overlay a parsed user file on the defaults, dropping keys sysdash doesn't know."""
    known: dict[str, Any] = {}
    for key, value in user_config.items():
        if key in DEFAULT_CONFIG:
            known[key] = value
        else:
            print(f"sysdash: warning: unknown key {key!r} in {source}", file=sys.stderr)
    return validate_config(_deep_merge(DEFAULT_CONFIG, known))


def load_config(path: Path | None = None) -> dict[str, Any]:
    """Load configuration, merging user TOML over defaults.

    Args:
        path: Explicit config file path (from --config). If None, tries the
              default location ~/.config/sysdash/config.toml.

    Returns:
        Merged and validated configuration dict.

    Raises:
        SystemExit: If an explicit path doesn't exist or can't be parsed, or a
            value is out of range.
    """
    if path is not None:
        if not path.is_file():
            print(f"sysdash: config file not found: {path}", file=sys.stderr)
            raise SystemExit(1)
        try:
            user_config = tomllib.loads(path.read_text(encoding="utf-8"))
        except tomllib.TOMLDecodeError as e:
            print(f"sysdash: invalid TOML in {path}: {e}", file=sys.stderr)
            raise SystemExit(1) from e
        return _apply_user_config(user_config, path)

    # Try default location silently
    if _DEFAULT_PATH.is_file():
        try:
            user_config = tomllib.loads(_DEFAULT_PATH.read_text(encoding="utf-8"))
            return _apply_user_config(user_config, _DEFAULT_PATH)
        except tomllib.TOMLDecodeError:
            print(
                f"sysdash: warning: ignoring invalid TOML in {_DEFAULT_PATH}",
                file=sys.stderr,
            )

    return validate_config(_deep_merge(DEFAULT_CONFIG, {}))


def dump_default_config() -> str:
    """Return the default configuration as a TOML string."""
    lines = [
        "# sysdash configuration",
        "# Place this file at ~/.config/sysdash/config.toml",
        "",
        "# Seconds to wait for a quit key between frames",
        f"interval = {DEFAULT_CONFIG['interval']}",
        "# \"adaptive\" follows terminal orientation, \"fixed\" never changes",
        f'layout = "{DEFAULT_CONFIG["layout"]}"',
        "# CPU cores shown per row",
        f"cpu_group_size = {DEFAULT_CONFIG['cpu_group_size']}",
        "",
        "[logging]",
        f'file = "{DEFAULT_CONFIG["logging"]["file"]}"',
        f'level = "{DEFAULT_CONFIG["logging"]["level"]}"',
    ]
    return "\n".join(lines) + "\n"
