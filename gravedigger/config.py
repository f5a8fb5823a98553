"""Load and validate gravedigger's config.yaml and locate the graveyard."""

from __future__ import annotations

import os
import sys
import tempfile
from pathlib import Path
from typing import Any

import yaml


# Default config values
DEFAULTS: dict[str, Any] = {
    "graveyard": None,
    "partial_copy": "remove",
    "restore_conflict": "fail",
    "inspect": {
        "lines": 6,
        "files": 6,
    },
    "big_file_threshold": 500_000_000,
}

PARTIAL_COPY_CHOICES = ("remove", "keep")
RESTORE_CONFLICT_CHOICES = ("fail", "rename")

GRAVEYARD_ENV = "GRAVEYARD"


class ConfigError(Exception):
    """Raised when config is invalid or missing."""


def _deep_merge(base: dict, override: dict) -> dict:
    """Merge override into base recursively. Override wins on conflicts."""
    result = base.copy()
    for key, val in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(val, dict):
            result[key] = _deep_merge(result[key], val)
        else:
            result[key] = val
    return result


def _is_count(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value >= 0


def _validate(config: dict) -> None:
    """Validate required fields in config."""
    graveyard = config.get("graveyard")
    if graveyard is not None and not isinstance(graveyard, str):
        raise ConfigError("'graveyard' must be a path string or null")

    if config.get("partial_copy") not in PARTIAL_COPY_CHOICES:
        raise ConfigError(
            f"'partial_copy' must be one of {list(PARTIAL_COPY_CHOICES)}, "
            f"got {config.get('partial_copy')!r}"
        )
    if config.get("restore_conflict") not in RESTORE_CONFLICT_CHOICES:
        raise ConfigError(
            f"'restore_conflict' must be one of {list(RESTORE_CONFLICT_CHOICES)}, "
            f"got {config.get('restore_conflict')!r}"
        )

    inspect = config.get("inspect")
    if not isinstance(inspect, dict):
        raise ConfigError("'inspect' must be a mapping")
    for key in ("lines", "files"):
        if not _is_count(inspect.get(key)):
            raise ConfigError(f"'inspect.{key}' must be a non-negative integer")

    if not _is_count(config.get("big_file_threshold")):
        raise ConfigError("'big_file_threshold' must be a non-negative integer")


def default_config_path() -> Path:
    """``$XDG_CONFIG_HOME/gravedigger/config.yaml`` or its ``~/.config`` fallback."""
    base = os.environ.get("XDG_CONFIG_HOME")
    root = Path(base) if base else Path.home() / ".config"
    return root / "gravedigger" / "config.yaml"


def load_config(config_path: Path | None = None) -> dict:
    """Load config from *config_path*, or the default location.

    An explicit *config_path* must exist. The default location is
    optional: if absent, callers get DEFAULTS. Either way the result is
    merged with DEFAULTS so callers always get a full config dict.
    """
    path = Path(config_path) if config_path else default_config_path()

    if not path.exists():
        if config_path:
            raise ConfigError(f"Config not found: {path}")
        config = _deep_merge(DEFAULTS, {})
        _validate(config)
        return config

    with open(path) as f:
        try:
            raw = yaml.safe_load(f)
        except yaml.YAMLError as exc:
            raise ConfigError(f"Config is not valid YAML: {path}: {exc}") from exc

    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise ConfigError(f"Config must be a YAML mapping, got {type(raw).__name__}")

    config = _deep_merge(DEFAULTS, raw)
    _validate(config)
    return config


def _current_user() -> str:
    for var in ("USER", "LOGNAME", "USERNAME"):
        value = os.environ.get(var)
        if value:
            return value
    if sys.platform != "win32":
        import pwd

        return pwd.getpwuid(os.getuid()).pw_name
    return "unknown"


def default_graveyard() -> Path:
    """``<tempdir>/graveyard-<user>``, the last-resort graveyard location."""
    return Path(tempfile.gettempdir()) / f"graveyard-{_current_user()}"


def resolve_graveyard_root(config: dict, override: Path | str | None = None) -> Path:
    """Pick the graveyard root.

    Order, first match wins: *override* (the ``--graveyard`` flag),
    ``$GRAVEYARD``, the config's ``graveyard``, ``$XDG_DATA_HOME/graveyard``,
    then :func:`default_graveyard`.
    """
    if override:
        return Path(override).expanduser()
    env_graveyard = os.environ.get(GRAVEYARD_ENV)
    if env_graveyard:
        return Path(env_graveyard).expanduser()
    if config.get("graveyard"):
        return Path(config["graveyard"]).expanduser()
    xdg_data = os.environ.get("XDG_DATA_HOME")
    if xdg_data:
        return Path(xdg_data).expanduser() / "graveyard"
    return default_graveyard()
