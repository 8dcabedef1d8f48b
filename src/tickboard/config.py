"""Configuration: defaults, a YAML file, environment, then command-line flags."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import yaml

from tickboard.errors import ConfigError

ENV_PREFIX = "TICKBOARD_"

DEFAULTS: dict[str, Any] = {
    "url": "http://localhost:8080",
    "token": None,
    "project": None,
    "user": None,
    "refresh-interval": 30,
    "queue-size": 256,
    "reject-stale-events": True,
    "timeout": 10.0,
}


def _python_key(key: str) -> str:
    """Convert file-style key (hyphenated) to Python-style (underscored)."""
    return key.replace("-", "_")


def _file_key(python_key: str) -> str:
    """Convert Python-style key (underscored) to file-style (hyphenated)."""
    return python_key.replace("_", "-")


def _coerce(key: str, raw: Any) -> Any:
    """Type-coerce a value using the type of its default."""
    default = DEFAULTS.get(key)
    if raw is None or default is None or not isinstance(raw, str):
        return raw
    if isinstance(default, bool):
        return raw.lower() in ("true", "yes", "1")
    try:
        if isinstance(default, int):
            return int(raw)
        if isinstance(default, float):
            return float(raw)
    except ValueError:
        raise ConfigError(f"{key}: expected a number, got {raw!r}") from None
    return raw


def default_config_path() -> Path:
    base = os.environ.get("XDG_CONFIG_HOME") or Path.home() / ".config"
    return Path(base) / "tickboard" / "config.yaml"


def read_config_file(path: str | Path) -> dict[str, Any]:
    """Read a YAML mapping. A missing file is an empty config."""
    path = Path(path)
    if not path.exists():
        return {}
    try:
        data = yaml.safe_load(path.read_text()) or {}
    except yaml.YAMLError as exc:
        raise ConfigError(f"{path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"{path}: expected a mapping at top level")
    return {_file_key(str(k)): v for k, v in data.items()}


def read_env(environ: dict[str, str] | None = None) -> dict[str, Any]:
    """Pick TICKBOARD_* variables, e.g. TICKBOARD_REFRESH_INTERVAL."""
    environ = os.environ if environ is None else environ
    result = {}
    for name, raw in environ.items():
        if name.startswith(ENV_PREFIX):
            result[_file_key(name[len(ENV_PREFIX) :].lower())] = raw
    return result


def load_config(
    path: str | Path | None = None,
    overrides: dict[str, Any] | None = None,
    environ: dict[str, str] | None = None,
) -> dict[str, Any]:
    """Merge defaults, file, environment and overrides (later wins).

    Returns Python-style keys. Overrides set to None are ignored so
    unset command-line flags don't mask the file.
    """
    merged: dict[str, Any] = dict(DEFAULTS)
    merged.update(read_config_file(path or default_config_path()))
    merged.update(read_env(environ))
    for key, value in (overrides or {}).items():
        if value is not None:
            merged[_file_key(key)] = value
    return {_python_key(k): _coerce(k, v) for k, v in merged.items()}
