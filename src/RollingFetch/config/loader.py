# === NAVMAP v1 ===
# {
#   "module": "RollingFetch.config.loader",
#   "purpose": "Transport configuration loading with File/Env/CLI precedence.",
#   "sections": [
#     {
#       "id": "read-file",
#       "name": "_read_file",
#       "anchor": "function-read-file",
#       "kind": "function"
#     },
#     {
#       "id": "coerce-env-value",
#       "name": "_coerce_env_value",
#       "anchor": "function-coerce-env-value",
#       "kind": "function"
#     },
#     {
#       "id": "env-overrides",
#       "name": "_env_overrides",
#       "anchor": "function-env-overrides",
#       "kind": "function"
#     },
#     {
#       "id": "load-transport-config",
#       "name": "load_transport_config",
#       "anchor": "function-load-transport-config",
#       "kind": "function"
#     },
#     {
#       "id": "window-size-from-env",
#       "name": "window_size_from_env",
#       "anchor": "function-window-size-from-env",
#       "kind": "function"
#     }
#   ]
# }
# === /NAVMAP ===

"""
Transport Configuration Loading with File/Env/CLI Precedence

Implements three-level config composition:
1. **File level** (YAML/JSON): base configuration
2. **Environment level**: ROLLINGFETCH_* prefixed variables override file
3. **CLI level**: programmatic overrides win

Environment variables map directly onto option keys:
  ROLLINGFETCH_USER_AGENT="Custom UA"  →  user_agent="Custom UA"
  ROLLINGFETCH_HEADERS='{"Accept": "text/html"}'  →  headers={...}

JSON values are automatically parsed; strings are type-coerced when possible.
``ROLLINGFETCH_CONFIG`` names the config file for the CLI. ``ROLLINGFETCH_WINDOW``
is not a transport option either and is read separately by
:func:`window_size_from_env`.
"""

from __future__ import annotations

import json
import logging
import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import ValidationError

from RollingFetch.errors import ConfigurationError

from .models import DEFAULT_WINDOW_SIZE, OPTION_KEYS, TransportConfig

__all__ = ["ENV_PREFIX", "load_transport_config", "window_size_from_env"]

_LOGGER = logging.getLogger(__name__)

ENV_PREFIX = "ROLLINGFETCH_"
_WINDOW_ENV = f"{ENV_PREFIX}WINDOW"
_NON_OPTION_ENV = frozenset({_WINDOW_ENV, f"{ENV_PREFIX}CONFIG"})


def _read_file(path: str | Path) -> dict[str, Any]:
    """
    Read YAML or JSON config file.

    Args:
        path: File path (suffix determines format: .yaml/.yml or .json)

    Returns:
        Parsed config dictionary

    Raises:
        ConfigurationError: If file cannot be read or parsed
    """
    p = Path(path)
    if not p.exists():
        raise ConfigurationError(f"Config file not found: {path}")

    try:
        text = p.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigurationError(f"Cannot read config file {path}: {e}") from e

    suffix = p.suffix.lower()

    if suffix in (".yaml", ".yml"):
        try:
            data = yaml.safe_load(text) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in {path}: {e}") from e
    elif suffix == ".json":
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"Invalid JSON in {path}: {e}") from e
    else:
        raise ConfigurationError(f"Unsupported file format: {suffix}. Use .yaml or .json")

    if not isinstance(data, dict):
        raise ConfigurationError(f"Config file {path} must contain a mapping at the top level")
    return data


def _coerce_env_value(value: str) -> Any:
    """
    Attempt to coerce environment variable string to appropriate type.

    Tries JSON parsing first (handles dicts, bools, numbers).
    Falls back to the raw string if JSON fails.
    """
    try:
        return json.loads(value)
    except (json.JSONDecodeError, ValueError):
        pass

    if value.lower() in ("true", "false"):
        return value.lower() == "true"

    return value


def _env_overrides(env: Mapping[str, str]) -> dict[str, Any]:
    overrides: dict[str, Any] = {}
    for name, raw in env.items():
        if not name.startswith(ENV_PREFIX) or name in _NON_OPTION_ENV:
            continue
        key = name[len(ENV_PREFIX) :].lower()
        if key not in OPTION_KEYS:
            _LOGGER.warning("Ignoring unknown transport option in environment: %s", name)
            continue
        overrides[key] = _coerce_env_value(raw)
    return overrides


def load_transport_config(
    path: str | Path | None = None,
    *,
    env: Optional[Mapping[str, str]] = None,
    overrides: Optional[Mapping[str, Any]] = None,
) -> TransportConfig:
    """
    Build the global :class:`TransportConfig` from file, environment and overrides.

    Args:
        path: Optional YAML/JSON file holding option keys at the top level
        env: Environment mapping (defaults to ``os.environ``)
        overrides: Highest-precedence values, typically from CLI flags;
            ``None`` values are ignored

    Returns:
        Validated TransportConfig

    Raises:
        ConfigurationError: If any layer is unreadable or fails validation
    """
    data: dict[str, Any] = {}
    if path is not None:
        data.update(_read_file(path))
        _LOGGER.debug("Loaded transport config file %s", path)

    data.update(_env_overrides(os.environ if env is None else env))

    if overrides:
        data.update({k: v for k, v in overrides.items() if v is not None})

    try:
        return TransportConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigurationError(
            f"Invalid transport configuration: {e.errors()[0]['msg']}",
            details={"errors": e.errors()},
        ) from e


def window_size_from_env(env: Optional[Mapping[str, str]] = None) -> int:
    """Return ``ROLLINGFETCH_WINDOW`` as an int, or the default window size."""
    source = os.environ if env is None else env
    raw = source.get(_WINDOW_ENV)
    if raw is None or raw == "":
        return DEFAULT_WINDOW_SIZE
    try:
        return int(raw)
    except ValueError as e:
        raise ConfigurationError(f"{_WINDOW_ENV} must be an integer, got {raw!r}") from e
