"""Configuration models and loaders for RollingFetch transports."""

from .loader import ENV_PREFIX, load_transport_config, window_size_from_env
from .models import (
    DEFAULT_USER_AGENT,
    DEFAULT_WINDOW_SIZE,
    OPTION_KEYS,
    TransportConfig,
    TransportOptions,
    validate_options,
)

__all__ = [
    "DEFAULT_USER_AGENT",
    "DEFAULT_WINDOW_SIZE",
    "ENV_PREFIX",
    "OPTION_KEYS",
    "TransportConfig",
    "TransportOptions",
    "load_transport_config",
    "validate_options",
    "window_size_from_env",
]
