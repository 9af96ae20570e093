"""
Pydantic v2 Configuration Models for RollingFetch

Provides strict, typed validation for transport options:
- ``TransportOptions``: partial option maps attached to a single request
- ``TransportConfig``: global defaults every transfer starts from

Both models use extra="forbid" so a misspelt option key fails at the call that
introduced it instead of being silently ignored inside the dispatch loop.
Option maps travel through the scheduler as plain dicts; the models are only
the validation and defaulting layer.
"""

from __future__ import annotations

from typing import Any, ClassVar, Dict, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from RollingFetch.errors import ConfigurationError

__all__ = [
    "DEFAULT_USER_AGENT",
    "DEFAULT_WINDOW_SIZE",
    "OPTION_KEYS",
    "TransportConfig",
    "TransportOptions",
    "validate_options",
]

DEFAULT_USER_AGENT = "RollingFetch/0.1 (+https://pypi.org/project/rollingfetch/)"
DEFAULT_WINDOW_SIZE = 5


class TransportOptions(BaseModel):
    """Per-request transport overrides; every key is optional."""

    model_config: ClassVar[ConfigDict] = ConfigDict(extra="forbid")

    url: Optional[str] = Field(default=None, description="Target URL (always forced at resolution)")
    method: Optional[str] = Field(default=None, description="HTTP method")
    headers: Optional[Dict[str, str]] = Field(default=None, description="Extra request headers")
    params: Optional[Dict[str, Any]] = Field(default=None, description="Query parameters")
    content: Optional[Union[bytes, str]] = Field(default=None, description="Raw request body")
    data: Optional[Dict[str, Any]] = Field(default=None, description="Form-encoded body")
    follow_redirects: Optional[bool] = Field(default=None, description="Follow 3xx responses")
    max_redirects: Optional[int] = Field(default=None, description="Redirect ceiling")
    timeout: Optional[float] = Field(default=None, description="Overall transfer budget (s)")
    connect_timeout: Optional[float] = Field(default=None, description="Connect budget (s)")
    verify: Optional[bool] = Field(default=None, description="Verify TLS peer certificates")
    user_agent: Optional[str] = Field(default=None, description="User-Agent header")
    buffer_response: Optional[bool] = Field(
        default=None, description="Keep the response body in memory"
    )

    @field_validator("method")
    @classmethod
    def validate_method(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        v = v.strip().upper()
        if not v:
            raise ValueError("method must be a non-empty string")
        return v

    @field_validator("headers")
    @classmethod
    def validate_headers(cls, v: Optional[Dict[str, str]]) -> Optional[Dict[str, str]]:
        if v is None:
            return v
        for name, value in v.items():
            if not name.isascii() or not value.isascii():
                raise ValueError(f"header {name!r} must contain only ASCII characters")
        return v

    @field_validator("user_agent")
    @classmethod
    def validate_user_agent(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not v.isascii():
            raise ValueError("user_agent must contain only ASCII characters")
        return v

    @field_validator("max_redirects")
    @classmethod
    def validate_max_redirects(cls, v: Optional[int]) -> Optional[int]:
        if v is not None and v < 0:
            raise ValueError("max_redirects must be >= 0")
        return v

    @field_validator("timeout", "connect_timeout")
    @classmethod
    def validate_timeouts(cls, v: Optional[float]) -> Optional[float]:
        if v is not None and v <= 0:
            raise ValueError("Timeout values must be > 0")
        return v


class TransportConfig(TransportOptions):
    """Global transport defaults merged with per-request overrides."""

    follow_redirects: bool = Field(default=True, description="Follow 3xx responses")
    max_redirects: int = Field(default=5, description="Redirect ceiling")
    timeout: float = Field(default=60.0, description="Overall transfer budget (s)")
    connect_timeout: float = Field(default=60.0, description="Connect budget (s)")
    verify: bool = Field(default=False, description="Verify TLS peer certificates")
    user_agent: str = Field(default=DEFAULT_USER_AGENT, description="User-Agent header")
    buffer_response: bool = Field(default=True, description="Keep the response body in memory")

    def to_options(self) -> Dict[str, Any]:
        """Return the option map used as the global layer during resolution."""
        return self.model_dump(exclude_none=True)


OPTION_KEYS = frozenset(TransportOptions.model_fields)


def validate_options(options: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Validate a (possibly partial) option map and return a normalised copy.

    Keys explicitly set to ``None`` are dropped, so they fall back to whatever
    layer sits underneath them.

    Raises:
        ConfigurationError: If a key is unknown or a value fails validation
    """
    if isinstance(options, TransportOptions):
        return options.model_dump(exclude_none=True)
    if not isinstance(options, Mapping):
        raise ConfigurationError(
            f"options must be a mapping, got {type(options).__name__}",
        )
    try:
        model = TransportOptions.model_validate(dict(options))
    except ValidationError as exc:
        unknown = sorted(set(options) - OPTION_KEYS)
        raise ConfigurationError(
            f"Invalid transport options: {exc.errors()[0]['msg']}"
            + (f" (unknown keys: {', '.join(map(str, unknown))})" if unknown else ""),
            details={"errors": exc.errors(), "unknown_keys": unknown},
        ) from exc
    return model.model_dump(exclude_unset=True, exclude_none=True)
