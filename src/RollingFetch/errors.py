# === NAVMAP v1 ===
# {
#   "module": "RollingFetch.errors",
#   "purpose": "Exception taxonomy for API misuse of the rolling scheduler.",
#   "sections": [
#     {
#       "id": "rollingfetcherror",
#       "name": "RollingFetchError",
#       "anchor": "class-rollingfetcherror",
#       "kind": "class"
#     },
#     {
#       "id": "configurationerror",
#       "name": "ConfigurationError",
#       "anchor": "class-configurationerror",
#       "kind": "class"
#     },
#     {
#       "id": "requeststateerror",
#       "name": "RequestStateError",
#       "anchor": "class-requeststateerror",
#       "kind": "class"
#     },
#     {
#       "id": "schedulererror",
#       "name": "SchedulerError",
#       "anchor": "class-schedulererror",
#       "kind": "class"
#     }
#   ]
# }
# === /NAVMAP ===

"""Exception taxonomy for RollingFetch.

Responsibilities
----------------
- Signal misuse of the public API (bad options, bad window sizes, mutating a
  request after it was handed to the scheduler) as early as possible, at the
  setter or ``add`` call that introduced the problem.

Design Notes
------------
- Transfer failures (HTTP 4xx/5xx, connection errors, timeouts, unwritable
  output files) are *not* exceptions. They are reported through
  :class:`RollingFetch.transport.TransferInfo` and delivered to the result
  callback like any other completion.
"""

from __future__ import annotations

from typing import Any

__all__ = (
    "RollingFetchError",
    "ConfigurationError",
    "RequestStateError",
    "SchedulerError",
)


class RollingFetchError(Exception):
    """Base class for all RollingFetch errors."""


class ConfigurationError(RollingFetchError, ValueError):
    """Raised when options, window sizes or config files are invalid."""

    def __init__(self, message: str, *, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.details = details or {}


class RequestStateError(RollingFetchError):
    """Raised when a request is modified after the scheduler took ownership."""


class SchedulerError(RollingFetchError):
    """Raised when the scheduler itself is in an unusable state."""
