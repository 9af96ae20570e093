# === NAVMAP v1 ===
# {
#   "module": "RollingFetch.request",
#   "purpose": "Request descriptor carrying URL, overrides, output path and caller attributes",
#   "sections": [
#     {
#       "id": "fetchrequest",
#       "name": "FetchRequest",
#       "anchor": "class-fetchrequest",
#       "kind": "class"
#     }
#   ]
# }
# === /NAVMAP ===

"""Request descriptors consumed by :class:`RollingFetch.scheduler.RollingScheduler`.

A :class:`FetchRequest` is plain data: the scheduler never inspects its
``attributes`` and only reads the rest when the request is dispatched.

**Lifecycle:**

    request = FetchRequest("https://example.org/a", attributes={"id": 1})
    request.set_options({"timeout": 5}, merge_with_defaults=True)
    request.set_output_path("/tmp/a.html")
    scheduler.add(request)        # url + attributes are now fixed
    scheduler.execute(callback)   # options + output path fixed at dispatch
"""

from __future__ import annotations

import os
from typing import Any, Mapping, Optional

from RollingFetch.config.models import validate_options
from RollingFetch.errors import ConfigurationError, RequestStateError

__all__ = ["FetchRequest"]


class FetchRequest:
    """A logical HTTP request awaiting dispatch.

    Attributes:
        url: Target URL (read-only)
        options: Per-request transport overrides, or ``None``
        merge_with_defaults: Overlay ``options`` on the global defaults
            instead of replacing them
        output_path: Stream the response body to this file instead of memory
        attributes: Opaque caller data handed back with the result
    """

    __slots__ = (
        "_url",
        "_options",
        "_merge_with_defaults",
        "_output_path",
        "_attributes",
        "_queued",
        "_dispatched",
    )

    def __init__(
        self,
        url: str,
        options: Optional[Mapping[str, Any]] = None,
        attributes: Optional[Mapping[str, Any]] = None,
    ) -> None:
        if not isinstance(url, str) or not url.strip():
            raise ConfigurationError("url must be a non-empty string")
        self._url = url
        self._options = validate_options(options) if options is not None else None
        self._merge_with_defaults = False
        self._output_path: Optional[str] = None
        self._attributes = attributes
        self._queued = False
        self._dispatched = False

    def __repr__(self) -> str:
        return f"FetchRequest(url={self._url!r}, attributes={self._attributes!r})"

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def url(self) -> str:
        return self._url

    @property
    def options(self) -> Optional[dict[str, Any]]:
        return None if self._options is None else dict(self._options)

    @property
    def merge_with_defaults(self) -> bool:
        return self._merge_with_defaults

    @property
    def output_path(self) -> Optional[str]:
        return self._output_path

    @property
    def attributes(self) -> Optional[Mapping[str, Any]]:
        return self._attributes

    @property
    def dispatched(self) -> bool:
        return self._dispatched

    # ------------------------------------------------------------------
    # Mutators
    # ------------------------------------------------------------------

    def set_options(self, options: Mapping[str, Any], merge_with_defaults: bool = False) -> None:
        """Attach per-request overrides.

        Raises:
            ConfigurationError: If ``options`` contains unknown keys or bad values
            RequestStateError: If the request was already dispatched
        """
        self._check_not_dispatched("options")
        self._options = validate_options(options)
        self._merge_with_defaults = bool(merge_with_defaults)

    def set_merge_with_defaults(self, merge_with_defaults: bool) -> None:
        self._check_not_dispatched("merge_with_defaults")
        self._merge_with_defaults = bool(merge_with_defaults)

    def set_output_path(self, path: str | os.PathLike[str]) -> None:
        """Stream the body of this request to ``path`` (opened ``wb`` at dispatch)."""
        self._check_not_dispatched("output_path")
        path = os.fspath(path)
        if not path:
            raise ConfigurationError("output_path must be a non-empty path")
        self._output_path = path

    def set_attributes(self, attributes: Mapping[str, Any]) -> None:
        if self._queued:
            raise RequestStateError(
                f"attributes of {self._url} cannot change once the request is queued"
            )
        self._attributes = attributes

    # ------------------------------------------------------------------
    # Scheduler hooks
    # ------------------------------------------------------------------

    def _mark_queued(self) -> None:
        self._queued = True

    def _mark_dispatched(self) -> None:
        self._dispatched = True

    def _check_not_dispatched(self, field: str) -> None:
        if self._dispatched:
            raise RequestStateError(f"{field} of {self._url} cannot change after dispatch")
