"""Effective-option resolution: global defaults layered with per-request overrides."""

from __future__ import annotations

from typing import Any, Mapping

from RollingFetch.request import FetchRequest

__all__ = ["merge_options", "resolve_options"]


def merge_options(base: Mapping[str, Any], overrides: Mapping[str, Any]) -> dict[str, Any]:
    """Overlay ``overrides`` on ``base``; keys in ``overrides`` win."""
    merged = dict(base)
    merged.update(overrides)
    return merged


def resolve_options(global_options: Mapping[str, Any], request: FetchRequest) -> dict[str, Any]:
    """
    Return the effective option map for one transfer of ``request``.

    - ``merge_with_defaults``: request options are overlaid on the globals.
    - otherwise: request options, when present, replace the globals entirely.
    - ``url`` is always forced to ``request.url``.

    The inputs are never mutated and the result is a fresh dict, so calling
    this twice with unchanged inputs yields equal results.
    """
    request_options = request.options
    if request.merge_with_defaults:
        options = (
            merge_options(global_options, request_options)
            if request_options
            else dict(global_options)
        )
    else:
        options = request_options if request_options else dict(global_options)

    options["url"] = request.url
    return options
