"""Shared fixtures for RollingFetch tests."""

from __future__ import annotations

from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

import httpx
import pytest

from RollingFetch.transport import (
    Completion,
    HttpTransport,
    OutputMarker,
    TransferInfo,
)


class FakeMulti:
    """Deterministic stand-in for :class:`MultiTransfer` driven by a virtual clock.

    Each registered transfer finishes ``delay_for(url)`` virtual seconds after
    it was registered. ``poll`` jumps the clock to the next finish time.
    """

    def __init__(self, delay_for: Callable[[str], float], status_for: Callable[[str], int]):
        self._delay_for = delay_for
        self._status_for = status_for
        self.now = 0.0
        self.events: List[Tuple[str, int, Optional[str]]] = []
        self.max_active = 0
        self.registered: List[Dict[str, Any]] = []
        self.poll_snapshots: List[Tuple[int, int]] = []
        self.drained_total = 0
        self.closed = False
        self._next_token = 1
        self._transfers: Dict[int, Dict[str, Any]] = {}
        self._finished: List[int] = []

    @property
    def active(self) -> int:
        return len(self._transfers)

    @property
    def running(self) -> int:
        return sum(1 for t in self._transfers.values() if not t["done"])

    def register(self, options: Mapping[str, Any], *, output_path: Optional[str] = None) -> int:
        token = self._next_token
        self._next_token += 1
        url = options["url"]
        self._transfers[token] = {
            "url": url,
            "options": dict(options),
            "output_path": output_path,
            "finish_at": self.now + self._delay_for(url),
            "done": False,
        }
        self.events.append(("register", token, url))
        self.registered.append({"options": dict(options), "output_path": output_path})
        self.max_active = max(self.max_active, self.running)
        return token

    def poll(self, timeout: Optional[float] = None) -> int:
        self.poll_snapshots.append((self.running, self.drained_total))
        if self._finished:
            return self.running
        running = [t for t in self._transfers.values() if not t["done"]]
        if running:
            self.now = min(t["finish_at"] for t in running)
            ready = sorted(
                (
                    tok
                    for tok, t in self._transfers.items()
                    if not t["done"] and t["finish_at"] <= self.now
                ),
                key=lambda tok: (self._transfers[tok]["finish_at"], tok),
            )
            for tok in ready:
                self._transfers[tok]["done"] = True
                self._finished.append(tok)
        return self.running

    def drain_completed(self) -> List[Completion]:
        completions = []
        for tok in self._finished:
            transfer = self._transfers[tok]
            info = TransferInfo(
                url=transfer["url"],
                effective_url=transfer["url"],
                status_code=self._status_for(transfer["url"]),
                total_time=transfer["finish_at"],
            )
            output = (
                OutputMarker.WRITTEN_TO_FILE
                if transfer["output_path"]
                else transfer["url"].encode()
            )
            completions.append(Completion(token=tok, info=info, output=output))
        self.drained_total += len(completions)
        self._finished = []
        return completions

    def unregister(self, token: int) -> None:
        self.events.append(("unregister", token, None))
        del self._transfers[token]

    def close(self) -> None:
        self.closed = True


class FakeTransport:
    """Transport double exposing the same surface as :class:`HttpTransport`."""

    def __init__(
        self,
        delays: Optional[Mapping[str, float]] = None,
        statuses: Optional[Mapping[str, int]] = None,
    ) -> None:
        self.delays = dict(delays or {})
        self.statuses = dict(statuses or {})
        self.multis: List[FakeMulti] = []
        self.performed: List[Dict[str, Any]] = []

    def perform(self, options: Mapping[str, Any], *, output_path: Optional[str] = None):
        self.performed.append(dict(options))
        url = options["url"]
        info = TransferInfo(url=url, effective_url=url, status_code=self.statuses.get(url, 200))
        output = OutputMarker.WRITTEN_TO_FILE if output_path else url.encode()
        return output, info

    def open_multi(self) -> FakeMulti:
        multi = FakeMulti(
            delay_for=lambda url: self.delays.get(url, 1.0),
            status_for=lambda url: self.statuses.get(url, 200),
        )
        self.multis.append(multi)
        return multi


@pytest.fixture
def fake_transport() -> Callable[..., FakeTransport]:
    """Build a scripted transport with per-URL delays and status codes."""

    def _build(**kwargs: Any) -> FakeTransport:
        return FakeTransport(**kwargs)

    return _build


@pytest.fixture
def mock_http_transport() -> Callable[[Callable[[httpx.Request], Any]], HttpTransport]:
    """Build an :class:`HttpTransport` backed by :class:`httpx.MockTransport`.

    The handler may be a plain function (sync and multiplexed paths) or an
    ``async def`` (multiplexed path only).
    """

    def _build(handler: Callable[[httpx.Request], Any]) -> HttpTransport:
        return HttpTransport(httpx.MockTransport(handler))

    return _build
