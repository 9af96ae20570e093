"""HTTPX transport adapter: one blocking transfer or a multiplexed engine.

Responsibilities
----------------
- Translate an effective option map (see :mod:`RollingFetch.config.models`)
  into ``httpx`` client and request arguments, including a Certifi-backed SSL
  context when TLS verification is requested.
- :meth:`HttpTransport.perform` runs a single transfer on an
  :class:`httpx.Client` and blocks until it finishes.
- :class:`MultiTransfer` multiplexes many transfers on one thread. It owns a
  private asyncio event loop and a set of :class:`httpx.AsyncClient`
  instances; the loop only runs while the caller sits in :meth:`MultiTransfer.poll`,
  so all scheduler bookkeeping happens synchronously on the calling thread.
- Report every outcome through :class:`TransferInfo`. Timeouts, connection
  failures, redirect overflows and unwritable output files are recorded on the
  info object and never raised.

Design Notes
------------
- Transfers are identified by integer tokens drawn from a monotonically
  increasing counter, never by object identity.
- An output file is opened inside its transfer and closed on every exit path,
  including cancellation when the engine is closed early.
- ``timeout`` is the overall budget of one transfer. The multiplexed path
  wraps the whole transfer in a deadline and the blocking path checks the
  deadline between body chunks. It is also the httpx read/write/pool budget,
  with ``connect_timeout`` for connect.
- Tests inject :class:`httpx.MockTransport` through the ``transport`` argument.
"""

from __future__ import annotations

import asyncio
import functools
import itertools
import logging
import ssl
import time
from collections import deque
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Deque, Dict, List, Mapping, Optional, Tuple, Union

import certifi
import httpx

__all__ = [
    "Completion",
    "FetchResult",
    "HttpTransport",
    "MultiTransfer",
    "Output",
    "OutputMarker",
    "TransferInfo",
]

LOGGER = logging.getLogger(__name__)

# httpx's own defaults, used when an option map omits the key
_HTTPX_DEFAULT_TIMEOUT = 5.0
_HTTPX_MAX_REDIRECTS = 20


class OutputMarker(Enum):
    """Sentinel outputs delivered in place of a response body."""

    WRITTEN_TO_FILE = "written-to-file"


Output = Union[bytes, OutputMarker, None]


@dataclass
class TransferInfo:
    """Metadata describing one finished transfer.

    ``status_code`` is 0 when no HTTP response was received. ``error`` and
    ``error_type`` are set for timeouts (``"timeout"``), connection problems
    (``"network"``), protocol or redirect problems (``"protocol"``) and output
    file failures (``"file"``).
    """

    url: str
    effective_url: Optional[str] = None
    status_code: int = 0
    http_version: Optional[str] = None
    headers: Dict[str, str] = field(default_factory=dict)
    content_type: Optional[str] = None
    size_download: int = 0
    redirect_count: int = 0
    total_time: float = 0.0
    error: Optional[str] = None
    error_type: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None and 200 <= self.status_code < 300

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class FetchResult:
    """Return value of a single transfer executed without a callback."""

    info: TransferInfo
    output: Output


@dataclass(frozen=True)
class Completion:
    """A finished transfer reported by :meth:`MultiTransfer.drain_completed`."""

    token: int
    info: TransferInfo
    output: Output


_TIMEOUT_ERRORS = (httpx.TimeoutException, asyncio.TimeoutError, TimeoutError)
_PROTOCOL_ERRORS = (
    httpx.TooManyRedirects,
    httpx.ProtocolError,
    httpx.UnsupportedProtocol,
    httpx.DecodingError,
    httpx.InvalidURL,
)
_TRANSFER_ERRORS = (httpx.HTTPError, httpx.InvalidURL, asyncio.TimeoutError, OSError)


def _record_error(info: TransferInfo, exc: BaseException, *, timeout: Optional[float]) -> None:
    if isinstance(exc, _TIMEOUT_ERRORS):
        info.error_type = "timeout"
        info.error = str(exc) or f"transfer exceeded {timeout}s"
    elif isinstance(exc, _PROTOCOL_ERRORS):
        info.error_type = "protocol"
        info.error = str(exc) or type(exc).__name__
    elif isinstance(exc, httpx.HTTPError):
        info.error_type = "network"
        info.error = str(exc) or type(exc).__name__
    else:
        info.error_type = "file"
        info.error = str(exc) or type(exc).__name__
    LOGGER.warning(
        "rolling-transfer-failed",
        extra={"url": info.url, "error_type": info.error_type, "error": info.error},
    )


def _record_response(info: TransferInfo, response: httpx.Response) -> None:
    info.effective_url = str(response.url)
    info.status_code = response.status_code
    info.http_version = response.http_version
    info.headers = dict(response.headers)
    info.content_type = response.headers.get("content-type")
    info.redirect_count = len(response.history)


class _BodySink:
    """Collects, streams to disk, or discards the chunks of one response."""

    def __init__(self, output_path: Optional[str], buffer: bool) -> None:
        self.output_path = output_path
        self.buffer = bool(buffer) and output_path is None
        self.size = 0
        self._parts: List[bytes] = []
        self._fh = None

    def open(self) -> None:
        if self.output_path is not None:
            self._fh = open(self.output_path, "wb")

    def write(self, chunk: bytes) -> None:
        if not chunk:
            return
        self.size += len(chunk)
        if self._fh is not None:
            self._fh.write(chunk)
        elif self.buffer:
            self._parts.append(chunk)

    def close(self) -> None:
        if self._fh is not None:
            self._fh.close()
            self._fh = None

    def output(self, failed: bool) -> Output:
        if self.output_path is not None:
            return OutputMarker.WRITTEN_TO_FILE
        if failed or not self.buffer:
            return None
        return b"".join(self._parts)


@functools.lru_cache(maxsize=1)
def _build_ssl_context() -> ssl.SSLContext:
    context = ssl.create_default_context()
    context.load_verify_locations(certifi.where())
    return context


def _client_settings(options: Mapping[str, Any]) -> Tuple[bool, int]:
    """Options that httpx only accepts per client, used as the client cache key."""
    return (
        bool(options.get("verify", True)),
        int(options.get("max_redirects", _HTTPX_MAX_REDIRECTS)),
    )


def _client_kwargs(settings: Tuple[bool, int], transport: Any) -> Dict[str, Any]:
    verify, max_redirects = settings
    kwargs: Dict[str, Any] = {
        "verify": _build_ssl_context() if verify else False,
        "max_redirects": max_redirects,
        "trust_env": transport is None,
    }
    if transport is not None:
        kwargs["transport"] = transport
    return kwargs


def _build_request(
    client: httpx.Client | httpx.AsyncClient, options: Mapping[str, Any]
) -> httpx.Request:
    total = options.get("timeout", _HTTPX_DEFAULT_TIMEOUT)
    timeout = httpx.Timeout(total, connect=options.get("connect_timeout", total))

    try:
        headers = httpx.Headers(options.get("headers") or {})
        user_agent = options.get("user_agent")
        if user_agent and "user-agent" not in headers:
            headers["User-Agent"] = user_agent

        return client.build_request(
            options.get("method", "GET"),
            options["url"],
            headers=headers,
            params=options.get("params"),
            content=options.get("content"),
            data=options.get("data"),
            timeout=timeout,
        )
    except (TypeError, ValueError) as exc:
        # unencodable headers or bodies fail this transfer only
        raise httpx.LocalProtocolError(f"cannot build request: {exc}") from exc


class HttpTransport:
    """Factory for blocking transfers and multiplexed engines.

    Args:
        transport: Optional httpx transport used by every client (tests pass
            :class:`httpx.MockTransport`, which serves both sync and async clients)
        async_transport: Optional transport for the multiplexed engine only
    """

    def __init__(
        self,
        transport: Optional[Union[httpx.BaseTransport, httpx.AsyncBaseTransport]] = None,
        *,
        async_transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._transport = transport if isinstance(transport, httpx.BaseTransport) else None
        if async_transport is None and isinstance(transport, httpx.AsyncBaseTransport):
            async_transport = transport
        self._async_transport = async_transport

    def perform(
        self, options: Mapping[str, Any], *, output_path: Optional[str] = None
    ) -> Tuple[Output, TransferInfo]:
        """Run one transfer to completion and return ``(output, info)``.

        ``timeout`` is checked as an overall deadline after every body chunk.
        """
        info = TransferInfo(url=options["url"])
        sink = _BodySink(output_path, options.get("buffer_response", True))
        started = time.perf_counter()
        timeout = options.get("timeout")
        deadline = started + timeout if timeout is not None else None
        try:
            sink.open()
            settings = _client_settings(options)
            with httpx.Client(**_client_kwargs(settings, self._transport)) as client:
                request = _build_request(client, options)
                response = client.send(
                    request,
                    stream=True,
                    follow_redirects=bool(options.get("follow_redirects", False)),
                )
                try:
                    _record_response(info, response)
                    for chunk in response.iter_bytes():
                        sink.write(chunk)
                        if deadline is not None and time.perf_counter() > deadline:
                            raise TimeoutError(f"transfer exceeded {timeout}s")
                finally:
                    response.close()
        except _TRANSFER_ERRORS as exc:
            _record_error(info, exc, timeout=options.get("timeout"))
        finally:
            sink.close()
        info.total_time = time.perf_counter() - started
        info.size_download = sink.size
        return sink.output(failed=info.error is not None), info

    def open_multi(self) -> "MultiTransfer":
        """Return a new multiplexed engine; the caller must close it."""
        return MultiTransfer(transport=self._async_transport)


class MultiTransfer:
    """Single-threaded multiplexer for concurrent transfers.

    **Usage:**

        with transport.open_multi() as multi:
            token = multi.register(options)
            while multi.active:
                multi.poll()
                for done in multi.drain_completed():
                    ...
                    multi.unregister(done.token)

    A transfer counts as ``active`` from :meth:`register` until
    :meth:`unregister`; ``running`` only counts transfers still in progress.
    """

    def __init__(self, *, transport: Optional[httpx.AsyncBaseTransport] = None) -> None:
        self._loop = asyncio.new_event_loop()
        self._transport = transport
        self._clients: Dict[Tuple[bool, int], httpx.AsyncClient] = {}
        self._tasks: Dict[int, asyncio.Task] = {}
        self._completed: Deque[int] = deque()
        self._tokens = itertools.count(1)
        self._closed = False

    def __enter__(self) -> "MultiTransfer":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    @property
    def active(self) -> int:
        return len(self._tasks)

    @property
    def running(self) -> int:
        return sum(1 for task in self._tasks.values() if not task.done())

    def register(self, options: Mapping[str, Any], *, output_path: Optional[str] = None) -> int:
        """Queue a transfer; it starts on the next :meth:`poll`."""
        if self._closed:
            raise RuntimeError("MultiTransfer is closed")
        token = next(self._tokens)
        self._tasks[token] = self._loop.create_task(self._run(token, dict(options), output_path))
        return token

    def poll(self, timeout: Optional[float] = None) -> int:
        """Drive I/O until at least one transfer finishes (or ``timeout`` elapses).

        Returns immediately when finished transfers are waiting to be drained.
        Returns the number of transfers still running.
        """
        if not self._completed:
            running = [task for task in self._tasks.values() if not task.done()]
            if running:
                self._loop.run_until_complete(
                    asyncio.wait(running, timeout=timeout, return_when=asyncio.FIRST_COMPLETED)
                )
        return self.running

    def drain_completed(self) -> List[Completion]:
        """Return transfers finished since the last drain, in completion order."""
        completions: List[Completion] = []
        while self._completed:
            token = self._completed.popleft()
            task = self._tasks.get(token)
            if task is None or task.cancelled():
                continue
            output, info = task.result()
            completions.append(Completion(token=token, info=info, output=output))
        return completions

    def unregister(self, token: int) -> None:
        """Forget a transfer, cancelling it first if it is still running."""
        task = self._tasks.pop(token, None)
        if task is not None and not task.done():
            task.cancel()
            self._loop.run_until_complete(asyncio.gather(task, return_exceptions=True))

    def close(self) -> None:
        """Cancel leftover transfers, close clients and the event loop."""
        if self._closed:
            return
        self._closed = True
        try:
            leftovers = [task for task in self._tasks.values() if not task.done()]
            for task in leftovers:
                task.cancel()
            if leftovers:
                self._loop.run_until_complete(asyncio.gather(*leftovers, return_exceptions=True))
            for client in self._clients.values():
                self._loop.run_until_complete(client.aclose())
            self._loop.run_until_complete(self._loop.shutdown_asyncgens())
        finally:
            self._tasks.clear()
            self._clients.clear()
            self._completed.clear()
            self._loop.close()

    def _client_for(self, options: Mapping[str, Any]) -> httpx.AsyncClient:
        settings = _client_settings(options)
        client = self._clients.get(settings)
        if client is None:
            client = httpx.AsyncClient(**_client_kwargs(settings, self._transport))
            self._clients[settings] = client
        return client

    async def _run(
        self, token: int, options: Dict[str, Any], output_path: Optional[str]
    ) -> Tuple[Output, TransferInfo]:
        try:
            return await self._perform(options, output_path)
        finally:
            self._completed.append(token)

    async def _perform(
        self, options: Dict[str, Any], output_path: Optional[str]
    ) -> Tuple[Output, TransferInfo]:
        info = TransferInfo(url=options["url"])
        sink = _BodySink(output_path, options.get("buffer_response", True))
        started = time.perf_counter()
        try:
            sink.open()
            await asyncio.wait_for(
                self._transfer(options, sink, info), timeout=options.get("timeout")
            )
        except _TRANSFER_ERRORS as exc:
            _record_error(info, exc, timeout=options.get("timeout"))
        finally:
            sink.close()
        info.total_time = time.perf_counter() - started
        info.size_download = sink.size
        return sink.output(failed=info.error is not None), info

    async def _transfer(
        self, options: Dict[str, Any], sink: _BodySink, info: TransferInfo
    ) -> None:
        client = self._client_for(options)
        request = _build_request(client, options)
        response = await client.send(
            request,
            stream=True,
            follow_redirects=bool(options.get("follow_redirects", False)),
        )
        try:
            _record_response(info, response)
            async for chunk in response.aiter_bytes():
                sink.write(chunk)
        finally:
            await response.aclose()
