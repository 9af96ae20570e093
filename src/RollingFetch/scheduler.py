# === NAVMAP v1 ===
# {
#   "module": "RollingFetch.scheduler",
#   "purpose": "Sliding-window dispatcher keeping at most N transfers in flight",
#   "sections": [
#     {
#       "id": "rollingscheduler",
#       "name": "RollingScheduler",
#       "anchor": "class-rollingscheduler",
#       "kind": "class"
#     }
#   ]
# }
# === /NAVMAP ===

"""Rolling-window request scheduler.

This module provides the :class:`RollingScheduler` class that:
- Accumulates :class:`~RollingFetch.request.FetchRequest` objects
- Keeps at most ``window_size`` transfers in flight on one thread
- Refills a freed slot with the next pending request, in the order added
- Delivers each result (success or failure) to the callback exactly once

**Architecture:**

    RollingScheduler.execute()
      ├─ 1 request:  HttpTransport.perform() (blocking, may return FetchResult)
      └─ N requests: MultiTransfer engine
           ├─ register first min(window, N) requests
           └─ loop: poll → drain completions → replenish → unregister → callback

**Usage:**

    scheduler = RollingScheduler()
    scheduler.set_window_size(10)
    for url in urls:
        scheduler.add(FetchRequest(url, attributes={"id": url}))

    def on_result(output, info, request):
        if info.status_code == 200:
            store(request.attributes["id"], output)

    scheduler.execute(on_result)

**Ordering:**

Requests are *dispatched* strictly in the order they were added. Callbacks run
in *completion* order, which depends on response latency and has no relation
to dispatch order.

**Threading:**

Everything, including the callback, runs on the calling thread. The only
blocking point is :meth:`MultiTransfer.poll`; a slow callback stalls every
transfer in the window.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Callable, Dict, List, Mapping, Optional, Union

from RollingFetch.config.models import (
    DEFAULT_WINDOW_SIZE,
    TransportConfig,
    TransportOptions,
    validate_options,
)
from RollingFetch.errors import ConfigurationError, SchedulerError
from RollingFetch.options import merge_options, resolve_options
from RollingFetch.request import FetchRequest
from RollingFetch.transport import (
    Completion,
    FetchResult,
    HttpTransport,
    MultiTransfer,
    Output,
    TransferInfo,
)

__all__ = ["ResultCallback", "RollingScheduler"]

LOGGER = logging.getLogger(__name__)

ResultCallback = Callable[[Output, TransferInfo, FetchRequest], Any]


def _check_window_size(window_size: Any) -> int:
    if isinstance(window_size, bool) or not isinstance(window_size, int):
        raise ConfigurationError(
            f"window_size must be an integer, got {type(window_size).__name__}"
        )
    if window_size < 1:
        raise ConfigurationError(f"window_size must be >= 1, got {window_size}")
    return window_size


class RollingScheduler:
    """Dispatch requests with a bounded number of concurrent transfers.

    Attributes:
        window_size: Maximum number of transfers in flight
        global_options: Option map every request is resolved against
    """

    def __init__(
        self,
        *,
        window_size: int = DEFAULT_WINDOW_SIZE,
        config: Optional[TransportConfig] = None,
        transport: Optional[HttpTransport] = None,
    ) -> None:
        self._window_size = _check_window_size(window_size)
        self._global_options: Dict[str, Any] = (config or TransportConfig()).to_options()
        self._transport = transport or HttpTransport()
        self._pending: List[FetchRequest] = []
        self._in_flight: Dict[int, int] = {}

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------

    @property
    def window_size(self) -> int:
        return self._window_size

    @property
    def global_options(self) -> Dict[str, Any]:
        return dict(self._global_options)

    @property
    def pending(self) -> List[FetchRequest]:
        return list(self._pending)

    @property
    def in_flight(self) -> int:
        return len(self._in_flight)

    def set_window_size(self, window_size: int) -> None:
        """Set how many transfers may run at once.

        Raises:
            ConfigurationError: If ``window_size`` is not a positive integer
        """
        self._window_size = _check_window_size(window_size)

    def set_global_config(
        self,
        config: Union[Mapping[str, Any], TransportOptions],
        merge: bool = False,
    ) -> None:
        """Replace the global options, or overlay ``config`` on them when ``merge``."""
        options = validate_options(config)
        self._global_options = merge_options(self._global_options, options) if merge else options

    def add(self, request: FetchRequest) -> None:
        if not isinstance(request, FetchRequest):
            raise ConfigurationError(
                f"expected FetchRequest, got {type(request).__name__}"
            )
        request._mark_queued()
        self._pending.append(request)

    def reset(self) -> None:
        """Drop pending requests and restore the default window size."""
        self._pending = []
        self._in_flight = {}
        self._window_size = DEFAULT_WINDOW_SIZE

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    def execute(
        self, callback: Optional[ResultCallback] = None
    ) -> Union[bool, FetchResult, List[Any]]:
        """Run every pending request.

        Returns:
            ``[]`` when nothing is pending; a :class:`FetchResult` when a single
            request runs without a callback; ``True`` otherwise.

        Raises:
            SchedulerError: If the window size was corrupted after construction
        """
        if not self._pending:
            return []
        try:
            _check_window_size(self._window_size)
        except ConfigurationError as exc:
            raise SchedulerError(str(exc)) from exc

        requests, self._pending = self._pending, []
        if len(requests) == 1:
            return self._execute_single(requests[0], callback)
        return self._execute_rolling(requests, callback)

    def _execute_single(
        self, request: FetchRequest, callback: Optional[ResultCallback]
    ) -> Union[bool, FetchResult]:
        options = resolve_options(self._global_options, request)
        request._mark_dispatched()
        output, info = self._transport.perform(options, output_path=request.output_path)
        LOGGER.debug(
            "rolling-complete",
            extra={"index": 0, "url": request.url, "status": info.status_code},
        )
        if callback is None:
            return FetchResult(info=info, output=output)
        callback(output, info, request)
        return True

    def _execute_rolling(
        self, requests: List[FetchRequest], callback: Optional[ResultCallback]
    ) -> bool:
        window = min(self._window_size, len(requests))
        started = time.perf_counter()
        delivered = 0
        self._in_flight = {}

        multi = self._transport.open_multi()
        try:
            for index in range(window):
                self._dispatch(multi, requests, index)
            next_index = window

            while multi.active:
                multi.poll()
                for completion in multi.drain_completed():
                    request = requests[self._in_flight.pop(completion.token)]

                    # refill the slot before releasing the finished transfer
                    if next_index < len(requests):
                        self._dispatch(multi, requests, next_index)
                        next_index += 1
                    multi.unregister(completion.token)

                    self._log_completion(request, completion)
                    delivered += 1
                    if callback is not None:
                        callback(completion.output, completion.info, request)
        finally:
            multi.close()
            self._in_flight = {}

        LOGGER.info(
            "Rolling batch finished: %d requests, window %d, %.2fs",
            delivered,
            window,
            time.perf_counter() - started,
        )
        return True

    def _dispatch(self, multi: MultiTransfer, requests: List[FetchRequest], index: int) -> None:
        request = requests[index]
        options = resolve_options(self._global_options, request)
        request._mark_dispatched()
        token = multi.register(options, output_path=request.output_path)
        self._in_flight[token] = index
        LOGGER.debug(
            "rolling-dispatch",
            extra={"index": index, "token": token, "url": request.url},
        )

    def _log_completion(self, request: FetchRequest, completion: Completion) -> None:
        LOGGER.debug(
            "rolling-complete",
            extra={
                "url": request.url,
                "token": completion.token,
                "status": completion.info.status_code,
                "elapsed": completion.info.total_time,
            },
        )
