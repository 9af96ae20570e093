# === NAVMAP v1 ===
# {
#   "module": "RollingFetch.__init__",
#   "purpose": "Public surface of the rolling-window HTTP dispatcher.",
#   "sections": []
# }
# === /NAVMAP ===

"""
RollingFetch: bounded-concurrency HTTP request dispatcher.

Add :class:`FetchRequest` objects to a :class:`RollingScheduler`, choose a
window size, and call :meth:`RollingScheduler.execute` with a callback that
receives ``(output, info, request)`` for every finished transfer.
"""

from .config import TransportConfig, load_transport_config
from .errors import ConfigurationError, RequestStateError, RollingFetchError, SchedulerError
from .options import resolve_options
from .request import FetchRequest
from .scheduler import RollingScheduler
from .transport import FetchResult, HttpTransport, OutputMarker, TransferInfo

__version__ = "0.1.0"

__all__ = [
    "ConfigurationError",
    "FetchRequest",
    "FetchResult",
    "HttpTransport",
    "OutputMarker",
    "RequestStateError",
    "RollingFetchError",
    "RollingScheduler",
    "SchedulerError",
    "TransferInfo",
    "TransportConfig",
    "load_transport_config",
    "resolve_options",
]
