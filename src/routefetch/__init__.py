"""routefetch -- a chained, dynamically-built HTTP client on top of httpx.

Callers spell the resource path and HTTP verb as an attribute chain and
get back a :class:`~routefetch.result.Result` instead of an exception::

    from routefetch import create_client

    client = create_client("http://localhost:3000")()
    result = await client.users(userId=1).items.get(query={"page": 2})
    if result.success:
        print(result.data)

Modules:
    dispatcher: The immutable chain builder and generator (batch) mode.
    serialize: Path (simple/label/matrix) and query-string serialization.
    headers: Ordered, case-insensitive header merging.
    decode: Content-type driven decoding with scalar coercion.
    exceptions: Error hierarchy and ``ensure_error``.
    result: The Result envelope.
    client: Async and sync executors wrapping httpx.
    config: Environment and project-file resolution of request settings.
    output: Rich-backed diagnostics on stderr.
"""

from routefetch.calls import PendingCall
from routefetch.dispatcher import ChainState, Dispatcher
from routefetch.exceptions import (
    ConfigError,
    DecodeError,
    InvalidSegmentError,
    ResponseError,
    RouteFetchError,
    TransportError,
    ensure_error,
)
from routefetch.factory import create_client, create_sync_client
from routefetch.models import CallOptions, ClientOptions, Middleware, MiddlewareContext, RequestInit
from routefetch.result import Result
from routefetch.segments import Param, Style, StyleMarker

__version__ = "0.1.0"

__all__ = [
    "CallOptions",
    "ChainState",
    "ClientOptions",
    "ConfigError",
    "DecodeError",
    "Dispatcher",
    "InvalidSegmentError",
    "Middleware",
    "MiddlewareContext",
    "Param",
    "PendingCall",
    "RequestInit",
    "ResponseError",
    "Result",
    "RouteFetchError",
    "Style",
    "StyleMarker",
    "TransportError",
    "create_client",
    "create_sync_client",
    "ensure_error",
]
