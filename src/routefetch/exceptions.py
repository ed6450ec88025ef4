"""Exception hierarchy for routefetch.

All exceptions inherit from :class:`RouteFetchError`, which carries an
optional ``cause`` and a JSON-safe ``context`` payload.  The executors
catch every failure raised while fetching and decoding and convert it
into a failed :class:`~routefetch.result.Result`; only chain misuse
(:class:`InvalidSegmentError`) and middleware exceptions reach the
caller.

Subclass hierarchy::

    RouteFetchError
    +-- ResponseError        (non-2xx HTTP response)
    +-- TransportError       (the fetch itself raised)
    +-- DecodeError          (body could not be decoded)
    +-- InvalidSegmentError  (chain misuse, raised eagerly)
    +-- ConfigError          (bad environment / project configuration)
"""

from __future__ import annotations

import datetime as dt
import json
from typing import TYPE_CHECKING, Any, Optional

if TYPE_CHECKING:
    import httpx

UNSTRINGIFIABLE = "[Unable to stringify the thrown value]"


class RouteFetchError(Exception):
    """Base exception for all routefetch errors.

    Args:
        message: Human-readable error description.
        cause: The underlying exception, if any.  Also set as
            ``__cause__`` so tracebacks chain naturally.
        context: Optional JSON-safe payload describing the failure.
    """

    def __init__(
        self,
        message: str,
        cause: Optional[BaseException] = None,
        context: Any = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.cause = cause
        self.context = context
        if cause is not None:
            self.__cause__ = cause


class ResponseError(RouteFetchError):
    """Raised for an HTTP response whose status is not 2xx.

    ``response`` is the cloned response captured before the body was
    decoded; ``context`` holds the decoded error body when it is
    JSON-representable, otherwise ``None``.
    """

    def __init__(
        self,
        message: str,
        response: Optional[httpx.Response] = None,
        cause: Optional[BaseException] = None,
        context: Any = None,
    ) -> None:
        super().__init__(message, cause=cause, context=context)
        self.response = response

    @property
    def status_code(self) -> Optional[int]:
        """Status code of the triggering response, if one is attached."""
        return self.response.status_code if self.response is not None else None


class TransportError(RouteFetchError):
    """Raised on network-level failures (DNS, TLS, connection refused, timeout)."""


class DecodeError(RouteFetchError):
    """Raised when a response body cannot be decoded for its content type."""


class InvalidSegmentError(RouteFetchError):
    """Raised when a call chain cannot be turned into a request path."""


class ConfigError(RouteFetchError):
    """Raised for configuration problems (invalid env values, bad project JSON)."""


def is_jsonable(value: Any) -> bool:
    """Return ``True`` when *value* can be rendered as JSON without loss of shape.

    Datetimes count as JSON-representable since they serialise to
    ISO-8601 strings.
    """
    if value is None or isinstance(value, (str, int, float, bool, dt.date)):
        return True
    if isinstance(value, (list, tuple)):
        return all(is_jsonable(item) for item in value)
    if isinstance(value, dict):
        return all(isinstance(k, str) and is_jsonable(v) for k, v in value.items())
    return False


def ensure_error(value: Any) -> RouteFetchError:
    """Coerce an arbitrary raised or rejected value into a :class:`RouteFetchError`.

    * :class:`RouteFetchError` instances are returned unchanged.
    * Other exceptions are wrapped, keeping the original as ``cause``.
    * Anything else gets a best-effort JSON rendering in the message,
      or :data:`UNSTRINGIFIABLE` when that fails.
    """
    if isinstance(value, RouteFetchError):
        return value
    if isinstance(value, BaseException):
        return RouteFetchError(str(value) or type(value).__name__, cause=value)

    try:
        stringified = json.dumps(value)
    except (TypeError, ValueError):
        stringified = UNSTRINGIFIABLE
    return RouteFetchError(
        f"This value was thrown as is, not through an Error: {stringified}"
    )
