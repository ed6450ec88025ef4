"""Request building and Result assembly shared by both executors.

:class:`BaseExecutor` owns everything about a dispatch that does not
block: turning a :class:`~routefetch.calls.PendingCall` (or a pre-built
:class:`httpx.Request` from a generator) into the final request, running
the ``on_request`` hook, and converting a read response into a
:class:`~routefetch.result.Result`.  The subclasses only add the actual
fetch.

See Also:
    :class:`~routefetch.client.async_client.AsyncExecutor` and
    :class:`~routefetch.client.sync_client.SyncExecutor`.
"""

from __future__ import annotations

import datetime as dt
import json
from typing import Any, Optional

import httpx
from pydantic import BaseModel

from routefetch.calls import PendingCall
from routefetch.client.response import clone_response
from routefetch.decode import decode_response
from routefetch.exceptions import (
    DecodeError,
    ResponseError,
    RouteFetchError,
    TransportError,
    ensure_error,
    is_jsonable,
)
from routefetch.headers import resolve_headers
from routefetch.models import ClientOptions, MiddlewareContext
from routefetch.output import debug
from routefetch.result import Result
from routefetch.serialize import serialize_path, serialize_search_params


def _json_default(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    if isinstance(value, (dt.datetime, dt.date)):
        return value.isoformat()
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def encode_body(body: Any) -> Optional[bytes]:
    """JSON-encode a request body; ``None`` means no body."""
    if body is None:
        return None
    if isinstance(body, BaseModel):
        return body.model_dump_json().encode("utf-8")
    return json.dumps(body, default=_json_default).encode("utf-8")


def _decode_error(exc: Exception) -> DecodeError:
    if isinstance(exc, DecodeError):
        return exc
    message = str(exc) or type(exc).__name__
    return DecodeError(f"Could not decode response body: {message}", cause=exc)


class BaseExecutor:
    """Builds requests and Results for one client.

    Args:
        base_url: The client's base URL.  A trailing ``/`` is ignored when
            joining paths.
        options: Fully resolved client options.
    """

    def __init__(self, base_url: str, options: ClientOptions) -> None:
        self._base_url = base_url
        self._root_url = base_url[:-1] if base_url.endswith("/") else base_url
        self._options = options
        self._context = MiddlewareContext(base_url=base_url, init=options.init)

    @property
    def base_url(self) -> str:
        return self._base_url

    @property
    def options(self) -> ClientOptions:
        return self._options

    # ------------------------------------------------------------------ #
    # Request building
    # ------------------------------------------------------------------ #

    def _extensions(self, extra: Optional[dict[str, Any]] = None) -> dict[str, Any]:
        extensions: dict[str, Any] = {"timeout": httpx.Timeout(self._options.init.timeout).as_dict()}
        extensions.update(self._options.init.extensions)
        if extra:
            extensions.update(extra)
        return extensions

    def build_request(self, call: PendingCall) -> httpx.Request:
        """Build the request for a terminal call.

        Raises:
            InvalidSegmentError: If the path cannot be serialized.
            TypeError: If the body is not JSON-serializable.
        """
        path = serialize_path(call.resource_path)
        url = f"{self._root_url}{path}{serialize_search_params(call.query)}"
        return httpx.Request(
            call.method.upper(),
            url,
            headers=resolve_headers(self._options.headers, path, call.headers),
            content=encode_body(call.body),
            extensions=self._extensions(),
        )

    def adopt_request(self, request: Any) -> httpx.Request:
        """Thread a pre-built request (from a generator) through client settings.

        Only headers are merged in: the JSON default, then the client's
        sources for the request's path, then the request's own headers.
        """
        if not isinstance(request, httpx.Request):
            raise TypeError(
                f"Generators must produce an httpx.Request, got {type(request).__name__}"
            )
        return httpx.Request(
            request.method,
            request.url,
            headers=resolve_headers(self._options.headers, request.url.path, request.headers),
            stream=request.stream,
            extensions=self._extensions(request.extensions),
        )

    def prepare(self, request: httpx.Request) -> httpx.Request:
        """Run the ``on_request`` hook.  Its exceptions propagate unmodified."""
        on_request = self._options.middleware.on_request
        if on_request is not None:
            replaced = on_request(request, self._context)
            if replaced is not None:
                request = replaced
        debug(f"{request.method} {request.url}")
        return request

    # ------------------------------------------------------------------ #
    # Result assembly
    # ------------------------------------------------------------------ #

    def settle(self, response: httpx.Response) -> Result[Any]:
        """Convert a fully-read response into a Result.

        Any exception raised while decoding a 2xx body becomes a failed
        Result carrying a :class:`DecodeError`; for other statuses the
        error context is dropped instead.
        """
        clone = clone_response(response)
        debug(f"HTTP {response.status_code} {response.reason_phrase} <- {response.url}")

        try:
            data = decode_response(response)
        except Exception as exc:
            if response.is_success:
                return Result.fail(_decode_error(exc))
            data = None

        if not response.is_success:
            return Result.fail(
                ResponseError(
                    response.reason_phrase or f"HTTP {response.status_code}",
                    response=clone,
                    context=data if is_jsonable(data) else None,
                )
            )
        return Result.ok(data, clone)

    def failure(self, exc: Exception) -> Result[Any]:
        """Convert an exception raised while fetching into a failed Result."""
        error: RouteFetchError
        if isinstance(exc, httpx.RequestError):
            error = TransportError(str(exc) or type(exc).__name__, cause=exc)
        else:
            error = ensure_error(exc)
        debug(f"Request failed: {error}")
        return Result.fail(error)

    def respond(self, result: Result[Any]) -> Any:
        """Run the ``on_response`` hook; ``None`` keeps the Result."""
        on_response = self._options.middleware.on_response
        if on_response is None:
            return result
        returned = on_response(result, self._context)
        return result if returned is None else returned
