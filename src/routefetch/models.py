"""Canonical Pydantic models shared across routefetch.

**Configuration models** -- supplied by callers when building a client:
    :class:`RequestInit`, :class:`Middleware`, and :class:`ClientOptions`.

**Call models** -- produced per terminal call by the dispatcher:
    :class:`CallOptions` and :class:`MiddlewareContext`.

Callable and transport fields use ``arbitrary_types_allowed`` so that
httpx objects and plain functions pass through without coercion.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from typing import Any, Optional, Union

import httpx
from pydantic import BaseModel, ConfigDict, Field, field_validator

# The accepted header source shapes; checked structurally in
# :func:`routefetch.headers.build_header_sources`.
HeadersInit = Any


def _check_header_init(value: Any) -> Any:
    if value is None or callable(value):
        return value
    if isinstance(value, (Mapping, httpx.Headers, list, tuple)):
        return value
    raise ValueError(
        "headers must be a mapping, a list of (key, value) pairs, a callable "
        f"taking the request path, or a list of those; got {type(value).__name__}"
    )


class RequestInit(BaseModel):
    """Transport settings threaded into every request a client sends.

    Resolved against the environment and project config by
    :func:`routefetch.config.resolve_init`.  Fields explicitly passed by the
    caller always win.
    """

    model_config = ConfigDict(extra="forbid")

    timeout: Optional[float] = Field(
        default=30.0, description="Request timeout in seconds; None disables it"
    )
    verify_ssl: bool = Field(default=True, description="Verify TLS certificates")
    follow_redirects: bool = Field(default=True, description="Follow 3xx redirects")
    extensions: dict[str, Any] = Field(
        default_factory=dict, description="httpx request extensions"
    )


class MiddlewareContext(BaseModel):
    """Second argument handed to ``on_request`` / ``on_response`` hooks."""

    model_config = ConfigDict(frozen=True)

    base_url: str
    init: RequestInit


class Middleware(BaseModel):
    """Optional request/response hooks.

    ``on_request(request, ctx)`` runs synchronously before the fetch; a
    non-``None`` return value replaces the request.  ``on_response(result,
    ctx)`` runs after the :class:`~routefetch.result.Result` is built; a
    non-``None`` return value becomes what the caller receives.  Exceptions
    raised by either hook propagate unmodified.
    """

    on_request: Optional[Callable[..., Any]] = None
    on_response: Optional[Callable[..., Any]] = None


class CallOptions(BaseModel):
    """The ``{query, headers}`` options bag of one terminal call."""

    model_config = ConfigDict(extra="forbid", arbitrary_types_allowed=True)

    query: Optional[dict[str, Any]] = None
    headers: HeadersInit = None

    @field_validator("headers")
    @classmethod
    def check_headers(cls, value: Any) -> Any:
        return _check_header_init(value)


class ClientOptions(BaseModel):
    """Everything a client is configured with besides its base URL.

    Example::

        ClientOptions(
            headers=[{"Authorization": "Bearer 123"}, lambda path: None],
            middleware=Middleware(on_response=lambda result, ctx: result.data),
            generators={"batch": combine_batch},
        )
    """

    model_config = ConfigDict(extra="forbid", arbitrary_types_allowed=True)

    init: RequestInit = Field(default_factory=RequestInit)
    headers: HeadersInit = None
    middleware: Middleware = Field(default_factory=Middleware)
    generators: dict[str, Callable[..., Any]] = Field(default_factory=dict)
    static: dict[str, Any] = Field(default_factory=dict)
    http_client: Optional[Union[httpx.Client, httpx.AsyncClient]] = None
    transport: Optional[Union[httpx.BaseTransport, httpx.AsyncBaseTransport]] = None

    @field_validator("headers")
    @classmethod
    def check_headers(cls, value: Any) -> Any:
        return _check_header_init(value)
