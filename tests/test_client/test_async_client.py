"""Tests for the asynchronous executor and the async client surface."""

from __future__ import annotations

import asyncio
import datetime as dt
import inspect
import json
from typing import Any

import httpx
import pytest

from routefetch import (
    ClientOptions,
    ConfigError,
    InvalidSegmentError,
    Middleware,
    MiddlewareContext,
    PendingCall,
    RequestInit,
    ResponseError,
    Result,
    RouteFetchError,
    TransportError,
    create_client,
)
from routefetch.client.async_client import AsyncExecutor
from routefetch.output import OutputManager
from routefetch.serialize import serialize_path

BASE_URL = "http://localhost:3000"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _transport_from_handler(handler):
    """Create an httpx.MockTransport from a handler function."""
    return httpx.MockTransport(handler)


def _json_handler(data: Any, status_code: int = 200):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(status_code, json=data)

    return handler


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------


class TestRequests:
    @pytest.mark.asyncio
    async def test_url_method_and_default_header(
        self, echo_transport: httpx.MockTransport, recorded: list[httpx.Request]
    ) -> None:
        client = create_client(BASE_URL)(transport=echo_transport)

        result = await client.users({"userId": 1}).items.get()

        assert result.success
        assert result.data == {"ok": True}
        assert str(recorded[0].url) == "http://localhost:3000/users/1/items"
        assert recorded[0].method == "GET"
        assert recorded[0].headers["content-type"] == "application/json"

    @pytest.mark.asyncio
    async def test_terminal_call_returns_coroutine(self, echo_transport: httpx.MockTransport) -> None:
        client = create_client(BASE_URL)(transport=echo_transport)

        pending = client.users.get()

        assert inspect.iscoroutine(pending)
        assert isinstance(await pending, Result)

    @pytest.mark.asyncio
    async def test_chain_misuse_raises_before_awaiting(self, echo_transport: httpx.MockTransport) -> None:
        client = create_client(BASE_URL)(transport=echo_transport)

        with pytest.raises(InvalidSegmentError):
            client.users[";"](7).get()

    @pytest.mark.asyncio
    async def test_json_body_encoding(
        self, echo_transport: httpx.MockTransport, recorded: list[httpx.Request]
    ) -> None:
        client = create_client(BASE_URL)(transport=echo_transport)

        await client.events.post({"at": dt.datetime(2024, 1, 2, 3, 4, 5), "init": RequestInit()})

        assert json.loads(recorded[0].content) == {
            "at": "2024-01-02T03:04:05",
            "init": {"timeout": 30.0, "verify_ssl": True, "follow_redirects": True, "extensions": {}},
        }

    @pytest.mark.asyncio
    async def test_timeout_and_extensions_are_threaded(
        self, echo_transport: httpx.MockTransport, recorded: list[httpx.Request]
    ) -> None:
        client = create_client(BASE_URL)(
            transport=echo_transport, init={"timeout": 5, "extensions": {"trace": "abc"}}
        )

        await client.users.get()

        assert recorded[0].extensions["timeout"] == httpx.Timeout(5.0).as_dict()
        assert recorded[0].extensions["trace"] == "abc"

    @pytest.mark.asyncio
    async def test_caller_owned_http_client(
        self, echo_transport: httpx.MockTransport, recorded: list[httpx.Request]
    ) -> None:
        async with httpx.AsyncClient(transport=echo_transport) as http:
            client = create_client(BASE_URL)(http_client=http)
            await client.users.get()
            await client.users.get()
            assert not http.is_closed
        assert len(recorded) == 2

    def test_blocking_http_client_is_rejected(self) -> None:
        with httpx.Client() as http:
            with pytest.raises(ConfigError):
                create_client(BASE_URL)(http_client=http)

    def test_unknown_option_is_rejected(self) -> None:
        with pytest.raises(ConfigError):
            create_client(BASE_URL)(retries=3)


# ---------------------------------------------------------------------------
# Headers and middleware
# ---------------------------------------------------------------------------


class TestHeadersAndMiddleware:
    @pytest.mark.asyncio
    async def test_header_precedence(
        self, echo_transport: httpx.MockTransport, recorded: list[httpx.Request]
    ) -> None:
        def on_request(request: httpx.Request, ctx: MiddlewareContext) -> None:
            if "x-mw" in request.headers:
                request.headers["x-level"] = "middleware"

        client = create_client(BASE_URL)(
            transport=echo_transport,
            headers=[
                {"x-level": "static", "x-static": "yes"},
                lambda path: {"x-level": "path", "x-path": path},
            ],
            middleware=Middleware(on_request=on_request),
        )

        await client.users(1).get()
        await client.users(1).get(headers={"x-level": "call"})
        await client.users(1).get(headers={"x-level": "call", "x-mw": "1"})

        assert [r.headers["x-level"] for r in recorded] == ["path", "call", "middleware"]
        assert recorded[0].headers["x-static"] == "yes"
        assert recorded[0].headers["x-path"] == "/users/1"

    @pytest.mark.asyncio
    async def test_on_request_can_replace_request(
        self, echo_transport: httpx.MockTransport, recorded: list[httpx.Request]
    ) -> None:
        seen: list[MiddlewareContext] = []

        def on_request(request: httpx.Request, ctx: MiddlewareContext) -> httpx.Request:
            seen.append(ctx)
            return httpx.Request("GET", f"{ctx.base_url}/replaced")

        client = create_client(BASE_URL)(transport=echo_transport, middleware={"on_request": on_request})
        await client.users.get()

        assert recorded[0].url.path == "/replaced"
        assert seen[0].base_url == BASE_URL
        assert seen[0].init.timeout == 30.0

    @pytest.mark.asyncio
    async def test_on_response_reshapes_result(self, echo_transport: httpx.MockTransport) -> None:
        client = create_client(BASE_URL)(
            transport=echo_transport,
            middleware=Middleware(on_response=lambda result, ctx: result.data),
        )
        assert await client.users.get() == {"ok": True}

    @pytest.mark.asyncio
    async def test_async_on_response(self, echo_transport: httpx.MockTransport) -> None:
        async def on_response(result: Result, ctx: MiddlewareContext) -> Any:
            await asyncio.sleep(0)
            return {"wrapped": result.data}

        async def keep(result: Result, ctx: MiddlewareContext) -> None:
            return None

        reshaped = create_client(BASE_URL)(transport=echo_transport, middleware={"on_response": on_response})
        kept = create_client(BASE_URL)(transport=echo_transport, middleware={"on_response": keep})

        assert await reshaped.users.get() == {"wrapped": {"ok": True}}
        assert isinstance(await kept.users.get(), Result)

    @pytest.mark.asyncio
    async def test_hook_exceptions_propagate(self, echo_transport: httpx.MockTransport) -> None:
        def on_request(request: httpx.Request, ctx: MiddlewareContext) -> None:
            raise ValueError("rejected by hook")

        client = create_client(BASE_URL)(transport=echo_transport, middleware={"on_request": on_request})

        with pytest.raises(ValueError, match="rejected by hook"):
            await client.users.get()


# ---------------------------------------------------------------------------
# Failures
# ---------------------------------------------------------------------------


class TestFailures:
    @pytest.mark.asyncio
    async def test_non_2xx(self) -> None:
        transport = _transport_from_handler(_json_handler({"message": "missing"}, 404))
        client = create_client(BASE_URL)(transport=transport)

        result = await client.users(1).get()

        assert result.success is False
        assert result.data is None
        assert isinstance(result.error, ResponseError)
        assert result.error.message == "Not Found"
        assert result.error.context == {"message": "missing"}
        assert result.response is not None
        assert result.response.status_code == 404
        assert result.error.response is result.response

    @pytest.mark.asyncio
    async def test_non_2xx_with_undecodable_body(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(500, content=b"<html>oops</html>", headers={"content-type": "application/json"})

        client = create_client(BASE_URL)(transport=_transport_from_handler(handler))
        result = await client.users.get()

        assert isinstance(result.error, ResponseError)
        assert result.error.context is None
        assert result.response is not None
        assert result.response.content == b"<html>oops</html>"

    @pytest.mark.asyncio
    async def test_undecodable_success_body(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, content=b"{nope", headers={"content-type": "application/json"})

        client = create_client(BASE_URL)(transport=_transport_from_handler(handler))
        result = await client.users.get()

        assert result.success is False
        assert type(result.error).__name__ == "DecodeError"
        assert result.response is None

    @pytest.mark.asyncio
    async def test_transport_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        client = create_client(BASE_URL)(transport=_transport_from_handler(handler))
        result = await client.users.get()

        assert isinstance(result.error, TransportError)
        assert "connection refused" in result.error.message
        assert isinstance(result.error.cause, httpx.ConnectError)
        assert result.response is None

    @pytest.mark.asyncio
    async def test_unexpected_exception_is_wrapped(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise RuntimeError("transport bug")

        client = create_client(BASE_URL)(transport=_transport_from_handler(handler))
        result = await client.users.get()

        assert type(result.error) is RouteFetchError
        assert result.error.message == "transport bug"
        assert result.response is None

    @pytest.mark.asyncio
    async def test_cancellation_is_not_converted(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise asyncio.CancelledError()

        client = create_client(BASE_URL)(transport=_transport_from_handler(handler))

        with pytest.raises(asyncio.CancelledError):
            await client.users.get()

    @pytest.mark.asyncio
    async def test_debug_traces(
        self,
        verbose_output: OutputManager,
        echo_transport: httpx.MockTransport,
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        client = create_client(BASE_URL)(transport=echo_transport)
        await client.users.get()

        err = capsys.readouterr().err
        assert "GET http://localhost:3000/users" in err
        assert "HTTP 200 OK" in err


# ---------------------------------------------------------------------------
# Generators
# ---------------------------------------------------------------------------


class TestGenerators:
    @pytest.mark.asyncio
    async def test_async_combiner(
        self, echo_transport: httpx.MockTransport, recorded: list[httpx.Request]
    ) -> None:
        async def combine(batch: list[PendingCall]) -> httpx.Request:
            await asyncio.sleep(0)
            paths = [serialize_path(call.resource_path) for call in batch]
            return httpx.Request("POST", f"{BASE_URL}/batch", json=paths, headers={"x-batch": "1"})

        client = create_client(BASE_URL)(
            transport=echo_transport,
            headers={"authorization": "Bearer 123"},
            generators={"batch": combine},
        )

        result = await client.batch(client.users.get(), client.posts(2).get())

        assert result.success
        request = recorded[0]
        assert json.loads(request.content) == ["/users", "/posts/2"]
        assert request.headers["authorization"] == "Bearer 123"
        assert request.headers["x-batch"] == "1"
        assert request.headers["content-type"] == "application/json"

    @pytest.mark.asyncio
    async def test_combiner_must_produce_a_request(self, echo_transport: httpx.MockTransport) -> None:
        client = create_client(BASE_URL)(transport=echo_transport, generators={"batch": lambda batch: len(batch)})

        with pytest.raises(TypeError):
            await client.batch(client.users.get())

    @pytest.mark.asyncio
    async def test_concurrent_chains_never_share_a_batch(self, echo_transport: httpx.MockTransport) -> None:
        seen: list[list[str]] = []

        def combine(batch: list[PendingCall]) -> httpx.Request:
            seen.append([serialize_path(call.resource_path) for call in batch])
            return httpx.Request("POST", f"{BASE_URL}/batch")

        client = create_client(BASE_URL)(transport=echo_transport, generators={"batch": combine})

        async def build(resource: str, count: int) -> Any:
            gen = client.batch
            tokens = []
            for index in range(count):
                tokens.append(client[resource](index).get())
                await asyncio.sleep(0)
            return await gen(*tokens)

        await asyncio.gather(build("users", 2), build("posts", 3))

        assert sorted(seen) == [["/posts/0", "/posts/1", "/posts/2"], ["/users/0", "/users/1"]]

    @pytest.mark.asyncio
    async def test_unrelated_task_is_not_collected(
        self, echo_transport: httpx.MockTransport, recorded: list[httpx.Request]
    ) -> None:
        seen: list[list[PendingCall]] = []

        def combine(batch: list[PendingCall]) -> httpx.Request:
            seen.append(batch)
            return httpx.Request("POST", f"{BASE_URL}/batch")

        client = create_client(BASE_URL)(transport=echo_transport, generators={"batch": combine})

        async def unrelated() -> Any:
            return await client.health.get()

        gen = client.batch
        token = client.users.get()
        other = await asyncio.create_task(unrelated())
        await gen(token)

        assert isinstance(other, Result)
        assert [call.resource_path for call in seen[0]] == [("users",)]
        assert [r.url.path for r in recorded] == ["/health", "/batch"]


class TestExecutorConstruction:
    def test_rejects_blocking_transport(self) -> None:
        class BlockingOnly(httpx.BaseTransport):
            def handle_request(self, request: httpx.Request) -> httpx.Response:
                return httpx.Response(200)

        with pytest.raises(ConfigError):
            AsyncExecutor(BASE_URL, ClientOptions(transport=BlockingOnly()))
