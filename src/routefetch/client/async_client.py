"""Asynchronous executor -- mirrors :class:`~routefetch.client.sync_client.SyncExecutor`.

:class:`AsyncExecutor` performs the single fetch behind every terminal
call of an async client.  It wraps :class:`httpx.AsyncClient`: either the
one supplied through ``ClientOptions.http_client`` (used as-is, never
closed here) or a short-lived client built from the resolved
:class:`~routefetch.models.RequestInit` for each fetch.

Nothing fetched through this executor raises: transport failures,
non-2xx statuses and undecodable bodies all come back as a failed
:class:`~routefetch.result.Result`.  Exceptions raised by middleware
hooks and asyncio cancellation propagate unchanged.

See Also:
    :class:`~routefetch.client.sync_client.SyncExecutor` for the blocking
    equivalent.
"""

from __future__ import annotations

import inspect
from collections.abc import Coroutine
from typing import Any

import httpx

from routefetch.calls import PendingCall
from routefetch.client.base import BaseExecutor
from routefetch.exceptions import ConfigError
from routefetch.models import ClientOptions


class AsyncExecutor(BaseExecutor):
    """Non-blocking executor backed by :class:`httpx.AsyncClient`.

    Args:
        base_url: The client's base URL.
        options: Fully resolved client options.

    Raises:
        ConfigError: If ``http_client`` or ``transport`` is a blocking one.

    Example::

        executor = AsyncExecutor("http://localhost:3000", ClientOptions())
        result = await executor.dispatch(PendingCall(("users", "get")))
    """

    def __init__(self, base_url: str, options: ClientOptions) -> None:
        if options.http_client is not None and not isinstance(
            options.http_client, httpx.AsyncClient
        ):
            raise ConfigError("An async client needs an httpx.AsyncClient as http_client")
        if options.transport is not None and not isinstance(
            options.transport, httpx.AsyncBaseTransport
        ):
            raise ConfigError("An async client needs an httpx.AsyncBaseTransport as transport")
        super().__init__(base_url, options)

    # ------------------------------------------------------------------ #
    # Entry points
    # ------------------------------------------------------------------ #

    def dispatch(self, call: PendingCall) -> Coroutine[Any, Any, Any]:
        """Build the request for *call* now and return the coroutine that sends it.

        Building eagerly means chain misuse (a dangling style marker, an
        unserializable body) raises at the call site rather than when the
        coroutine is awaited.
        """
        return self.execute(self.build_request(call))

    async def dispatch_generated(self, produced: Any) -> Any:
        """Send the request a generator combiner produced (awaiting it first if needed)."""
        if inspect.isawaitable(produced):
            produced = await produced
        return await self.execute(self.adopt_request(produced))

    async def execute(self, request: httpx.Request) -> Any:
        """Run hooks around exactly one fetch of *request*."""
        request = self.prepare(request)
        try:
            response = await self._fetch(request)
        except Exception as exc:
            result = self.failure(exc)
        else:
            result = self.settle(response)

        returned = self.respond(result)
        if inspect.isawaitable(returned):
            returned = await returned
            if returned is None:
                return result
        return returned

    # ------------------------------------------------------------------ #
    # Internals
    # ------------------------------------------------------------------ #

    async def _fetch(self, request: httpx.Request) -> httpx.Response:
        client = self._options.http_client
        if client is not None:
            return await client.send(request)

        init = self._options.init
        async with httpx.AsyncClient(
            transport=self._options.transport,
            verify=init.verify_ssl,
            follow_redirects=init.follow_redirects,
            timeout=init.timeout,
        ) as client:
            return await client.send(request)
