"""Blocking executor backed by :class:`httpx.Client`.

Same pipeline as :class:`~routefetch.client.async_client.AsyncExecutor`:
build, ``on_request``, one fetch, decode, Result, ``on_response``.  Every
terminal call of a sync client returns its Result (or the value its
``on_response`` hook substituted) directly.
"""

from __future__ import annotations

import inspect
from typing import Any

import httpx

from routefetch.calls import PendingCall
from routefetch.client.base import BaseExecutor
from routefetch.exceptions import ConfigError
from routefetch.models import ClientOptions


class SyncExecutor(BaseExecutor):
    """Blocking executor.

    Args:
        base_url: The client's base URL.
        options: Fully resolved client options.

    Raises:
        ConfigError: If ``http_client`` or ``transport`` is an async one.
    """

    def __init__(self, base_url: str, options: ClientOptions) -> None:
        if options.http_client is not None and not isinstance(options.http_client, httpx.Client):
            raise ConfigError("A sync client needs an httpx.Client as http_client")
        if options.transport is not None and not isinstance(
            options.transport, httpx.BaseTransport
        ):
            raise ConfigError("A sync client needs an httpx.BaseTransport as transport")
        super().__init__(base_url, options)

    def dispatch(self, call: PendingCall) -> Any:
        return self.execute(self.build_request(call))

    def dispatch_generated(self, produced: Any) -> Any:
        """Send the request a generator combiner produced.

        Raises:
            TypeError: If the combiner returned an awaitable.
        """
        if inspect.isawaitable(produced):
            if inspect.iscoroutine(produced):
                produced.close()
            raise TypeError("Generator combiners of a sync client must not be async")
        return self.execute(self.adopt_request(produced))

    def execute(self, request: httpx.Request) -> Any:
        request = self.prepare(request)
        try:
            response = self._fetch(request)
        except Exception as exc:
            result = self.failure(exc)
        else:
            result = self.settle(response)
        return self.respond(result)

    def _fetch(self, request: httpx.Request) -> httpx.Response:
        client = self._options.http_client
        if client is not None:
            return client.send(request)

        init = self._options.init
        with httpx.Client(
            transport=self._options.transport,
            verify=init.verify_ssl,
            follow_redirects=init.follow_redirects,
            timeout=init.timeout,
        ) as client:
            return client.send(request)
