"""Client construction: ``create_client(base_url)(options)``.

Construction is two-step so that a base URL can be bound once and
configured per use::

    api = create_client("https://api.example.com")
    client = api(headers={"authorization": "Bearer 123"})
    result = await client.users(userId=1).get()

Options may be given as a :class:`~routefetch.models.ClientOptions`, a
mapping, keyword arguments, or a combination (keywords win).  The
``init`` settings are resolved against ``./routefetch.json`` and the
``ROUTEFETCH_*`` environment variables by
:func:`~routefetch.config.resolve_init`.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from typing import Any, Union

from pydantic import ValidationError

from routefetch.client.async_client import AsyncExecutor
from routefetch.client.base import BaseExecutor
from routefetch.client.sync_client import SyncExecutor
from routefetch.config import resolve_init
from routefetch.dispatcher import ClientRuntime, Dispatcher
from routefetch.exceptions import ConfigError
from routefetch.models import ClientOptions

OptionsInit = Union[ClientOptions, Mapping[str, Any], None]


def resolve_options(options: OptionsInit = None, **fields: Any) -> ClientOptions:
    """Validate client options and resolve their ``init`` settings.

    Raises:
        ConfigError: If the options do not validate, or the environment or
            project config holds invalid request settings.
    """
    if isinstance(options, ClientOptions):
        raw: dict[str, Any] = dict(options)
    elif options is None:
        raw = {}
    elif isinstance(options, Mapping):
        raw = dict(options)
    else:
        raise ConfigError(f"Client options must be a mapping, got {type(options).__name__}")
    raw.update(fields)

    try:
        resolved = ClientOptions.model_validate(raw)
    except ValidationError as exc:
        raise ConfigError(f"Invalid client options: {exc}") from exc
    return resolved.model_copy(update={"init": resolve_init(resolved.init)})


def _factory(
    base_url: str, executor_cls: type[BaseExecutor]
) -> Callable[..., Dispatcher]:
    def configure(options: OptionsInit = None, **fields: Any) -> Dispatcher:
        resolved = resolve_options(options, **fields)
        runtime = ClientRuntime(
            executor_cls(base_url, resolved),
            generators=resolved.generators,
            static=resolved.static,
        )
        return Dispatcher(runtime)

    return configure


def create_client(base_url: str) -> Callable[..., Dispatcher]:
    """Bind *base_url* and return the configuration step of an async client.

    Terminal calls on the resulting dispatcher return coroutines resolving
    to a :class:`~routefetch.result.Result` (or whatever ``on_response``
    returns).
    """
    return _factory(base_url, AsyncExecutor)


def create_sync_client(base_url: str) -> Callable[..., Dispatcher]:
    """Like :func:`create_client`, but terminal calls block and return directly."""
    return _factory(base_url, SyncExecutor)

