"""The chain builder behind every client.

A :class:`Dispatcher` is an immutable ``(path, state, runtime)`` triple.
Attribute and item access return a new dispatcher with one more segment;
calling a dispatcher either appends a path parameter or, when the last
segment is an HTTP method or a registered generator name, finalizes the
chain::

    client.users(userId=1).items.get()            # GET /users/1/items
    client.users["~;"]({"id": [1, 2]}).get()      # GET /users;id=1,2
    client.posts.post({"title": "hi"}, query={"draft": True})

**Generator mode.**  Accessing a registered generator name marks the
chain's :class:`ChainState` as collecting and publishes it for the
current context (see :data:`_CHAINS`).  While it is collecting, other
chains started from the same client root in the same context join it,
and their terminal calls append a :class:`~routefetch.calls.PendingCall`
to the batch instead of sending anything::

    client.batch(client.users.get(), client.posts.get())

Calling the generator hands the batch to its combiner, resets the state
and withdraws it, so nothing carries over into the next invocation.
asyncio tasks and threads never see each other's batches, including
tasks spawned while a batch is being collected.
"""

from __future__ import annotations

import asyncio
import threading
from collections.abc import Hashable, Mapping
from contextvars import ContextVar
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Optional

from pydantic import ValidationError

from routefetch.calls import BODYLESS_METHODS, PendingCall, is_method
from routefetch.client.base import BaseExecutor
from routefetch.exceptions import InvalidSegmentError
from routefetch.models import CallOptions
from routefetch.segments import Param, Segment, StyleMarker, name_segment, value_segment

_MISSING: Any = object()


@dataclass
class ChainState:
    """Generator-collection flag and batch of one top-level chain."""

    collecting: bool = False
    batch: list[PendingCall] = field(default_factory=list)

    def consume(self) -> list[PendingCall]:
        """Return the batch and reset to a fresh, non-collecting state."""
        batch = self.batch
        self.collecting = False
        self.batch = []
        return batch


class ClientRuntime:
    """What every dispatcher of one client shares."""

    __slots__ = ("executor", "generators", "static")

    def __init__(
        self,
        executor: BaseExecutor,
        generators: Mapping[str, Any],
        static: Mapping[str, Any],
    ) -> None:
        self.executor = executor
        self.generators = dict(generators)
        self.static = dict(static)

    def is_generator(self, segment: Any) -> bool:
        return isinstance(segment, str) and segment in self.generators


# Collecting chain states, per client runtime, tagged with the task or
# thread that published them.  Replaced, never mutated.
_CHAINS: ContextVar[Mapping[ClientRuntime, tuple[Hashable, ChainState]]] = ContextVar(
    "routefetch_chains", default=MappingProxyType({})
)


def _owner() -> Hashable:
    """Identify the running asyncio task (or thread, outside a loop).

    Tasks copy their parent's context, so the context alone does not tell
    a chain's own accesses apart from those of a task it spawned.
    """
    try:
        task = asyncio.current_task()
    except RuntimeError:
        task = None
    return threading.get_ident(), task


def _publish(runtime: ClientRuntime, state: ChainState) -> None:
    chains = dict(_CHAINS.get())
    chains[runtime] = (_owner(), state)
    _CHAINS.set(MappingProxyType(chains))


def _withdraw(runtime: ClientRuntime, state: ChainState) -> None:
    chains = _CHAINS.get()
    published = chains.get(runtime)
    if published is not None and published[1] is state:
        remaining = {key: value for key, value in chains.items() if key is not runtime}
        _CHAINS.set(MappingProxyType(remaining))


def _joinable(runtime: ClientRuntime) -> Optional[ChainState]:
    published = _CHAINS.get().get(runtime)
    if published is None:
        return None
    owner, state = published
    if owner == _owner() and state.collecting:
        return state
    return None


def _call_options(bag: Any, query: Any, headers: Any) -> CallOptions:
    if isinstance(bag, CallOptions):
        fields: dict[str, Any] = {"query": bag.query, "headers": bag.headers}
    elif bag is None:
        fields = {}
    elif isinstance(bag, Mapping):
        fields = dict(bag)
    else:
        raise TypeError(f"Call options must be a mapping, got {type(bag).__name__}")
    if query is not _MISSING:
        fields["query"] = query
    if headers is not _MISSING:
        fields["headers"] = headers
    try:
        return CallOptions(**fields)
    except ValidationError as exc:
        raise TypeError(f"Invalid call options: {exc}") from exc


class Dispatcher:
    """One step of a call chain.

    Use attribute access for ordinary path names and item access for names
    that are not identifiers, start with ``_`` or clash with
    :meth:`extend` / :meth:`invoke`.  ``dispatcher.then`` is always
    ``None`` so that a dispatcher is never mistaken for an awaitable.
    """

    __slots__ = ("_path", "_state", "_runtime")

    # Item access would otherwise make every dispatcher look iterable.
    __iter__ = None

    def __init__(
        self,
        runtime: ClientRuntime,
        path: tuple[Segment, ...] = (),
        state: Optional[ChainState] = None,
    ) -> None:
        object.__setattr__(self, "_runtime", runtime)
        object.__setattr__(self, "_path", path)
        object.__setattr__(self, "_state", state)

    def __setattr__(self, name: str, value: Any) -> None:
        raise AttributeError("Dispatchers are immutable")

    def __repr__(self) -> str:
        return f"Dispatcher({list(self._path)!r})"

    @property
    def path(self) -> tuple[Segment, ...]:
        return self._path

    # ------------------------------------------------------------------ #
    # Building
    # ------------------------------------------------------------------ #

    def extend(self, segment: Any) -> Dispatcher:
        """Return a dispatcher one segment deeper.

        ``"index"`` at the root is the root itself.  A string that is a
        style-marker token (``"."``, ``"~;*"``, ...) becomes a
        :class:`~routefetch.segments.StyleMarker`.
        """
        runtime = self._runtime
        if not self._path and segment == "index":
            return self

        if isinstance(segment, (Param, StyleMarker)):
            parsed: Segment = segment
        else:
            parsed = name_segment(segment)

        if self._path:
            state = self._state if self._state is not None else ChainState()
        elif runtime.is_generator(parsed):
            state = ChainState()
        else:
            state = _joinable(runtime) or ChainState()

        if runtime.is_generator(parsed):
            state.collecting = True
            _publish(runtime, state)

        return Dispatcher(runtime, self._path + (parsed,), state)

    def __getattr__(self, name: str) -> Any:
        if name.startswith("_"):
            raise AttributeError(name)
        if name == "then":
            return None
        return self[name]

    def __getitem__(self, key: Any) -> Any:
        if not self._path and isinstance(key, str) and key in self._runtime.static:
            return self._runtime.static[key]
        return self.extend(key)

    # ------------------------------------------------------------------ #
    # Calling
    # ------------------------------------------------------------------ #

    def invoke(self, *args: Any, **kwargs: Any) -> Any:
        """Same as calling the dispatcher."""
        return self(*args, **kwargs)

    def __call__(self, *args: Any, **kwargs: Any) -> Any:
        path = self._path
        applied = len(path) >= 2 and path[-1] == "apply"
        terminal = path[-2] if applied else (path[-1] if path else None)

        if self._runtime.is_generator(terminal):
            return self._run_generator(str(terminal))

        if is_method(terminal):
            if applied:
                path = path[:-1]
                args = tuple(args[1]) if len(args) >= 2 else ()
            return self._finalize(path, args, kwargs)

        return self._with_parameter(args, kwargs)

    def _with_parameter(self, args: tuple[Any, ...], kwargs: dict[str, Any]) -> Dispatcher:
        if len(args) + len(kwargs) != 1:
            raise InvalidSegmentError(
                "A path parameter call takes exactly one value, "
                f"got {len(args)} positional and {len(kwargs)} keyword arguments"
            )
        if kwargs:
            ((name, value),) = kwargs.items()
            segment: Segment = Param(name, value)
        else:
            segment = value_segment(args[0])
        return Dispatcher(self._runtime, self._path + (segment,), self._state)

    def _finalize(
        self, path: tuple[Segment, ...], args: tuple[Any, ...], kwargs: dict[str, Any]
    ) -> Any:
        query = kwargs.pop("query", _MISSING)
        headers = kwargs.pop("headers", _MISSING)
        if kwargs:
            raise TypeError(f"Unexpected keyword arguments: {', '.join(sorted(kwargs))}")

        method = str(path[-1])
        limit = 1 if method in BODYLESS_METHODS else 2
        if len(args) > limit:
            raise TypeError(f"{method}() takes at most {limit} positional arguments")

        body: Any = None
        if method in BODYLESS_METHODS:
            bag = args[0] if args else None
        else:
            body = args[0] if args else None
            bag = args[1] if len(args) > 1 else None

        call = PendingCall(path, body, _call_options(bag, query, headers))

        state = self._state
        if state is not None and state.collecting:
            state.batch.append(call)
            return call
        return self._runtime.executor.dispatch(call)

    def _run_generator(self, name: str) -> Any:
        runtime = self._runtime
        state = self._state if self._state is not None else ChainState()
        batch = state.consume()
        _withdraw(runtime, state)
        produced = runtime.generators[name](batch)
        return runtime.executor.dispatch_generated(produced)
