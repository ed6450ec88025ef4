"""Header merging with deterministic, case-insensitive precedence.

Sources are applied in order and later sources override earlier ones.
A source is one of:

* a mapping (``dict``, :class:`httpx.Headers`, ...);
* a list of ``(key, value)`` pairs;
* a callable taking the serialized request path and returning either of
  the above or ``None``.  Callables are evaluated once per dispatch.

A client-level ``headers`` option may also be a list of sources.  The
``content-type: application/json`` default always sits underneath
everything else.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any

import httpx

DEFAULT_HEADERS: dict[str, str] = {"content-type": "application/json"}


def _is_pair(item: Any) -> bool:
    return (
        isinstance(item, (list, tuple))
        and len(item) == 2
        and all(isinstance(part, str) for part in item)
    )


def _is_pairs(value: Any) -> bool:
    return isinstance(value, (list, tuple)) and all(_is_pair(item) for item in value)


def _evaluate(source: Any, path: str) -> Any:
    if callable(source):
        return source(path)
    return source


def build_header_sources(headers: Any, path: str) -> list[Any]:
    """Expand a ``headers`` option into concrete sources for *path*.

    A list counts as pairs when every element is a two-string pair;
    otherwise each element is its own source.
    """
    if headers is None:
        return []
    if isinstance(headers, (list, tuple)) and not _is_pairs(headers):
        return [_evaluate(source, path) for source in headers]
    return [_evaluate(headers, path)]


def _items(source: Any) -> Iterable[tuple[str, Any]]:
    if isinstance(source, httpx.Headers):
        return source.multi_items()
    if isinstance(source, Mapping):
        return source.items()
    if _is_pairs(source):
        return source
    raise TypeError(f"Unsupported header source: {type(source).__name__}")


def merge_headers(sources: Iterable[Any]) -> httpx.Headers:
    """Merge *sources* into one :class:`httpx.Headers`; later keys win."""
    merged = httpx.Headers()
    for source in sources:
        if not source:
            continue
        for key, value in _items(source):
            merged[key] = str(value)
    return merged


def resolve_headers(client_headers: Any, path: str, *overrides: Any) -> httpx.Headers:
    """Merge the JSON default, the client's sources for *path*, then *overrides*."""
    sources: list[Any] = [DEFAULT_HEADERS]
    sources.extend(build_header_sources(client_headers, path))
    for override in overrides:
        sources.extend(build_header_sources(override, path))
    return merge_headers(sources)
