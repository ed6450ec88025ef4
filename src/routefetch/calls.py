"""Frozen descriptors for calls that have reached a terminal HTTP method."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from routefetch.models import CallOptions
from routefetch.segments import Segment

METHODS = frozenset({"get", "put", "post", "delete", "options", "head", "patch", "trace"})
"""Method names that finalize a chain."""

BODYLESS_METHODS = frozenset({"get", "head", "options", "trace"})
"""Methods whose first positional argument is the options bag, not a body."""


def is_method(segment: Any) -> bool:
    return isinstance(segment, str) and segment in METHODS


@dataclass(frozen=True)
class PendingCall:
    """One not-yet-dispatched call.

    ``path`` always ends with the HTTP method name; everything before it is
    the resource path.  Instances are handed to generator combiners as-is.
    """

    path: tuple[Segment, ...]
    body: Any = None
    options: CallOptions = field(default_factory=CallOptions)

    def __post_init__(self) -> None:
        if not self.path or not is_method(self.path[-1]):
            raise ValueError(f"PendingCall path must end with an HTTP method: {self.path!r}")

    @property
    def method(self) -> str:
        return str(self.path[-1])

    @property
    def resource_path(self) -> tuple[Segment, ...]:
        return self.path[:-1]

    @property
    def query(self) -> Any:
        return self.options.query

    @property
    def headers(self) -> Any:
        return self.options.headers
