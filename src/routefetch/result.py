"""The Result envelope returned by every dispatched call.

Exactly one branch is populated: a success carries ``data`` and never an
``error``; a failure carries an ``error`` and never ``data``.  A failure
has a ``response`` only when it was caused by a non-2xx HTTP status.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Generic, Optional, TypeVar

import httpx

from routefetch.exceptions import ResponseError, RouteFetchError

T = TypeVar("T")


@dataclass(frozen=True)
class Result(Generic[T]):
    """Discriminated success/failure value.

    Attributes:
        success: Discriminant.
        data: Decoded body on success, ``None`` on failure.
        error: ``None`` on success; a :class:`RouteFetchError` on failure.
        response: The cloned :class:`httpx.Response` on success and on
            HTTP-status failures, ``None`` for transport failures.
    """

    success: bool
    data: Optional[T] = None
    error: Optional[RouteFetchError] = None
    response: Optional[httpx.Response] = None

    def __post_init__(self) -> None:
        if self.success and self.error is not None:
            raise ValueError("A successful Result cannot carry an error")
        if not self.success and (self.error is None or self.data is not None):
            raise ValueError("A failed Result needs an error and no data")

    @classmethod
    def ok(cls, data: T, response: Optional[httpx.Response] = None) -> Result[T]:
        return cls(success=True, data=data, error=None, response=response)

    @classmethod
    def fail(cls, error: RouteFetchError) -> Result[Any]:
        """Build a failure; the response is taken from a :class:`ResponseError`."""
        response = error.response if isinstance(error, ResponseError) else None
        return cls(success=False, data=None, error=error, response=response)

    def unwrap(self) -> T:
        """Return ``data`` or raise the carried error."""
        if not self.success:
            assert self.error is not None
            raise self.error
        return self.data  # type: ignore[return-value]
