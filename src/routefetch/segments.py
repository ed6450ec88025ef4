"""Path segment types accumulated by a call chain.

A chain such as ``client.users(userId=1).items.get()`` records the
segments ``"users"``, ``Param("userId", 1)``, ``"items"`` and ``"get"``.
The shape of each segment is fixed when it is created, so the serializer
never has to probe values at request time:

* bare scalars -- attribute names and positional scalar call arguments;
* :class:`Param` -- a named (or anonymous) path parameter whose value is a
  scalar, a tuple of scalars, or a flat mapping of scalars;
* :class:`StyleMarker` -- an in-band token such as ``"."`` or ``";*"``
  selecting label/matrix serialization for the *next* parameter.
"""

from __future__ import annotations

import enum
import re
from collections.abc import Mapping
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Optional, Union

from routefetch.exceptions import InvalidSegmentError

Scalar = Union[str, int, float, bool, None]
ParamValue = Union[Scalar, tuple, Mapping]

_MARKER_RE = re.compile(r"(?P<prefixed>~)?(?P<operator>[.;])?(?P<explode>\*)?")


def is_scalar(value: Any) -> bool:
    return value is None or isinstance(value, (str, int, float, bool))


class Style(str, enum.Enum):
    """Path parameter serialization styles (OpenAPI ``style`` values)."""

    SIMPLE = "simple"
    LABEL = "label"
    MATRIX = "matrix"


_STYLE_BY_OPERATOR = {None: Style.SIMPLE, ".": Style.LABEL, ";": Style.MATRIX}


@dataclass(frozen=True)
class StyleMarker:
    """Serialization directive for the parameter segment that follows it.

    Attributes:
        style: Which of simple / label / matrix to use.
        explode: Expand composite values into repeated delimiters.
        prefixed: When ``True`` (``~`` in the token) the fragment is glued
            to the previous segment instead of starting a new ``/`` level.
    """

    style: Style = Style.SIMPLE
    explode: bool = False
    prefixed: bool = False

    @classmethod
    def parse(cls, token: str) -> Optional[StyleMarker]:
        """Parse a marker token like ``"~."`` or ``";*"``.

        Returns ``None`` when *token* is an ordinary path name.
        """
        if not token:
            return None
        match = _MARKER_RE.fullmatch(token)
        if match is None:
            return None
        return cls(
            style=_STYLE_BY_OPERATOR[match.group("operator")],
            explode=match.group("explode") is not None,
            prefixed=match.group("prefixed") is not None,
        )


@dataclass(frozen=True)
class Param:
    """A path parameter captured from a call such as ``users({"userId": 1})``.

    ``name`` is ``None`` for anonymous values (``users(1)`` or
    ``users([1, 2])``).  ``value`` is normalised at construction: lists
    become tuples and mappings become read-only views.
    """

    name: Optional[str]
    value: Any

    def __post_init__(self) -> None:
        object.__setattr__(self, "value", _normalise_value(self.name, self.value))

    @classmethod
    def from_mapping(cls, mapping: Mapping[Any, Any]) -> Param:
        """Build a parameter from a single-key mapping."""
        if len(mapping) != 1:
            raise InvalidSegmentError(
                f"Path parameter mappings need exactly one key, got {len(mapping)}: "
                f"{sorted(map(str, mapping))}"
            )
        (name, value), = mapping.items()
        return cls(str(name), value)


def _normalise_value(name: Optional[str], value: Any) -> ParamValue:
    if is_scalar(value):
        return value
    if isinstance(value, (list, tuple)):
        if not all(is_scalar(item) for item in value):
            raise InvalidSegmentError(
                f"Path parameter {name!r} arrays may only contain scalars"
            )
        return tuple(value)
    if isinstance(value, Mapping):
        if not all(is_scalar(item) for item in value.values()):
            raise InvalidSegmentError(
                f"Path parameter {name!r} objects may only contain scalar values"
            )
        return MappingProxyType({str(k): v for k, v in value.items()})
    raise InvalidSegmentError(
        f"Unsupported path parameter value for {name!r}: {type(value).__name__}"
    )


Segment = Union[str, int, float, bool, None, Param, StyleMarker]


def name_segment(name: Any) -> Segment:
    """Segment for an attribute or item access."""
    if isinstance(name, str):
        marker = StyleMarker.parse(name)
        if marker is not None:
            return marker
        return name
    if is_scalar(name):
        return name
    raise InvalidSegmentError(f"Unsupported path name: {name!r}")


def value_segment(value: Any) -> Segment:
    """Segment for a positional call argument (``users(1)``, ``users({"id": 1})``)."""
    if isinstance(value, (Param, StyleMarker)):
        return value
    if isinstance(value, Mapping):
        return Param.from_mapping(value)
    if isinstance(value, (list, tuple)):
        return Param(None, value)
    if is_scalar(value):
        return value
    raise InvalidSegmentError(f"Unsupported path parameter: {type(value).__name__}")
