"""Turn accumulated path segments and query mappings into URI fragments.

Path parameters follow the OpenAPI/RFC 6570 path styles:

===========  =======  ======  ==============  ====================
style        explode  scalar  array           flat object
===========  =======  ======  ==============  ====================
simple       no       ``v``   ``v1,v2``       ``k1,v1,k2,v2``
simple       yes      ``v``   ``v1,v2``       ``k1=v1,k2=v2``
label        no       ``.v``  ``.v1,v2``      ``.k1,v1,k2,v2``
label        yes      ``.v``  ``.v1.v2``      ``.k1=v1.k2=v2``
matrix       no       ``;n=v`` ``;n=v1,v2``   ``;n=k1,v1,k2,v2``
matrix       yes      ``;n=v`` ``;n=v1;n=v2`` ``;k1=v1;k2=v2``
===========  =======  ======  ==============  ====================

Query strings deliberately differ: a nested flat object is flattened one
level so each inner key becomes its own top-level parameter, while the
same object in a path stays inline.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any, Optional
from urllib.parse import urlencode

from routefetch.exceptions import InvalidSegmentError
from routefetch.output import get_output
from routefetch.segments import Param, Segment, Style, StyleMarker, is_scalar


def stringify(value: Any) -> str:
    """Render a scalar the way it appears in a URL."""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _split(operand: Segment) -> tuple[Optional[str], Any]:
    if isinstance(operand, Param):
        return operand.name, operand.value
    return None, operand


def _pairs(mapping: Mapping[str, Any], separator: str) -> list[str]:
    return [f"{key}{separator}{stringify(value)}" for key, value in mapping.items()]


def serialize_simple(operand: Segment, explode: bool = False) -> str:
    _, value = _split(operand)
    if isinstance(value, tuple):
        return ",".join(stringify(item) for item in value)
    if isinstance(value, Mapping):
        return ",".join(_pairs(value, "=" if explode else ","))
    return stringify(value)


def serialize_label(operand: Segment, explode: bool = False) -> str:
    _, value = _split(operand)
    joiner = "." if explode else ","
    if isinstance(value, tuple):
        return "." + joiner.join(stringify(item) for item in value)
    if isinstance(value, Mapping):
        return "." + joiner.join(_pairs(value, "=" if explode else ","))
    return f".{stringify(value)}"


def serialize_matrix(operand: Segment, explode: bool = False) -> str:
    name, value = _split(operand)
    if isinstance(value, Mapping) and explode:
        return ";" + ";".join(_pairs(value, "="))

    if name is None:
        raise InvalidSegmentError("Matrix-style path parameters must be named")

    if isinstance(value, tuple):
        joiner = f";{name}=" if explode else ","
        return f";{name}=" + joiner.join(stringify(item) for item in value)
    if isinstance(value, Mapping):
        return f";{name}=" + ",".join(_pairs(value, ","))
    return f";{name}={stringify(value)}"


_SERIALIZERS = {
    Style.SIMPLE: serialize_simple,
    Style.LABEL: serialize_label,
    Style.MATRIX: serialize_matrix,
}


def serialize_path(segments: Sequence[Segment]) -> str:
    """Serialize a resource path.

    Each style marker consumes the segment after it as its operand.  The
    result always starts with exactly one ``/``.

    Raises:
        InvalidSegmentError: If a style marker is the last segment or is
            followed by another marker.
    """
    path = ""
    index = 0
    while index < len(segments):
        segment = segments[index]

        if isinstance(segment, StyleMarker):
            if index + 1 >= len(segments) or isinstance(segments[index + 1], StyleMarker):
                raise InvalidSegmentError(
                    "A style marker must be followed by a path parameter"
                )
            if not segment.prefixed:
                path += "/"
            path += _SERIALIZERS[segment.style](segments[index + 1], segment.explode)
            index += 2
            continue

        if isinstance(segment, Param):
            path += "/" + serialize_simple(segment)
        else:
            path += f"/{stringify(segment)}"
        index += 1

    return path if path.startswith("/") else f"/{path}"


def _query_value(value: Any) -> Optional[str]:
    if is_scalar(value):
        return stringify(value)
    if isinstance(value, (list, tuple)) and all(is_scalar(item) for item in value):
        return ",".join(stringify(item) for item in value)
    return None


def serialize_search_params(query: Optional[Mapping[str, Any]] = None) -> str:
    """Serialize a query mapping into a ``?``-prefixed query string.

    Scalars are stringified, arrays are comma-joined into one value, and
    flat objects are flattened one level into independent parameters.
    ``None`` values are omitted.  An empty or absent mapping yields ``""``.
    """
    if not query:
        return ""

    pairs: list[tuple[str, str]] = []
    for key, value in query.items():
        if value is None:
            continue

        rendered = _query_value(value)
        if rendered is not None:
            pairs.append((str(key), rendered))
            continue

        if isinstance(value, Mapping):
            for inner_key, inner_value in value.items():
                if inner_value is None:
                    continue
                inner = _query_value(inner_value)
                if inner is None:
                    get_output().warning(
                        f"Skipping query parameter {key}.{inner_key}: nested too deeply"
                    )
                    continue
                pairs.append((str(inner_key), inner))
            continue

        get_output().warning(
            f"Skipping query parameter {key!r}: unsupported type {type(value).__name__}"
        )

    if not pairs:
        return ""
    return f"?{urlencode(pairs)}"
