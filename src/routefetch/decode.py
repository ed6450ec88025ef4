"""Content-type driven response decoding with heuristic scalar coercion.

The MIME type before any ``;`` parameter selects the decoder; a missing
``Content-Type`` is treated as ``application/json``:

====================  ============================================
group / subtype        result
====================  ============================================
application/*json      parsed JSON, every string leaf coerced
application/*octet-    raw ``bytes``
stream
application/*          raw text
audio/, image/,        raw ``bytes``, no coercion
video/*
multipart/form-data    ``{field: coerced value}``
multipart/*            ``None`` (unsupported, warned about)
text/* and others      the whole body coerced as one value
====================  ============================================

Coercion (:func:`coerce_value`) turns numeric strings, booleans, dates
and stringified JSON into native values and never raises.
"""

from __future__ import annotations

import codecs
import datetime as dt
import json
import re
from email import policy
from email.message import Message
from email.parser import BytesParser
from typing import Any, Optional

import httpx

from routefetch.exceptions import DecodeError
from routefetch.output import warning

MAX_SAFE_INTEGER = 2**53 - 1

_NUMERIC_RE = re.compile(
    r"\s*(?:"
    r"(?P<int>[+-]?\d+)"
    r"|(?P<float>[+-]?(?:\d+\.\d*|\.\d+|\d+)(?:[eE][+-]?\d+)?)"
    r"|(?P<prefixed>0[xX][0-9a-fA-F]+|0[oO][0-7]+|0[bB][01]+)"
    r")\s*"
)

_ISO_8601_RE = re.compile(
    r"(?P<year>\d{4})-(?P<month>[01]\d)-(?P<day>[0-3]\d)"
    r"T(?P<hour>[0-2]\d):(?P<minute>[0-5]\d)"
    r"(?::(?P<second>[0-5]\d)(?:\.(?P<fraction>\d+))?)?"
    r"(?P<tz>Z|[+-][0-2]\d:[0-5]\d)"
)

_MONTHS = ("Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")

_FORMAL_DATE_RE = re.compile(
    r"(?:Sun|Mon|Tue|Wed|Thu|Fri|Sat)\s"
    r"(?P<month>" + "|".join(_MONTHS) + r")\s(?P<day>\d{2})\s(?P<year>\d{4})\s"
    r"(?P<hour>\d{2}):(?P<minute>\d{2}):(?P<second>\d{2})\s"
    r"GMT(?P<sign>[+-])(?P<off_hour>\d{2})(?P<off_minute>\d{2})\s\([^)]+\)"
)

_SHORT_DATE_RE = re.compile(
    r"(?:"
    r"(?P<mdy_month>0?[1-9]|[12]\d|3[01])[/\s-](?P<mdy_day>0?[1-9]|1[0-2])[/\s-](?P<mdy_year>(?:19|20)\d{2})"
    r"|(?P<ymd_year>(?:19|20)\d{2})[/\s-](?P<ymd_month>0?[1-9]|1[0-2])[/\s-](?P<ymd_day>0?[1-9]|[12]\d|3[01])"
    r")"
    r"(?:\s(?P<hour>1[012]|0?[1-9]):(?P<minute>[0-5]\d)(?::(?P<second>[0-5]\d))?(?:\s(?P<meridiem>[AP]M))?)?"
)


# ------------------------------------------------------------------ #
# Scalar coercion
# ------------------------------------------------------------------ #


def parse_numeric(value: str) -> Optional[int | float]:
    """Parse a numeric-looking string, or return ``None``."""
    match = _NUMERIC_RE.fullmatch(value)
    if match is None:
        return None
    try:
        if match.group("int") is not None:
            return int(match.group("int"))
        if match.group("prefixed") is not None:
            return int(match.group("prefixed"), 0)
    except ValueError:
        # Longer than the interpreter's int string conversion limit.
        return None
    return float(match.group("float"))


def _fraction_to_micro(fraction: Optional[str]) -> int:
    if not fraction:
        return 0
    return int(fraction[:6].ljust(6, "0"))


def _parse_iso(text: str) -> Optional[dt.datetime]:
    match = _ISO_8601_RE.fullmatch(text)
    if match is None:
        return None
    tz = match.group("tz")
    if tz == "Z":
        tzinfo = dt.timezone.utc
    else:
        sign = 1 if tz[0] == "+" else -1
        tzinfo = dt.timezone(sign * dt.timedelta(hours=int(tz[1:3]), minutes=int(tz[4:6])))
    return dt.datetime(
        int(match.group("year")),
        int(match.group("month")),
        int(match.group("day")),
        int(match.group("hour")),
        int(match.group("minute")),
        int(match.group("second") or 0),
        _fraction_to_micro(match.group("fraction")),
        tzinfo=tzinfo,
    )


def _parse_formal(text: str) -> Optional[dt.datetime]:
    match = _FORMAL_DATE_RE.fullmatch(text)
    if match is None:
        return None
    sign = 1 if match.group("sign") == "+" else -1
    offset = dt.timedelta(
        hours=int(match.group("off_hour")), minutes=int(match.group("off_minute"))
    )
    return dt.datetime(
        int(match.group("year")),
        _MONTHS.index(match.group("month")) + 1,
        int(match.group("day")),
        int(match.group("hour")),
        int(match.group("minute")),
        int(match.group("second")),
        tzinfo=dt.timezone(sign * offset),
    )


def _parse_short(text: str) -> Optional[dt.datetime]:
    match = _SHORT_DATE_RE.fullmatch(text)
    if match is None:
        return None
    prefix = "mdy" if match.group("mdy_year") else "ymd"
    hour = int(match.group("hour") or 0)
    meridiem = match.group("meridiem")
    if meridiem == "AM" and hour == 12:
        hour = 0
    elif meridiem == "PM" and hour != 12:
        hour += 12
    return dt.datetime(
        int(match.group(f"{prefix}_year")),
        int(match.group(f"{prefix}_month")),
        int(match.group(f"{prefix}_day")),
        hour,
        int(match.group("minute") or 0),
        int(match.group("second") or 0),
    )


def parse_date(value: Any) -> Optional[dt.datetime]:
    """Parse ISO-8601, ``Ddd Mon DD YYYY HH:MM:SS GMT+HHMM (Zone)`` or short dates.

    Double quotes are stripped first.  Returns ``None`` when nothing
    matches or the matched fields do not form a real date.

    Short dates with the year last are read month-first, so
    ``"01-02-2020"`` is 2 January and ``"25-12-2020"`` is not a date.
    Short dates carry no offset and come back naive.
    """
    if not isinstance(value, str):
        return None
    text = value.replace('"', "")
    for parser in (_parse_iso, _parse_formal, _parse_short):
        try:
            parsed = parser(text)
        except ValueError:
            return None
        if parsed is not None:
            return parsed
    return None


def is_stringified_object(value: Any) -> bool:
    """``True`` when *value* is a string wrapped in ``{}`` or ``[]``."""
    if not isinstance(value, str) or len(value) < 2:
        return False
    return (value[0], value[-1]) in {("{", "}"), ("[", "]")}


def coerce_tree(data: Any) -> Any:
    """Apply :func:`coerce_value` to every string leaf of parsed JSON."""
    if isinstance(data, str):
        return coerce_value(data)
    if isinstance(data, list):
        return [coerce_tree(item) for item in data]
    if isinstance(data, dict):
        return {key: coerce_tree(item) for key, item in data.items()}
    return data


def coerce_value(value: Any) -> Any:
    """Best-effort conversion of a string into a native value.

    Checks run in order and the first match wins: empty -> ``""``;
    numeric within the safe-integer range -> ``int``/``float``;
    ``"true"``/``"false"`` -> ``bool``; recognised date -> ``datetime``;
    ``{...}``/``[...]`` -> parsed JSON with the same coercion on its
    leaves, or the original string when it does not parse.  Values that
    are not strings are returned unchanged (``None`` becomes ``""``).
    """
    if value is None or value == "":
        return ""
    if not isinstance(value, str):
        return value

    number = parse_numeric(value)
    if number is not None:
        if abs(number) > MAX_SAFE_INTEGER:
            return value
        return number

    if value == "true":
        return True
    if value == "false":
        return False

    date = parse_date(value)
    if date is not None:
        return date

    if is_stringified_object(value):
        try:
            return coerce_tree(json.loads(value))
        except (ValueError, RecursionError):
            return value

    return value


# ------------------------------------------------------------------ #
# Response decoding
# ------------------------------------------------------------------ #


def media_type(response: httpx.Response) -> tuple[str, str]:
    """Return the ``(group, subtype)`` pair of a response's content type."""
    content_type = response.headers.get("content-type") or "application/json"
    mime = content_type.split(";", 1)[0].strip().lower()
    group, _, subtype = mime.partition("/")
    return group, subtype


def _decode_json(response: httpx.Response) -> Any:
    text = response.text
    if not text.strip():
        return None
    try:
        parsed = json.loads(text)
    except (ValueError, RecursionError) as exc:
        raise DecodeError(f"Invalid JSON response body: {exc}", cause=exc) from exc
    return coerce_tree(parsed)


def _charset(part: Message) -> str:
    charset = part.get_content_charset() or "utf-8"
    try:
        codecs.lookup(charset)
    except LookupError:
        return "utf-8"
    return charset


def _decode_form_data(response: httpx.Response) -> dict[str, Any]:
    content_type = response.headers.get("content-type", "")
    header = content_type.encode("latin-1", errors="replace")
    raw = b"Content-Type: " + header + b"\r\n\r\n" + response.content
    message = BytesParser(policy=policy.HTTP).parsebytes(raw)
    if not message.is_multipart():
        raise DecodeError("Malformed multipart/form-data body (missing boundary?)")

    fields: dict[str, Any] = {}
    for part in message.iter_parts():
        name = part.get_param("name", header="content-disposition")
        if name is None:
            continue
        payload = part.get_payload(decode=True) or b""
        if part.get_filename() is not None:
            fields[name] = payload
            continue
        fields[name] = coerce_value(payload.decode(_charset(part), errors="replace"))
    return fields


def decode_response(response: httpx.Response) -> Any:
    """Decode a fully-read response body according to its content type.

    Raises:
        DecodeError: If a JSON or form-data body is malformed.
    """
    group, subtype = media_type(response)

    if group == "application":
        if subtype.endswith("json"):
            return _decode_json(response)
        if subtype.endswith("octet-stream"):
            return response.content
        return response.text

    if group in ("audio", "image", "video"):
        return response.content

    if group == "multipart":
        if subtype == "form-data":
            return _decode_form_data(response)
        warning(f"Unsupported multipart subtype {subtype!r}; response data left empty")
        return None

    return coerce_value(response.text)
