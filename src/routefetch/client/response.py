"""Response cloning for error contexts and middleware.

:func:`clone_response` produces the independent copy of a response that
error contexts and middleware observe, so the primary response can be
decoded without either side stepping on the other.
"""

from __future__ import annotations

import httpx

# The clone carries the already-decoded body, so these no longer describe it.
_STALE_HEADERS = ("content-encoding", "content-length")


def clone_response(response: httpx.Response) -> httpx.Response:
    """Return an independent, fully-read copy of *response*.

    *response* must already have been read.  The copy shares status,
    headers, request and extensions with the original; ``Content-Encoding``
    and ``Content-Length`` are dropped because the body is stored decoded.
    """
    headers = httpx.Headers(
        [(k, v) for k, v in response.headers.multi_items() if k.lower() not in _STALE_HEADERS]
    )
    try:
        request = response.request
    except RuntimeError:
        request = None
    return httpx.Response(
        status_code=response.status_code,
        headers=headers,
        content=response.content,
        request=request,
        extensions=dict(response.extensions),
    )
