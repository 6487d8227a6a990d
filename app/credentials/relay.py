"""
Session credential relay between the browser and the backend API.

The browser only ever talks to the gateway, so the session cookie has to be
carried across explicitly: the inbound ``Cookie`` header goes out to the
backend verbatim, and every ``Set-Cookie`` the backend issues comes back to
the browser verbatim. Cookie values are opaque here; nothing is parsed,
minted or rewritten.
"""

from typing import Iterable, List, Mapping, Optional, Tuple, Union

import httpx
from starlette.datastructures import Headers
from starlette.responses import Response

COOKIE = "cookie"
SET_COOKIE = "set-cookie"

# Hop-by-hop headers that should NOT be forwarded (RFC 7230 section 6.1)
HOP_BY_HOP_HEADERS = frozenset(
    {
        "connection",
        "keep-alive",
        "proxy-authenticate",
        "proxy-authorization",
        "te",
        "trailers",
        "transfer-encoding",
        "upgrade",
    }
)

HeaderSource = Union[Headers, httpx.Headers, Mapping[str, str]]


def _values(headers: HeaderSource, name: str) -> List[str]:
    if hasattr(headers, "getlist"):
        return list(headers.getlist(name))
    if hasattr(headers, "get_list"):
        return list(headers.get_list(name))
    return [value for key, value in headers.items() if key.lower() == name]


def inbound_cookie(headers: HeaderSource) -> str:
    """The inbound Cookie header verbatim, or an empty string when absent."""
    values = _values(headers, COOKIE)
    if not values:
        return ""
    # HTTP/2 clients may split cookies over several lines
    return "; ".join(values)


def relay_cookie(
    headers: Iterable[Tuple[str, str]], cookie: str
) -> List[Tuple[str, str]]:
    """Replace any cookie entries of an outbound header list with ``cookie``."""
    relayed = [(name, value) for name, value in headers if name.lower() != COOKIE]
    if cookie:
        relayed.append(("cookie", cookie))
    return relayed


def cookie_headers(request_headers: HeaderSource) -> dict:
    """Headers carrying only the relayed session cookie."""
    cookie = inbound_cookie(request_headers)
    return {"Cookie": cookie} if cookie else {}


def captured_set_cookies(response_headers: HeaderSource) -> List[str]:
    """Every Set-Cookie value on a backend response, in the order received."""
    return _values(response_headers, SET_COOKIE)


def forward_headers(response_headers: httpx.Headers) -> List[Tuple[str, str]]:
    """
    Backend response headers that may reach the browser.
    Set-Cookie is left out here; attach_set_cookies re-attaches it.
    """
    return [
        (name, value)
        for name, value in response_headers.multi_items()
        if name.lower() not in HOP_BY_HOP_HEADERS and name.lower() != SET_COOKIE
    ]


def attach_set_cookies(response: Response, cookies: Optional[Iterable[str]]) -> Response:
    """Append each captured Set-Cookie value as its own header line."""
    for cookie in cookies or ():
        response.headers.append("set-cookie", cookie)
    return response
