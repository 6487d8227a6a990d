import logging
from typing import AsyncIterator, List, Tuple

import httpx
from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import Response, StreamingResponse
from opentelemetry import trace

from app.credentials.relay import (
    HOP_BY_HOP_HEADERS,
    attach_set_cookies,
    captured_set_cookies,
    forward_headers,
    inbound_cookie,
    relay_cookie,
)
from app.dependencies import get_http_client, get_settings
from app.vars import GatewaySettings

router = APIRouter()
tracer = trace.get_tracer(__name__)
logger = logging.getLogger("uvicorn.error")

PROXY_METHODS = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]
BODYLESS_METHODS = {"GET", "HEAD"}


def get_target_url(request: Request, settings: GatewaySettings) -> str:
    """Construct the backend URL from the request path."""
    # raw_path keeps percent-encoded segments (e.g. %2F) intact
    raw_path = request.scope.get("raw_path")
    path = raw_path.decode("latin-1") if raw_path else request.url.path

    # Remove the mount prefix from the path
    if settings.mount_prefix and path.startswith(settings.mount_prefix):
        path = path[len(settings.mount_prefix):]

    target = settings.backend_path_url(path)

    # Query string is appended untouched so ordering and repeated keys survive
    query_string = str(request.url.query)
    if query_string:
        target = f"{target}?{query_string}"
    return target


def prepare_headers(request: Request) -> List[Tuple[str, str]]:
    """
    Prepare headers for forwarding to the backend.
    Repeated headers are kept; hop-by-hop headers and host are dropped so the
    transport can set host from the backend origin. GET and HEAD go out
    without a body, so their Content-Length is dropped too.
    """
    dropped = {"host"}
    if not request_has_body(request.method):
        dropped.add("content-length")
    headers = []
    for name, value in request.headers.items():
        name_lower = name.lower()
        if name_lower in HOP_BY_HOP_HEADERS or name_lower in dropped:
            continue
        headers.append((name, value))
    return headers


def request_has_body(method: str) -> bool:
    return method.upper() not in BODYLESS_METHODS


async def stream_request_body(request: Request) -> AsyncIterator[bytes]:
    async for chunk in request.stream():
        if chunk:
            yield chunk


async def stream_response(response: httpx.Response) -> AsyncIterator[bytes]:
    """
    Relay the backend body bytes as received, content-encoding included.
    Closing in finally also covers a browser disconnect cancelling the stream.
    """
    try:
        async for chunk in response.aiter_raw():
            yield chunk
    except httpx.HTTPError as e:
        logger.error(f"Backend stream interrupted: {e}")
        raise
    finally:
        await response.aclose()


async def forward_to_target(
    request: Request, settings: GatewaySettings, client: httpx.AsyncClient
) -> Response:
    """
    Forward an inbound request to the backend API and relay the answer.

    - Same method, headers passed through, Cookie relayed verbatim
    - Request and response bodies streamed, never inspected
    - Backend status and headers returned unchanged, every Set-Cookie kept
    """
    with tracer.start_as_current_span("proxy_request") as span:
        target_url = get_target_url(request, settings)
        span.set_attribute("proxy.target_url", target_url)
        span.set_attribute("proxy.method", request.method)

        logger.debug(f"Proxying {request.method} {request.url.path} -> {target_url}")

        headers = relay_cookie(prepare_headers(request), inbound_cookie(request.headers))
        content = (
            stream_request_body(request) if request_has_body(request.method) else None
        )

        # Built without the client so its default headers (user-agent,
        # accept-encoding) are not added to what the browser sent
        upstream_request = httpx.Request(
            method=request.method,
            url=target_url,
            headers=headers,
            content=content,
            extensions={"timeout": httpx.Timeout(settings.proxy_timeout).as_dict()},
        )

        try:
            upstream = await client.send(upstream_request, stream=True)
        except httpx.TimeoutException as e:
            logger.error(f"Proxy timeout for {target_url}: {e}")
            span.set_attribute("proxy.error", "timeout")
            raise HTTPException(status_code=504, detail="Gateway timeout")
        except httpx.ConnectError as e:
            logger.error(f"Failed to connect to backend {target_url}: {e}")
            span.set_attribute("proxy.error", "connection_failed")
            raise HTTPException(status_code=502, detail="Bad gateway")
        except httpx.HTTPError as e:
            logger.error(f"Proxy error for {target_url}: {e}", exc_info=True)
            span.set_attribute("proxy.error", type(e).__name__)
            raise HTTPException(status_code=502, detail="Bad gateway")

        span.set_attribute("proxy.status_code", upstream.status_code)
        logger.info(
            f"Proxied {request.method} {request.url.path}, status: {upstream.status_code}"
        )

        response = StreamingResponse(
            stream_response(upstream), status_code=upstream.status_code
        )
        for name, value in forward_headers(upstream.headers):
            response.headers.append(name, value)
        return attach_set_cookies(response, captured_set_cookies(upstream.headers))


@router.api_route("/{path:path}", methods=PROXY_METHODS)
async def proxy_all(
    request: Request,
    path: str,
    settings: GatewaySettings = Depends(get_settings),
    client: httpx.AsyncClient = Depends(get_http_client),
):
    """Catch-all route that proxies everything under the mount prefix."""
    return await forward_to_target(request, settings, client)
