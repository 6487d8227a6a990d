"""
JSON client for the backend API used by the typed action wrappers.

Every call relays the browser's session cookie, captures any Set-Cookie the
backend answers with, and turns failures into a single BackendError.
"""

import logging
from http import HTTPStatus
from typing import Any, Dict, List, Optional

import httpx

from app.credentials.relay import HeaderSource, captured_set_cookies, cookie_headers
from app.vars import GatewaySettings

logger = logging.getLogger("uvicorn.error")


class BackendError(Exception):
    """Normalized failure of a backend call: message plus implied status."""

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        set_cookies: Optional[List[str]] = None,
    ):
        self.message = message
        self.status_code = status_code
        self.set_cookies = set_cookies or []
        super().__init__(message)


def _reason(status_code: int) -> str:
    try:
        return HTTPStatus(status_code).phrase
    except ValueError:
        return str(status_code)


def error_message(response: httpx.Response, action: str) -> str:
    """Backend-declared error text when present, else the HTTP status text."""
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        for key in ("error", "message"):
            if isinstance(body.get(key), str) and body[key]:
                return body[key]
    return f"{action}: {response.reason_phrase or _reason(response.status_code)}"


class BackendResult:
    """Decoded backend answer together with the cookies it issued."""

    def __init__(self, status_code: int, data: Any, set_cookies: List[str]):
        self.status_code = status_code
        self.data = data
        self.set_cookies = set_cookies


class BackendClient:
    def __init__(
        self,
        client: httpx.AsyncClient,
        settings: GatewaySettings,
        request_headers: Optional[HeaderSource] = None,
    ):
        self.client = client
        self.settings = settings
        self.request_headers = request_headers or {}

    def url(self, path: str) -> str:
        return self.settings.backend_path_url(path)

    def _headers(self, has_body: bool) -> Dict[str, str]:
        headers = {"Accept": "application/json"}
        if has_body:
            headers["Content-Type"] = "application/json"
        headers.update(cookie_headers(self.request_headers))
        return headers

    async def call(
        self,
        method: str,
        path: str,
        action: str,
        json: Any = None,
        params: Optional[Dict[str, Any]] = None,
        expect_body: bool = True,
    ) -> BackendResult:
        url = self.url(path)
        try:
            response = await self.client.request(
                method,
                url,
                headers=self._headers(json is not None),
                json=json,
                params=params,
                timeout=httpx.Timeout(self.settings.identity_timeout),
            )
        except httpx.TimeoutException as e:
            logger.error(f"[Backend] Timeout calling {method} {url}: {e}")
            raise BackendError(f"{action}: backend timed out", status_code=504)
        except httpx.HTTPError as e:
            logger.error(f"[Backend] Failed calling {method} {url}: {e}")
            raise BackendError(f"{action}: backend unavailable", status_code=502)

        # Headers are captured before the body is touched
        set_cookies = captured_set_cookies(response.headers)

        if not response.is_success:
            message = error_message(response, action)
            logger.warning(f"[Backend] {method} {url} -> {response.status_code}: {message}")
            raise BackendError(message, response.status_code, set_cookies)

        if not expect_body or not response.content:
            return BackendResult(response.status_code, None, set_cookies)

        try:
            data = response.json()
        except ValueError:
            logger.error(f"[Backend] {method} {url} returned a non-JSON body")
            raise BackendError("Invalid response from backend", 502, set_cookies)
        return BackendResult(response.status_code, data, set_cookies)

    async def get(self, path: str, action: str, params=None) -> Any:
        return (await self.call("GET", path, action, params=params)).data

    async def post(self, path: str, action: str, json: Any = None) -> Any:
        return (await self.call("POST", path, action, json=json)).data

    async def put(self, path: str, action: str, json: Any = None) -> Any:
        return (await self.call("PUT", path, action, json=json)).data

    async def delete(self, path: str, action: str) -> None:
        await self.call("DELETE", path, action, expect_body=False)


def unwrap(payload: Any, key: Optional[str] = None) -> Any:
    """Return ``payload["data"]`` (or ``payload["data"][key]``) of a backend envelope."""
    data = payload.get("data") if isinstance(payload, dict) else None
    if key is None:
        return data
    return data.get(key) if isinstance(data, dict) else None


def unwrap_list(payload: Any, key: str) -> List[Any]:
    """Collection inside the backend envelope; a missing or null list is empty."""
    return unwrap(payload, key) or []
