"""In-process stand-in for the backend API, built on httpx.MockTransport."""

import json as jsonlib
from typing import Callable, Dict, List, Tuple, Union

import httpx

Handler = Union[httpx.Response, Callable[[httpx.Request], httpx.Response]]


def replay(response: httpx.Response) -> httpx.Response:
    """
    Fresh, unread copy of a canned response.
    The raw (still encoded) body is wrapped in a stream so callers can
    consume it with aiter_raw.
    """
    return httpx.Response(
        response.status_code,
        headers=response.headers.multi_items(),
        stream=httpx.ByteStream(b"".join(response.stream)),
    )


class FakeBackend:
    def __init__(self):
        self.routes: Dict[Tuple[str, str], Handler] = {}
        self.requests: List[httpx.Request] = []
        self.bodies: List[bytes] = []
        self.transport = httpx.MockTransport(self.handle)

    def on(self, method: str, path: str, handler: Handler) -> "FakeBackend":
        self.routes[(method.upper(), path)] = handler
        return self

    def json(self, method: str, path: str, payload, status_code: int = 200, headers=None):
        return self.on(
            method,
            path,
            httpx.Response(status_code, json=payload, headers=headers or []),
        )

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        self.bodies.append(request.content)
        handler = self.routes.get((request.method, request.url.path))
        if handler is None:
            return replay(httpx.Response(404, json={"error": "not found"}))
        if callable(handler):
            return replay(handler(request))
        return replay(handler)

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=self.transport)

    def calls(self, method: str, path: str) -> List[httpx.Request]:
        return [
            r for r in self.requests if r.method == method and r.url.path == path
        ]

    @staticmethod
    def body_json(request: httpx.Request):
        return jsonlib.loads(request.content)


def identity_payload(role="user", user_id=1):
    """Body of the backend identity endpoint for a signed-in user."""
    return {
        "data": {
            "user": {
                "id": user_id,
                "email": f"{role}@example.com",
                "username": role,
                "role": role,
            }
        }
    }
