import httpx
from fastapi import Request

from app.vars import GatewaySettings


def get_settings(request: Request) -> GatewaySettings:
    """Settings resolved once at application start."""
    return request.app.state.settings


def get_http_client(request: Request) -> httpx.AsyncClient:
    """Process-wide connection pool to the backend API."""
    return request.app.state.http_client
