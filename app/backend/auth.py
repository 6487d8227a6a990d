import logging
from typing import Any, Dict, List, Optional

from pydantic import BaseModel

from app.authz.identity import Principal, extract_principal, resolve_principal
from app.backend.client import BackendClient, BackendError
from app.credentials.relay import inbound_cookie

logger = logging.getLogger("uvicorn.error")


class LoginRequest(BaseModel):
    email: str
    password: str


class RegisterRequest(BaseModel):
    email: str
    password: str
    username: Optional[str] = None
    name: Optional[str] = None


class AuthResult(BaseModel):
    """Backend auth answer plus the session cookies it issued."""

    user: Optional[Principal] = None
    data: Any = None
    set_cookies: List[str] = []


async def login(backend: BackendClient, credentials: LoginRequest) -> AuthResult:
    """The backend sets the session cookie; it is captured for the browser."""
    result = await backend.call(
        "POST", "/auth/login", "Login failed", json=credentials.model_dump()
    )
    payload: Dict[str, Any] = result.data if isinstance(result.data, dict) else {}
    data = payload.get("data")
    user = extract_principal(data) if isinstance(data, dict) else None
    if user is None:
        logger.warning("[Auth] Login succeeded but the backend returned no user")
        raise BackendError("Login failed", 502, result.set_cookies)
    return AuthResult(user=user, data=data, set_cookies=result.set_cookies)


async def register(backend: BackendClient, user_data: RegisterRequest) -> AuthResult:
    result = await backend.call(
        "POST",
        "/auth/register",
        "Registration failed",
        json=user_data.model_dump(exclude_none=True),
    )
    payload = result.data if isinstance(result.data, dict) else {}
    return AuthResult(
        user=extract_principal(payload), data=payload, set_cookies=result.set_cookies
    )


async def get_current_user(backend: BackendClient) -> Optional[Principal]:
    return await resolve_principal(
        backend.client, backend.settings, inbound_cookie(backend.request_headers)
    )
