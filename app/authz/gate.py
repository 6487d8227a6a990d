import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Sequence, Tuple
from urllib.parse import urlencode

import httpx
from fastapi import Request
from fastapi.responses import RedirectResponse
from starlette.middleware.base import BaseHTTPMiddleware

from app.authz.identity import resolve_principal
from app.authz.paths import PathClassification, PathRule, classify_path, rules_from_settings
from app.credentials.relay import HeaderSource, inbound_cookie
from app.vars import GatewaySettings

logger = logging.getLogger("uvicorn.error")

UNAUTHORIZED = "unauthorized"
FORBIDDEN = "forbidden"
UNAUTHORIZED_MESSAGE = "Please login to access this page"
FORBIDDEN_MESSAGE = "You don't have permission to access this page"


class GateOutcome(str, Enum):
    ALLOWED = "allowed"
    REDIRECT_LOGIN = "redirect-login"
    REDIRECT_FORBIDDEN = "redirect-forbidden"


@dataclass(frozen=True)
class GateDecision:
    outcome: GateOutcome
    location: Optional[str] = None

    @property
    def allowed(self) -> bool:
        return self.outcome is GateOutcome.ALLOWED

    def to_response(self) -> Optional[RedirectResponse]:
        if self.allowed:
            return None
        return RedirectResponse(self.location, status_code=302)


ALLOWED = GateDecision(GateOutcome.ALLOWED)


def login_redirect_url(login_path: str, redirect_to: str) -> str:
    query = urlencode(
        {"redirectTo": redirect_to, "error": UNAUTHORIZED, "message": UNAUTHORIZED_MESSAGE}
    )
    return f"{login_path}?{query}"


def forbidden_redirect_url(login_path: str) -> str:
    query = urlencode({"error": FORBIDDEN, "message": FORBIDDEN_MESSAGE})
    return f"{login_path}?{query}"


class AuthorizationGate:
    """
    Per-request page access check.

    Public paths are allowed without touching the backend. Anything else needs
    a principal from the identity endpoint, and admin pages need the admin
    role. The principal is not kept after the check.
    """

    def __init__(
        self,
        settings: GatewaySettings,
        client: httpx.AsyncClient,
        rules: Optional[Sequence[PathRule]] = None,
    ):
        self.settings = settings
        self.client = client
        self.rules: Tuple[PathRule, ...] = (
            tuple(rules) if rules is not None else rules_from_settings(settings)
        )

    def classify(self, path: str) -> PathClassification:
        return classify_path(path, self.rules, self.settings.admin_prefix)

    async def check(self, path: str, headers: HeaderSource) -> GateDecision:
        classification = self.classify(path)
        if classification is PathClassification.PUBLIC:
            logger.debug(f"[Gate] Public path {path}")
            return ALLOWED

        principal = await resolve_principal(
            self.client, self.settings, inbound_cookie(headers)
        )
        if principal is None:
            logger.info(f"[Gate] Unauthenticated request to {path}, redirecting to login")
            return GateDecision(
                GateOutcome.REDIRECT_LOGIN,
                login_redirect_url(self.settings.login_path, path),
            )

        if classification is PathClassification.PROTECTED_ADMIN and not principal.has_role(
            self.settings.admin_role
        ):
            logger.info(
                f"[Gate] User {principal.id} with role {principal.role} denied access to {path}"
            )
            return GateDecision(
                GateOutcome.REDIRECT_FORBIDDEN,
                forbidden_redirect_url(self.settings.login_path),
            )

        return ALLOWED


class AuthorizationMiddleware(BaseHTTPMiddleware):
    """Run the authorization gate before page handlers."""

    def __init__(self, app, bypass_prefixes: Sequence[str] = ()):
        super().__init__(app)
        self.bypass_prefixes = tuple(p for p in bypass_prefixes if p)

    def _bypassed(self, path: str) -> bool:
        return any(
            path == prefix or path.startswith(prefix.rstrip("/") + "/")
            for prefix in self.bypass_prefixes
        )

    async def dispatch(self, request: Request, call_next):
        path = request.url.path
        if self._bypassed(path):
            return await call_next(request)

        gate = AuthorizationGate(request.app.state.settings, request.app.state.http_client)
        decision = await gate.check(path, request.headers)
        if not decision.allowed:
            return decision.to_response()
        return await call_next(request)
