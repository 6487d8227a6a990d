"""
Principal resolution through the backend identity endpoint
"""

import logging
from typing import Any, Dict, Optional

import httpx
from opentelemetry import trace
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from app.utils import cookie_fingerprint
from app.vars import GatewaySettings

logger = logging.getLogger("uvicorn.error")
tracer = trace.get_tracer(__name__)


class Principal(BaseModel):
    """The signed-in user as reported by the backend for one request."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str
    role: str
    email: Optional[str] = None
    username: Optional[str] = None
    name: Optional[str] = None
    created_at: Optional[str] = Field(default=None, alias="createdAt")
    updated_at: Optional[str] = Field(default=None, alias="updatedAt")

    def has_role(self, role: str) -> bool:
        return self.role == role


def extract_principal(payload: Any) -> Optional[Principal]:
    """
    Pull the user object out of an identity payload.
    Accepts ``{"user": {...}}`` and the ``{"data": {"user": {...}}}`` envelope.
    """
    if not isinstance(payload, dict):
        return None
    user: Optional[Dict[str, Any]] = payload.get("user")
    if user is None and isinstance(payload.get("data"), dict):
        user = payload["data"].get("user")
    if not isinstance(user, dict):
        return None
    if user.get("id") is not None:
        user = {**user, "id": str(user["id"])}
    try:
        return Principal.model_validate(user)
    except ValidationError as e:
        logger.warning(f"[Identity] Malformed user object from backend: {e}")
        return None


async def resolve_principal(
    client: httpx.AsyncClient, settings: GatewaySettings, cookie: str
) -> Optional[Principal]:
    """
    Ask the backend who owns ``cookie``.
    Every failure mode (no cookie, non-2xx, network error, bad JSON) means
    there is no principal.
    """
    if not cookie:
        return None

    with tracer.start_as_current_span("identity_lookup") as span:
        try:
            response = await client.get(
                settings.identity_url,
                headers={"Cookie": cookie},
                timeout=httpx.Timeout(settings.identity_timeout),
            )
        except httpx.HTTPError as e:
            logger.warning(f"[Identity] Lookup failed: {type(e).__name__}: {e}")
            span.set_attribute("identity.error", type(e).__name__)
            return None

        span.set_attribute("identity.status_code", response.status_code)
        if not response.is_success:
            logger.debug(
                f"[Identity] No session for cookie {cookie_fingerprint(cookie)}, "
                f"backend answered {response.status_code}"
            )
            return None

        try:
            payload = response.json()
        except ValueError:
            logger.warning("[Identity] Identity endpoint returned a non-JSON body")
            return None

        principal = extract_principal(payload)
        if principal:
            span.set_attribute("identity.role", principal.role)
        return principal
