import logging
from typing import Optional
from urllib.parse import urlencode

import httpx
from fastapi import APIRouter, Depends, Form, Query, Request
from fastapi.responses import JSONResponse, RedirectResponse
from opentelemetry import trace

from app.backend.auth import LoginRequest, RegisterRequest, login, register
from app.backend.client import BackendClient, BackendError
from app.credentials.relay import attach_set_cookies
from app.dependencies import get_http_client, get_settings
from app.vars import GatewaySettings

router = APIRouter()

logger = logging.getLogger("uvicorn.error")

tracer = trace.get_tracer(__name__)

DEFAULT_LANDING = "/projects"
ADMIN_LANDING = "/admin/dashboard"
MIN_PASSWORD_LENGTH = 6
REGISTERED_MESSAGE = "Registration successful. Please log in."


def _backend(request: Request, settings: GatewaySettings, client: httpx.AsyncClient):
    return BackendClient(client, settings, request.headers)


def safe_redirect_target(redirect_to: Optional[str]) -> str:
    """Only same-site paths are followed after login."""
    if (
        not redirect_to
        or not redirect_to.startswith("/")
        or redirect_to.startswith("//")
        or redirect_to.startswith("/\\")
    ):
        return DEFAULT_LANDING
    return redirect_to


def _error(message: str, status_code: int, set_cookies=None) -> JSONResponse:
    response = JSONResponse({"error": message}, status_code=status_code)
    attach_set_cookies(response, set_cookies or [])
    return response


@router.get("/health")
async def health():
    return {"status": "ok"}


@router.get("/env")
async def public_env(settings: GatewaySettings = Depends(get_settings)):
    """Settings the browser is allowed to see."""
    return {
        "API_BASE_URL": settings.backend_url,
        "LOAD_BALANCER_IP": settings.load_balancer_ip,
    }


@router.get("/login")
async def login_page(
    error: Optional[str] = Query(None),
    message: Optional[str] = Query(None),
    redirect_to: Optional[str] = Query(None, alias="redirectTo"),
):
    return {"error": error, "message": message, "redirectTo": redirect_to}


@router.post("/login")
async def login_action(
    request: Request,
    email: Optional[str] = Form(None),
    password: Optional[str] = Form(None),
    redirect_to: Optional[str] = Form(None, alias="redirectTo"),
    settings: GatewaySettings = Depends(get_settings),
    client: httpx.AsyncClient = Depends(get_http_client),
):
    if not email or not password:
        return _error("Please provide both email and password", 400)

    target = safe_redirect_target(redirect_to)
    with tracer.start_as_current_span("login"):
        try:
            result = await login(
                _backend(request, settings, client),
                LoginRequest(email=email, password=password),
            )
        except BackendError as e:
            logger.warning(f"[Auth] Login failed: {e.message}")
            return _error(e.message, 401, e.set_cookies)

    # Admins without an explicit destination land on the admin dashboard
    if target == DEFAULT_LANDING and result.user.has_role(settings.admin_role):
        target = ADMIN_LANDING

    logger.info(f"[Auth] Login succeeded, redirecting to {target}")
    response = RedirectResponse(target, status_code=302)
    attach_set_cookies(response, result.set_cookies)
    return response


@router.post("/register")
async def register_action(
    request: Request,
    email: Optional[str] = Form(None),
    password: Optional[str] = Form(None),
    username: Optional[str] = Form(None),
    name: Optional[str] = Form(None),
    settings: GatewaySettings = Depends(get_settings),
    client: httpx.AsyncClient = Depends(get_http_client),
):
    if not email or not password:
        return _error("Please provide both email and password", 400)
    if len(password) < MIN_PASSWORD_LENGTH:
        return _error(
            f"Password must be at least {MIN_PASSWORD_LENGTH} characters long", 400
        )

    with tracer.start_as_current_span("register"):
        try:
            result = await register(
                _backend(request, settings, client),
                RegisterRequest(
                    email=email,
                    password=password,
                    username=username or None,
                    name=name or None,
                ),
            )
        except BackendError as e:
            logger.warning(f"[Auth] Registration failed: {e.message}")
            return _error(e.message, 400, e.set_cookies)

    location = f"{settings.login_path}?{urlencode({'message': REGISTERED_MESSAGE})}"
    response = RedirectResponse(location, status_code=302)
    attach_set_cookies(response, result.set_cookies)
    return response
