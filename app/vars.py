import os
from dataclasses import dataclass, field
from typing import Mapping, Optional, Tuple

SERVICE_NAME = os.getenv("SERVICE_NAME", "kubesa-gateway")

OTLP_ENDPOINT = os.getenv("OTLP_ENDPOINT")
OTLP_HEADERS = os.getenv("OTLP_HEADERS", "")

DEFAULT_PUBLIC_PATHS = "/login,/register,/"
DEFAULT_PUBLIC_PATH_PREFIXES = "/build/,/assets/,/resources/"


def _split_list(raw: str) -> Tuple[str, ...]:
    return tuple(entry.strip() for entry in raw.split(",") if entry.strip())


def _normalize_prefix(raw: str) -> str:
    prefix = raw.strip().rstrip("/")
    if prefix and not prefix.startswith("/"):
        prefix = "/" + prefix
    return prefix


def _as_bool(raw: str) -> bool:
    return raw.strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class GatewaySettings:
    """Process-wide gateway configuration, built once at startup."""

    backend_url: str
    backend_api_prefix: str = "/api/v1"
    mount_prefix: str = "/api/v1"
    proxy_timeout: float = 300.0
    identity_timeout: float = 10.0
    identity_path: str = "/auth/me"
    login_path: str = "/login"
    admin_prefix: str = "/admin/"
    admin_role: str = "admin"
    public_paths: Tuple[str, ...] = field(
        default_factory=lambda: _split_list(DEFAULT_PUBLIC_PATHS)
    )
    public_path_prefixes: Tuple[str, ...] = field(
        default_factory=lambda: _split_list(DEFAULT_PUBLIC_PATH_PREFIXES)
    )
    public_static_assets: bool = True
    load_balancer_ip: str = ""
    environment: str = "production"

    @property
    def api_url(self) -> str:
        return f"{self.backend_url}{self.backend_api_prefix}"

    @property
    def identity_url(self) -> str:
        return f"{self.api_url}{self.identity_path}"

    def backend_path_url(self, path: str) -> str:
        """Absolute backend URL for a path relative to the backend API prefix."""
        return f"{self.api_url}/{path.lstrip('/')}"


def load_settings(environ: Optional[Mapping[str, str]] = None) -> GatewaySettings:
    """
    Resolve the gateway configuration from the environment.
    The result is immutable; callers pass it around instead of re-reading env vars.
    """
    env = os.environ if environ is None else environ
    backend_url = env.get("API_BASE_URL", "http://localhost:8080").strip().rstrip("/")
    if not backend_url:
        raise ValueError("API_BASE_URL must not be empty")

    admin_prefix = env.get("ADMIN_PATH_PREFIX", "/admin/").strip() or "/admin/"
    if not admin_prefix.startswith("/"):
        admin_prefix = "/" + admin_prefix

    return GatewaySettings(
        backend_url=backend_url,
        backend_api_prefix=_normalize_prefix(env.get("BACKEND_API_PREFIX", "/api/v1")),
        mount_prefix=_normalize_prefix(env.get("PROXY_PREFIX", "/api/v1")),
        proxy_timeout=float(env.get("PROXY_TIMEOUT", "300")),
        identity_timeout=float(env.get("IDENTITY_TIMEOUT", "10")),
        identity_path="/" + env.get("IDENTITY_PATH", "/auth/me").strip().lstrip("/"),
        login_path=env.get("LOGIN_PATH", "/login").strip() or "/login",
        admin_prefix=admin_prefix,
        admin_role=env.get("ADMIN_ROLE", "admin").strip() or "admin",
        public_paths=_split_list(env.get("PUBLIC_PATHS", DEFAULT_PUBLIC_PATHS)),
        public_path_prefixes=_split_list(
            env.get("PUBLIC_PATH_PREFIXES", DEFAULT_PUBLIC_PATH_PREFIXES)
        ),
        public_static_assets=_as_bool(env.get("PUBLIC_STATIC_ASSETS", "true")),
        load_balancer_ip=env.get("LOAD_BALANCER_IP", ""),
        environment=env.get("NODE_ENV", env.get("ENVIRONMENT", "production")),
    )
