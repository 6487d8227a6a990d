from urllib.parse import parse_qs, urlsplit

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from app.routes import REGISTERED_MESSAGE, router, safe_redirect_target
from app.utils_tests.fake_backend import identity_payload
from app.vars import GatewaySettings

LOGIN_PATH = "/api/v1/auth/login"
REGISTER_PATH = "/api/v1/auth/register"


@pytest.fixture
def client(settings, fake_backend):
    app = FastAPI()
    app.state.settings = settings
    app.state.http_client = fake_backend.client()
    app.include_router(router)
    return TestClient(app, follow_redirects=False)


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}


def test_env_exposes_only_public_settings(fake_backend):
    app = FastAPI()
    app.state.settings = GatewaySettings(
        backend_url="http://api.internal:8080", load_balancer_ip="203.0.113.7"
    )
    app.state.http_client = fake_backend.client()
    app.include_router(router)

    response = TestClient(app).get("/env")
    assert response.json() == {
        "API_BASE_URL": "http://api.internal:8080",
        "LOAD_BALANCER_IP": "203.0.113.7",
    }


def test_login_page_echoes_query(client):
    response = client.get(
        "/login",
        params={"error": "unauthorized", "message": "Please login", "redirectTo": "/projects/1"},
    )
    assert response.json() == {
        "error": "unauthorized",
        "message": "Please login",
        "redirectTo": "/projects/1",
    }


class TestLoginAction:
    @pytest.mark.parametrize(
        "form", [{}, {"email": "a@b.c"}, {"password": "secret"}, {"email": "", "password": "x"}]
    )
    def test_missing_fields(self, client, fake_backend, form):
        response = client.post("/login", data=form)
        assert response.status_code == 400
        assert response.json() == {"error": "Please provide both email and password"}
        assert fake_backend.requests == []

    def test_success_redirects_with_backend_cookies(self, client, fake_backend):
        fake_backend.json(
            "POST",
            LOGIN_PATH,
            identity_payload("user"),
            headers=[("set-cookie", "sid=new; Path=/; HttpOnly"), ("set-cookie", "r=1")],
        )
        response = client.post(
            "/login",
            data={"email": "u@example.com", "password": "pw", "redirectTo": "/projects/7"},
        )

        assert response.status_code == 302
        assert response.headers["location"] == "/projects/7"
        assert response.headers.get_list("set-cookie") == ["sid=new; Path=/; HttpOnly", "r=1"]

    def test_default_landing(self, client, fake_backend):
        fake_backend.json("POST", LOGIN_PATH, identity_payload("user"))
        response = client.post("/login", data={"email": "u@example.com", "password": "pw"})
        assert response.headers["location"] == "/projects"

    def test_admin_default_landing(self, client, fake_backend):
        fake_backend.json("POST", LOGIN_PATH, identity_payload("admin"))
        response = client.post("/login", data={"email": "a@example.com", "password": "pw"})
        assert response.headers["location"] == "/admin/dashboard"

    def test_admin_keeps_explicit_target(self, client, fake_backend):
        fake_backend.json("POST", LOGIN_PATH, identity_payload("admin"))
        response = client.post(
            "/login",
            data={"email": "a@example.com", "password": "pw", "redirectTo": "/admin/nodes"},
        )
        assert response.headers["location"] == "/admin/nodes"

    @pytest.mark.parametrize(
        "redirect_to",
        [
            "https://evil.example/phish",
            "//evil.example/phish",
            "/\\evil.example/phish",
            "javascript:alert(1)",
            "projects",
        ],
    )
    def test_offsite_redirect_target_ignored(self, client, fake_backend, redirect_to):
        fake_backend.json("POST", LOGIN_PATH, identity_payload("user"))
        response = client.post(
            "/login",
            data={"email": "u@example.com", "password": "pw", "redirectTo": redirect_to},
        )
        assert response.status_code == 302
        assert response.headers["location"] == "/projects"

    def test_safe_redirect_target(self):
        assert safe_redirect_target(None) == "/projects"
        assert safe_redirect_target("/services/3?tab=logs") == "/services/3?tab=logs"
        assert safe_redirect_target("//evil.example") == "/projects"

    def test_rejected_credentials(self, client, fake_backend):
        fake_backend.json(
            "POST", LOGIN_PATH, {"error": "Invalid email or password"}, status_code=401
        )
        response = client.post("/login", data={"email": "u@example.com", "password": "bad"})
        assert response.status_code == 401
        assert response.json() == {"error": "Invalid email or password"}

    def test_backend_down(self, client, fake_backend):
        fake_backend.json("POST", LOGIN_PATH, {}, status_code=503)
        response = client.post("/login", data={"email": "u@example.com", "password": "pw"})
        assert response.status_code == 401
        assert response.json() == {"error": "Login failed: Service Unavailable"}


class TestRegisterAction:
    def test_short_password(self, client, fake_backend):
        response = client.post("/register", data={"email": "a@b.c", "password": "12345"})
        assert response.status_code == 400
        assert response.json() == {"error": "Password must be at least 6 characters long"}
        assert fake_backend.requests == []

    def test_missing_fields(self, client):
        response = client.post("/register", data={"email": "a@b.c"})
        assert response.status_code == 400

    def test_success_redirects_to_login(self, client, fake_backend):
        fake_backend.json("POST", REGISTER_PATH, {"user": {"id": 3, "role": "user"}})
        response = client.post(
            "/register",
            data={"email": "a@b.c", "password": "123456", "username": "ab", "name": ""},
        )

        assert response.status_code == 302
        location = urlsplit(response.headers["location"])
        assert location.path == "/login"
        assert parse_qs(location.query) == {"message": [REGISTERED_MESSAGE]}
        assert fake_backend.body_json(fake_backend.requests[0]) == {
            "email": "a@b.c",
            "password": "123456",
            "username": "ab",
        }

    def test_backend_rejects(self, client, fake_backend):
        fake_backend.json(
            "POST",
            REGISTER_PATH,
            {"error": "Email already registered"},
            status_code=409,
            headers=[("set-cookie", "csrf=1; Path=/")],
        )
        response = client.post("/register", data={"email": "a@b.c", "password": "123456"})
        assert response.status_code == 400
        assert response.json() == {"error": "Email already registered"}
        assert response.headers.get_list("set-cookie") == ["csrf=1; Path=/"]

    def test_success_relays_backend_cookies(self, client, fake_backend):
        fake_backend.json(
            "POST",
            REGISTER_PATH,
            {"user": {"id": 3, "role": "user"}},
            headers=[("set-cookie", "sid=new; HttpOnly"), ("set-cookie", "csrf=2")],
        )
        response = client.post("/register", data={"email": "a@b.c", "password": "123456"})
        assert response.status_code == 302
        assert response.headers.get_list("set-cookie") == ["sid=new; HttpOnly", "csrf=2"]
