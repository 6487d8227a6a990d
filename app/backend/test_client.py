import httpx
import pytest

from app.backend.client import BackendClient, BackendError, error_message, unwrap, unwrap_list


class TestErrorMessage:
    def test_prefers_backend_error_field(self):
        response = httpx.Response(400, json={"error": "Name already taken"})
        assert error_message(response, "Failed to create project") == "Name already taken"

    def test_falls_back_to_message_field(self):
        response = httpx.Response(409, json={"message": "Conflict on name"})
        assert error_message(response, "Failed") == "Conflict on name"

    def test_falls_back_to_status_text(self):
        response = httpx.Response(503, content=b"<html>down</html>")
        assert error_message(response, "Failed to fetch projects") == (
            "Failed to fetch projects: Service Unavailable"
        )


class TestUnwrap:
    def test_unwrap(self):
        assert unwrap({"data": {"id": 1}}) == {"id": 1}
        assert unwrap({"data": {"project": {"id": 1}}}, "project") == {"id": 1}
        assert unwrap(None) is None
        assert unwrap({"data": None}, "project") is None

    def test_unwrap_list_never_returns_none(self):
        assert unwrap_list({"data": {"services": None}}, "services") == []
        assert unwrap_list({}, "services") == []
        assert unwrap_list({"data": {"services": [1]}}, "services") == [1]


class TestBackendClient:
    @pytest.mark.asyncio
    async def test_get_relays_cookie_and_params(self, settings, fake_backend):
        fake_backend.json("GET", "/api/v1/projects", {"data": {"projects": []}})
        async with fake_backend.client() as client:
            backend = BackendClient(client, settings, {"cookie": "sid=abc"})
            data = await backend.get("/projects", "Failed", params={"page": "2"})

        assert data == {"data": {"projects": []}}
        (call,) = fake_backend.requests
        assert call.headers["cookie"] == "sid=abc"
        assert call.headers["accept"] == "application/json"
        assert "content-type" not in call.headers
        assert call.url.params["page"] == "2"

    @pytest.mark.asyncio
    async def test_post_sends_json(self, settings, fake_backend):
        fake_backend.json("POST", "/api/v1/projects", {"data": {"id": "p1"}}, status_code=201)
        async with fake_backend.client() as client:
            backend = BackendClient(client, settings)
            result = await backend.call("POST", "/projects", "Failed", json={"name": "p"})

        assert result.status_code == 201
        assert result.data == {"data": {"id": "p1"}}
        (call,) = fake_backend.requests
        assert fake_backend.body_json(call) == {"name": "p"}
        assert call.headers["content-type"] == "application/json"
        assert "cookie" not in call.headers

    @pytest.mark.asyncio
    async def test_set_cookies_captured(self, settings, fake_backend):
        fake_backend.json(
            "POST",
            "/api/v1/auth/login",
            {"data": {}},
            headers=[("set-cookie", "sid=1"), ("set-cookie", "refresh=2")],
        )
        async with fake_backend.client() as client:
            result = await BackendClient(client, settings).call(
                "POST", "/auth/login", "Login failed", json={}
            )
        assert result.set_cookies == ["sid=1", "refresh=2"]

    @pytest.mark.asyncio
    async def test_non_success_raises_with_backend_message(self, settings, fake_backend):
        fake_backend.json(
            "GET",
            "/api/v1/projects/1",
            {"error": "Project not found"},
            status_code=404,
            headers=[("set-cookie", "sid=rotated")],
        )
        async with fake_backend.client() as client:
            with pytest.raises(BackendError) as exc_info:
                await BackendClient(client, settings).get("/projects/1", "Failed to fetch project")

        assert exc_info.value.message == "Project not found"
        assert exc_info.value.status_code == 404
        assert exc_info.value.set_cookies == ["sid=rotated"]

    @pytest.mark.asyncio
    async def test_invalid_json_is_bad_gateway(self, settings, fake_backend):
        fake_backend.on("GET", "/api/v1/projects", httpx.Response(200, content=b"not json"))
        async with fake_backend.client() as client:
            with pytest.raises(BackendError) as exc_info:
                await BackendClient(client, settings).get("/projects", "Failed")
        assert exc_info.value.status_code == 502
        assert exc_info.value.message == "Invalid response from backend"

    @pytest.mark.asyncio
    async def test_delete_ignores_body(self, settings, fake_backend):
        fake_backend.on("DELETE", "/api/v1/projects/1", httpx.Response(200, content=b"ok"))
        async with fake_backend.client() as client:
            assert await BackendClient(client, settings).delete("/projects/1", "Failed") is None

    @pytest.mark.asyncio
    async def test_network_errors(self, settings, fake_backend):
        def refuse(request):
            raise httpx.ConnectError("refused", request=request)

        def hang(request):
            raise httpx.ReadTimeout("slow", request=request)

        fake_backend.on("GET", "/api/v1/a", refuse).on("GET", "/api/v1/b", hang)
        async with fake_backend.client() as client:
            backend = BackendClient(client, settings)
            with pytest.raises(BackendError) as refused:
                await backend.get("/a", "Failed to fetch a")
            with pytest.raises(BackendError) as timed_out:
                await backend.get("/b", "Failed to fetch b")

        assert refused.value.status_code == 502
        assert timed_out.value.status_code == 504
        assert len(fake_backend.requests) == 2
