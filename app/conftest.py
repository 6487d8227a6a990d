import pytest

from app.utils_tests.fake_backend import FakeBackend
from app.vars import GatewaySettings

BACKEND_URL = "http://backend.test"


@pytest.fixture
def settings():
    """Gateway settings pointing at the in-process backend."""
    return GatewaySettings(backend_url=BACKEND_URL)


@pytest.fixture
def fake_backend():
    return FakeBackend()
