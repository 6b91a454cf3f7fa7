"""
Pytest configuration for connect_server. In-memory SQLite, no seeded client, no fixed issuer,
and a controllable clock so expiry can be tested without sleeping.
"""
import os

# Must be set before connect_server.config is imported
os.environ["CONNECT_DATABASE_URL"] = "sqlite:///:memory:"
for _name in ("OAUTH_ISSUER", "OAUTH_SEED_CLIENT_ID", "OAUTH_SEED_CLIENT_SECRET", "ENABLE_DEBUG_ENDPOINTS"):
    os.environ.pop(_name, None)

import pytest
from fastapi.testclient import TestClient

from connect_server import rate_limit
from connect_server.main import create_app

STATIC_KEY = "csk_test_static_key"


class FakeClock:
    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture(autouse=True)
def _reset_rate_limits():
    rate_limit.reset()
    yield
    rate_limit.reset()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def static_key():
    return STATIC_KEY


@pytest.fixture
def app(clock):
    # Sweeper interval far beyond test duration; tests drive sweeps explicitly
    return create_app(clock=clock, static_api_key=STATIC_KEY, enable_debug=True, sweep_interval=3600)


@pytest.fixture
def client(app):
    with TestClient(app) as c:
        yield c
