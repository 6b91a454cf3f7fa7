"""
Tests for discovery documents, index, health, and the debug switch.
"""
from fastapi.testclient import TestClient

from connect_server import config
from connect_server.config import DEVICE_CODE_GRANT
from connect_server.main import create_app


def test_authorization_server_metadata(client):
    r = client.get("/.well-known/oauth-authorization-server")
    assert r.status_code == 200
    data = r.json()
    assert data["issuer"] == "http://testserver"
    assert data["authorization_endpoint"] == "http://testserver/oauth/authorize"
    assert data["token_endpoint"] == "http://testserver/oauth/token"
    assert data["device_authorization_endpoint"] == "http://testserver/oauth/device"
    assert data["registration_endpoint"] == "http://testserver/oauth/register"
    assert data["revocation_endpoint"] == "http://testserver/oauth/revoke"
    assert DEVICE_CODE_GRANT in data["grant_types_supported"]
    assert "refresh_token" in data["grant_types_supported"]
    assert "code" in data["response_types_supported"]


def test_mcp_oauth_discovery(client):
    data = client.get("/.well-known/mcp_oauth").json()
    assert data["authorization_endpoint"] == "http://testserver/oauth/authorize"
    assert data["device_authorization_endpoint"] == "http://testserver/oauth/device"


def test_proxy_hosts_get_https(client):
    r = client.get("/.well-known/mcp_oauth", headers={"Host": "connect.up.railway.app"})
    assert r.json()["token_endpoint"] == "https://connect.up.railway.app/oauth/token"


def test_forwarded_proto_is_honoured(client):
    r = client.get("/.well-known/mcp_oauth", headers={"X-Forwarded-Proto": "https"})
    assert r.json()["token_endpoint"] == "https://testserver/oauth/token"


def test_configured_issuer_wins(client, monkeypatch):
    monkeypatch.setattr(config, "ISSUER", "https://connect.example.com")
    data = client.get("/.well-known/oauth-authorization-server").json()
    assert data["issuer"] == "https://connect.example.com"
    assert data["token_endpoint"] == "https://connect.example.com/oauth/token"


def test_index(client):
    data = client.get("/").json()
    assert data["name"] == config.SERVER_NAME
    assert data["endpoints"]["token"] == "/oauth/token"


def test_health_counts(client):
    client.post("/oauth/device", data={"client_id": "desktop"})
    r = client.get("/health")
    assert r.status_code == 200
    data = r.json()
    assert data["status"] == "ok"
    assert data["pending_authorizations"] == 1
    assert data["issued_tokens"] == 0
    assert data["timestamp"]


def test_debug_pending_lists_codes_without_secrets(client):
    started = client.post("/oauth/device", data={"client_id": "desktop"}).json()
    r = client.get("/debug/pending")
    assert r.status_code == 200
    pending = r.json()["pending"]
    assert [p["user_code"] for p in pending] == [started["user_code"]]
    assert started["device_code"] not in r.text


def test_debug_endpoints_off_by_default(clock):
    app = create_app(clock=clock, enable_debug=False, sweep_interval=3600)
    with TestClient(app) as c:
        assert c.get("/debug/pending").status_code == 404
        assert c.get("/audit").status_code == 404


def test_lifespan_runs_sweeper(app):
    with TestClient(app):
        assert app.state.sweeper.running
    assert not app.state.sweeper.running


def test_cors_exposes_challenge_header(client):
    r = client.get("/mcp", headers={"Origin": "https://claude.ai"})
    assert r.status_code == 401
    assert "www-authenticate" in r.headers.get("access-control-expose-headers", "").lower()
