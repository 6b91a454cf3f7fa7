"""Tests for client secret hashing and seeding a client from the environment."""
from connect_server.database import init_db, session_scope
from connect_server.models import Client
from connect_server.seed import hash_secret, seed_from_env, verify_secret


def test_hash_and_verify_secret():
    hashed = hash_secret("s3cret")
    assert hashed != "s3cret"
    assert verify_secret("s3cret", hashed)
    assert not verify_secret("wrong", hashed)


def test_long_secrets_are_truncated_consistently():
    secret = "x" * 100
    assert verify_secret(secret, hash_secret(secret))


def test_seed_confidential_client(monkeypatch):
    monkeypatch.setenv("OAUTH_SEED_CLIENT_ID", "seeded-web")
    monkeypatch.setenv("OAUTH_SEED_CLIENT_SECRET", "seeded-secret")
    monkeypatch.setenv("OAUTH_SEED_REDIRECT_URIS", "https://a.example/cb, https://b.example/cb")
    init_db()
    with session_scope() as db:
        seed_from_env(db)
        seed_from_env(db)
        clients = db.query(Client).filter(Client.client_id == "seeded-web").all()
        assert len(clients) == 1
        client = clients[0]
        assert client.is_confidential
        assert client.get_redirect_uris_list() == ["https://a.example/cb", "https://b.example/cb"]
        assert verify_secret("seeded-secret", client.client_secret_hash)


def test_seed_without_env_does_nothing(monkeypatch):
    monkeypatch.delenv("OAUTH_SEED_CLIENT_ID", raising=False)
    init_db()
    with session_scope() as db:
        before = db.query(Client).count()
        seed_from_env(db)
        assert db.query(Client).count() == before
