"""
Client secret hashing and optional client seeding from the environment.
Set OAUTH_SEED_CLIENT_ID (+ optional OAUTH_SEED_CLIENT_SECRET, OAUTH_SEED_REDIRECT_URIS) to pre-register a client.
"""
import json
import logging
import os

import bcrypt
from sqlalchemy.orm import Session

from connect_server.models import Client

logger = logging.getLogger(__name__)


def hash_secret(secret: str) -> str:
    # Bcrypt has a 72-byte limit
    raw = secret.encode("utf-8")
    if len(raw) > 72:
        raw = raw[:72]
    return bcrypt.hashpw(raw, bcrypt.gensalt()).decode("utf-8")


def verify_secret(plain: str, hashed: str) -> bool:
    raw = plain.encode("utf-8")
    if len(raw) > 72:
        raw = raw[:72]
    return bcrypt.checkpw(raw, hashed.encode("utf-8"))


def seed_from_env(db: Session) -> None:
    """Create one client from env if set and not already registered."""
    client_id = os.environ.get("OAUTH_SEED_CLIENT_ID")
    if not client_id:
        return
    if db.query(Client).filter(Client.client_id == client_id).first() is not None:
        logger.debug("Client already exists: %s", client_id)
        return
    client_secret = os.environ.get("OAUTH_SEED_CLIENT_SECRET")
    uris = [u.strip() for u in os.environ.get("OAUTH_SEED_REDIRECT_URIS", "").split(",") if u.strip()]
    db.add(
        Client(
            client_id=client_id,
            client_name=os.environ.get("OAUTH_SEED_CLIENT_NAME", client_id),
            redirect_uris=json.dumps(uris),
            client_secret_hash=hash_secret(client_secret) if client_secret else None,
            token_endpoint_auth_method="client_secret_post" if client_secret else "none",
        )
    )
    db.commit()
    logger.info("Seeded client: %s (confidential=%s)", client_id, bool(client_secret))
