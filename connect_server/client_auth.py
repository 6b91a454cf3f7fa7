"""
Client authentication at the token endpoint. RFC 6749 §3.2.1.
Credentials via Authorization: Basic base64(client_id:client_secret) or client_id + client_secret in the body.
Only clients registered as confidential must authenticate; unknown client_ids are public clients.
"""
import base64
import binascii
import logging

from fastapi import Request
from sqlalchemy.orm import Session

from connect_server.errors import InvalidClient
from connect_server.models import Client
from connect_server.seed import verify_secret

logger = logging.getLogger(__name__)


def find_client(db: Session, client_id: str | None) -> Client | None:
    if not client_id:
        return None
    return db.query(Client).filter(Client.client_id == client_id).first()


def is_confidential_client(db: Session, client_id: str | None) -> bool:
    client = find_client(db, client_id)
    return client is not None and client.is_confidential


def _parse_basic(header_value: str) -> tuple[str, str] | None:
    """Parse 'Basic <base64(client_id:client_secret)>'. Returns (client_id, client_secret) or None."""
    if not header_value or not header_value.strip().lower().startswith("basic "):
        return None
    try:
        encoded = header_value.strip()[6:].strip()
        decoded = base64.b64decode(encoded).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError):
        return None
    if ":" not in decoded:
        return None
    client_id, _, client_secret = decoded.partition(":")
    return (client_id.strip(), client_secret)


def get_client_credentials_from_request(
    request: Request,
    client_id_form: str | None,
    client_secret_form: str | None,
) -> tuple[str | None, str | None]:
    """
    Get (client_id, client_secret) from the body or from Authorization Basic.
    Body takes precedence if both present.
    """
    if client_id_form and client_secret_form is not None:
        return (client_id_form.strip(), client_secret_form)
    auth_header = request.headers.get("Authorization")
    basic = _parse_basic(auth_header) if auth_header else None
    if basic:
        return basic
    if client_id_form:
        return (client_id_form.strip(), client_secret_form)
    return (None, None)


def authenticate_client(
    db: Session,
    request: Request,
    client_id_form: str | None,
    client_secret_form: str | None,
) -> str | None:
    """
    Resolve the calling client. Raises InvalidClient if a confidential client presents a missing
    or wrong secret. Returns the client_id (possibly None for anonymous public callers).
    """
    client_id, client_secret = get_client_credentials_from_request(request, client_id_form, client_secret_form)
    if not client_id:
        return None
    client = find_client(db, client_id)
    if client is None or not client.is_confidential:
        return client_id
    if not client_secret or not verify_secret(client_secret, client.client_secret_hash):
        logger.info("Client authentication failed for %s", client_id)
        raise InvalidClient()
    return client_id
