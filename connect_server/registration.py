"""
Dynamic client registration (POST /oauth/register). RFC 7591.
Public clients (token_endpoint_auth_method "none") get no secret. Others get a secret once;
only its bcrypt hash is kept.
"""
import json
import logging
import secrets
import time
from typing import Any

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from connect_server.audit import EVENT_CLIENT_REGISTERED, OUTCOME_SUCCESS, log_audit
from connect_server.database import get_db
from connect_server.errors import InvalidRequest
from connect_server.http_utils import get_client_ip, read_json
from connect_server.models import Client
from connect_server.seed import hash_secret

logger = logging.getLogger(__name__)
router = APIRouter()

AUTH_METHODS = ("none", "client_secret_post", "client_secret_basic")


@router.post("/oauth/register", status_code=201)
def register_client(request: Request, body: Any = Depends(read_json), db: Session = Depends(get_db)):
    data = {} if body is None else body
    if not isinstance(data, dict):
        raise InvalidRequest("Registration body must be a JSON object")

    redirect_uris = data.get("redirect_uris") or []
    if not isinstance(redirect_uris, list) or not all(isinstance(u, str) for u in redirect_uris):
        raise InvalidRequest("redirect_uris must be a list of strings")
    auth_method = data.get("token_endpoint_auth_method") or "none"
    if auth_method not in AUTH_METHODS:
        raise InvalidRequest(f"token_endpoint_auth_method must be one of: {', '.join(AUTH_METHODS)}")

    client_id = secrets.token_urlsafe(24)
    client_secret = secrets.token_urlsafe(32) if auth_method != "none" else None
    client_name = str(data.get("client_name") or "MCP Client")
    db.add(
        Client(
            client_id=client_id,
            client_name=client_name,
            redirect_uris=json.dumps(redirect_uris),
            client_secret_hash=hash_secret(client_secret) if client_secret else None,
            token_endpoint_auth_method=auth_method,
        )
    )
    db.commit()
    log_audit(db, EVENT_CLIENT_REGISTERED, client_id=client_id, ip=get_client_ip(request), outcome=OUTCOME_SUCCESS)
    logger.info("Registered client %s (%s)", client_id, auth_method)

    body = {
        "client_id": client_id,
        "client_id_issued_at": int(time.time()),
        "client_name": client_name,
        "redirect_uris": redirect_uris,
        "grant_types": data.get("grant_types") or ["authorization_code", "refresh_token"],
        "response_types": ["code"],
        "token_endpoint_auth_method": auth_method,
    }
    if client_secret:
        body["client_secret"] = client_secret
        body["client_secret_expires_at"] = 0
    return JSONResponse(body, status_code=201)
