"""
Access guard for the protected RPC surface.
A presented token is valid if it is the static API key or a live access token in the token store.
Tokens arrive as `Authorization: Bearer <token>` or, for the SSE admission endpoint, `?access_token=`.
"""
import hmac
import logging
from dataclasses import dataclass
from typing import Annotated

from fastapi import Depends, HTTPException, Query, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from connect_server.audit import EVENT_AUTH_REJECTED, OUTCOME_FAIL, log_audit
from connect_server.codes import preview
from connect_server.database import get_db
from connect_server.http_utils import get_client_ip, public_base_url
from connect_server.token_store import TokenStore

logger = logging.getLogger(__name__)


@dataclass
class Principal:
    client_id: str
    scope: str
    kind: str  # "static" | "issued"


class AccessGuard:
    def __init__(self, tokens: TokenStore, static_api_key: str | None):
        self.tokens = tokens
        self.static_api_key = static_api_key

    def authenticate(self, token: str | None) -> Principal | None:
        if not token:
            return None
        if self.static_api_key and hmac.compare_digest(token.encode(), self.static_api_key.encode()):
            return Principal(client_id="static", scope="*", kind="static")
        issued = self.tokens.get(token)
        if issued is None:
            logger.info("Rejected token %s", preview(token))
            return None
        return Principal(client_id=issued.client_id, scope=issued.scope, kind="issued")


def extract_token(authorization: str | None, query_token: str | None) -> str | None:
    """Bearer header first, then the access_token query parameter."""
    if authorization:
        scheme, _, value = authorization.strip().partition(" ")
        if scheme.lower() == "bearer" and value.strip():
            return value.strip()
    if query_token:
        return query_token.strip() or None
    return None


def challenge_headers(realm: str, description: str) -> dict[str, str]:
    return {
        "WWW-Authenticate": f'Bearer realm="{realm}", error="invalid_token", error_description="{description}"'
    }


def challenge_description(token: str | None) -> str:
    return "The access token is missing" if not token else "The access token is invalid or expired"


def get_guard(request: Request) -> AccessGuard:
    return request.app.state.guard


security = HTTPBearer(auto_error=False)


def authenticate_request(
    request: Request,
    guard: AccessGuard,
    db: Session,
    credentials: HTTPAuthorizationCredentials | None,
    access_token: str | None,
) -> tuple[Principal | None, str | None]:
    """Resolve the presented token. Returns (principal_or_None, token_or_None); audits rejections."""
    header = f"{credentials.scheme} {credentials.credentials}" if credentials else None
    token = extract_token(header, access_token)
    principal = guard.authenticate(token)
    if principal is None:
        log_audit(db, EVENT_AUTH_REJECTED, ip=get_client_ip(request), outcome=OUTCOME_FAIL)
    return principal, token


def require_principal(
    request: Request,
    guard: Annotated[AccessGuard, Depends(get_guard)],
    db: Annotated[Session, Depends(get_db)],
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
    access_token: Annotated[str | None, Query()] = None,
) -> Principal:
    """Dependency: valid token -> Principal. Raises 401 with a Bearer challenge otherwise."""
    principal, token = authenticate_request(request, guard, db, credentials, access_token)
    if principal is None:
        description = challenge_description(token)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"error": "invalid_token", "error_description": description},
            headers=challenge_headers(public_base_url(request), description),
        )
    return principal
