"""
Token revocation endpoint (POST /oauth/revoke). RFC 7009.
Always 200 with an empty body, whether or not the token was known.
"""
import logging

from fastapi import APIRouter, Depends, Request, Response
from sqlalchemy.orm import Session

from connect_server.audit import EVENT_TOKEN_REVOKED, OUTCOME_SUCCESS, log_audit
from connect_server.database import get_db
from connect_server.deps import get_issuer
from connect_server.http_utils import get_client_ip, read_params
from connect_server.issuer import TokenIssuer

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/oauth/revoke")
def revoke(
    request: Request,
    params: dict[str, str] = Depends(read_params),
    issuer: TokenIssuer = Depends(get_issuer),
    db: Session = Depends(get_db),
):
    """Revoke an access or refresh token. token_type_hint is accepted and ignored."""
    token = (params.get("token") or "").strip()
    if issuer.revoke(token):
        log_audit(db, EVENT_TOKEN_REVOKED, ip=get_client_ip(request), outcome=OUTCOME_SUCCESS)
    return Response(status_code=200)
