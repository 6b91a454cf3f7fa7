"""
Token endpoint (POST /oauth/token). authorization_code, device_code and refresh_token grants.
Accepts form or JSON bodies. Errors are OAuthError subclasses rendered by the app-level handler.
"""
import logging

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from connect_server.audit import (
    EVENT_GRANT_FAILED,
    EVENT_TOKEN_ISSUED,
    EVENT_TOKEN_REFRESHED,
    OUTCOME_FAIL,
    OUTCOME_SUCCESS,
    log_audit,
)
from connect_server.client_auth import authenticate_client, is_confidential_client
from connect_server.config import DEVICE_CODE_GRANT, RATE_LIMIT_TOKEN_PER_MINUTE
from connect_server.database import get_db
from connect_server.deps import get_issuer
from connect_server.errors import AuthorizationPending, OAuthError, UnsupportedGrantType
from connect_server.http_utils import get_client_ip, rate_limited_response, read_params
from connect_server.issuer import TokenIssuer
from connect_server.rate_limit import check_and_consume

logger = logging.getLogger(__name__)
router = APIRouter()

SUPPORTED_GRANT_TYPES = ("authorization_code", DEVICE_CODE_GRANT, "refresh_token")


@router.post("/oauth/token")
def token(
    request: Request,
    params: dict[str, str] = Depends(read_params),
    issuer: TokenIssuer = Depends(get_issuer),
    db: Session = Depends(get_db),
):
    """
    authorization_code: redeem a confirmed redirect-flow code.
    urn:ietf:params:oauth:grant-type:device_code: poll a device authorization.
    refresh_token: rotate a token pair.
    Codes and tokens issued to a confidential client are only honoured for that client,
    authenticated with its secret.
    """
    ip = get_client_ip(request)
    allowed, retry_after = check_and_consume(f"token:{ip}", RATE_LIMIT_TOKEN_PER_MINUTE)
    if not allowed:
        return rate_limited_response(retry_after)

    grant_type = params.get("grant_type")
    client_id = authenticate_client(db, request, params.get("client_id"), params.get("client_secret"))
    if params.get("code_verifier"):
        logger.debug("code_verifier presented for %s; PKCE is not verified", grant_type)

    def requires_auth(owner: str) -> bool:
        return is_confidential_client(db, owner)

    try:
        if grant_type == "authorization_code":
            pair = issuer.exchange_authorization_code(params.get("code"), client_id, requires_auth)
            event = EVENT_TOKEN_ISSUED
        elif grant_type == DEVICE_CODE_GRANT:
            pair = issuer.exchange_device_code(params.get("device_code"), client_id, requires_auth)
            event = EVENT_TOKEN_ISSUED
        elif grant_type == "refresh_token":
            pair = issuer.refresh(params.get("refresh_token"), client_id, requires_auth)
            event = EVENT_TOKEN_REFRESHED
        else:
            raise UnsupportedGrantType(f"Supported grant types: {', '.join(SUPPORTED_GRANT_TYPES)}")
    except AuthorizationPending:
        # Normal while the user has not confirmed yet; not a failure worth auditing
        raise
    except OAuthError as e:
        log_audit(db, EVENT_GRANT_FAILED, client_id=client_id, ip=ip, outcome=OUTCOME_FAIL)
        logger.info("Token request failed: grant_type=%s error=%s", grant_type, e.error)
        raise

    log_audit(db, event, client_id=pair.client_id, ip=ip, outcome=OUTCOME_SUCCESS)
    return pair.to_response()
