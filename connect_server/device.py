"""
Device-code flow endpoints (RFC 8628).
POST /oauth/device: device authorization request.
GET /device, POST /device: verification page where the user confirms their code.
"""
import html
import logging

from fastapi import APIRouter, Depends, Form, Request
from fastapi.responses import HTMLResponse
from sqlalchemy.orm import Session

from connect_server.audit import (
    EVENT_CODE_CONFIRMED,
    EVENT_DEVICE_AUTHORIZATION_STARTED,
    OUTCOME_FAIL,
    OUTCOME_SUCCESS,
    log_audit,
)
from connect_server.config import DEFAULT_SCOPE, RATE_LIMIT_CONFIRM_PER_MINUTE
from connect_server.database import get_db
from connect_server.deps import get_flows
from connect_server.errors import Expired, NotFound
from connect_server.flows import AuthorizationFlowManager
from connect_server.http_utils import get_client_ip, public_base_url, rate_limited_response, read_params
from connect_server.rate_limit import check_and_consume

logger = logging.getLogger(__name__)
router = APIRouter()

DEFAULT_DEVICE_CLIENT_ID = "mcp-desktop"


@router.post("/oauth/device")
def device_authorization(
    request: Request,
    params: dict[str, str] = Depends(read_params),
    flows: AuthorizationFlowManager = Depends(get_flows),
    db: Session = Depends(get_db),
):
    """Start a device authorization. Body (form or JSON): client_id, scope."""
    client_id = params.get("client_id") or DEFAULT_DEVICE_CLIENT_ID
    scope = params.get("scope") or DEFAULT_SCOPE
    started = flows.start_device_flow(client_id=client_id, scope=scope, base_url=public_base_url(request))
    log_audit(
        db,
        EVENT_DEVICE_AUTHORIZATION_STARTED,
        client_id=client_id,
        ip=get_client_ip(request),
        outcome=OUTCOME_SUCCESS,
    )
    return started.to_response()


def _render_device_page(user_code: str, message: str = "") -> str:
    e = html.escape(user_code)
    note = f"<p>{html.escape(message)}</p>" if message else ""
    return f"""<!DOCTYPE html>
<html>
<head><meta charset="utf-8"><title>Connect a device</title></head>
<body>
  <h1>Connect a device</h1>
  {note}
  <form method="post" action="/device">
    <label>Code: <input type="text" name="user_code" value="{e}" required/></label>
    <button type="submit">Authorize device</button>
  </form>
</body>
</html>"""


@router.get("/device", response_class=HTMLResponse)
def device_page(user_code: str = ""):
    return HTMLResponse(_render_device_page(user_code))


@router.post("/device", response_class=HTMLResponse)
def device_confirm(
    request: Request,
    user_code: str = Form(...),
    flows: AuthorizationFlowManager = Depends(get_flows),
    db: Session = Depends(get_db),
):
    """Confirm a device user code from the verification form."""
    ip = get_client_ip(request)
    allowed, retry_after = check_and_consume(f"confirm:{ip}", RATE_LIMIT_CONFIRM_PER_MINUTE)
    if not allowed:
        return rate_limited_response(retry_after)

    code = user_code.strip().upper()
    try:
        confirmation = flows.confirm(code)
    except (NotFound, Expired) as e:
        log_audit(db, EVENT_CODE_CONFIRMED, ip=ip, outcome=OUTCOME_FAIL)
        message = "That code has expired." if isinstance(e, Expired) else "That code was not recognised."
        return HTMLResponse(_render_device_page(code, message), status_code=404)

    log_audit(db, EVENT_CODE_CONFIRMED, ip=ip, outcome=OUTCOME_SUCCESS)
    message = "Already authorized." if confirmation.already_authorized else "Device authorized."
    return HTMLResponse(
        f"""<!DOCTYPE html>
<html>
<head><meta charset="utf-8"><title>Device connected</title></head>
<body>
  <h1>{message}</h1>
  <p>You can return to your application; it will connect on its next poll.</p>
</body>
</html>"""
    )
