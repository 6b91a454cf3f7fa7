"""
Redirect-code flow endpoints.
GET /oauth/authorize: start a pending authorization, show the user code.
GET /oauth/check: status polled by the page.
POST /api/authorize-code: out-of-band confirmation from the account-linking site.
"""
import html
import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import HTMLResponse, JSONResponse
from sqlalchemy.orm import Session

from connect_server.audit import (
    EVENT_AUTHORIZATION_STARTED,
    EVENT_CODE_CONFIRMED,
    OUTCOME_FAIL,
    OUTCOME_SUCCESS,
    log_audit,
)
from connect_server.client_auth import find_client
from connect_server.config import DEFAULT_SCOPE, RATE_LIMIT_CONFIRM_PER_MINUTE
from connect_server.database import get_db
from connect_server.deps import get_flows
from connect_server.errors import Expired, NotFound
from connect_server.flows import AuthorizationFlowManager
from connect_server.http_utils import get_client_ip, rate_limited_response, read_params
from connect_server.rate_limit import check_and_consume

logger = logging.getLogger(__name__)
router = APIRouter()

DEFAULT_CLIENT_ID = "manual-test"


def _render_code_page(user_code: str, expires_in: int) -> str:
    e = html.escape(user_code)
    minutes = max(1, expires_in // 60)
    return f"""<!DOCTYPE html>
<html>
<head><meta charset="utf-8"><title>Connect your account</title></head>
<body>
  <h1>Connect your account</h1>
  <p>Enter this code on the account-linking page:</p>
  <p><strong id="userCode">{e}</strong></p>
  <p>The code expires in {minutes} minutes.</p>
  <p id="status">Waiting for confirmation...</p>
  <script>
    const poll = setInterval(() => {{
      fetch('/oauth/check?code={e}')
        .then(r => r.json())
        .then(data => {{
          if (data.authorized) {{
            clearInterval(poll);
            const url = new URL(data.redirect_uri);
            url.searchParams.set('code', data.auth_code);
            if (data.state) url.searchParams.set('state', data.state);
            window.location.href = url.toString();
          }} else if (data.expired || data.error) {{
            clearInterval(poll);
            document.getElementById('status').textContent = 'Code expired. Refresh to start again.';
          }}
        }})
        .catch(() => {{}});
    }}, 3000);
  </script>
</body>
</html>"""


@router.get("/oauth/authorize", response_class=HTMLResponse)
def authorize(
    request: Request,
    response_type: str | None = None,
    client_id: str | None = None,
    redirect_uri: str | None = None,
    state: str | None = None,
    scope: str | None = None,
    code_challenge: str | None = None,
    code_challenge_method: str | None = None,
    flows: AuthorizationFlowManager = Depends(get_flows),
    db: Session = Depends(get_db),
):
    """
    Start a redirect-code authorization and render the user code.
    PKCE parameters are stored with the authorization but not verified at the token endpoint.
    """
    if response_type and response_type != "code":
        return HTMLResponse(
            "<h1>Invalid request</h1><p>response_type must be 'code'.</p>",
            status_code=400,
        )
    if not redirect_uri:
        return HTMLResponse(
            "<h1>Invalid request</h1><p>redirect_uri is required.</p>",
            status_code=400,
        )
    registered = find_client(db, client_id)
    if registered is not None and not registered.redirect_uri_allowed(redirect_uri):
        logger.info("Unregistered redirect_uri for client_id=%s: %s", client_id, redirect_uri)
        return HTMLResponse(
            "<h1>Invalid request</h1><p>redirect_uri is not registered for this client.</p>",
            status_code=400,
        )

    started = flows.start_redirect_flow(
        client_id=client_id or DEFAULT_CLIENT_ID,
        redirect_uri=redirect_uri,
        state=state,
        scope=scope or DEFAULT_SCOPE,
        code_challenge=code_challenge,
        code_challenge_method=code_challenge_method,
    )
    log_audit(
        db,
        EVENT_AUTHORIZATION_STARTED,
        client_id=client_id or DEFAULT_CLIENT_ID,
        ip=get_client_ip(request),
        outcome=OUTCOME_SUCCESS,
    )
    return HTMLResponse(_render_code_page(started.user_code, started.expires_in))


@router.get("/oauth/check")
def check(code: str = "", flows: AuthorizationFlowManager = Depends(get_flows)):
    """Authorization status for a user code. 404 when the code is unknown or has expired."""
    try:
        status = flows.check_status(code)
    except Expired:
        return JSONResponse({"authorized": False, "expired": True, "error": "expired"}, status_code=404)
    except NotFound:
        return JSONResponse({"authorized": False, "expired": False, "error": "not_found"}, status_code=404)
    return status.to_response()


@router.post("/api/authorize-code")
def authorize_code(
    request: Request,
    params: dict[str, str] = Depends(read_params),
    flows: AuthorizationFlowManager = Depends(get_flows),
    db: Session = Depends(get_db),
):
    """Confirm a user code (JSON or form body: code). Confirming twice is not an error."""
    ip = get_client_ip(request)
    allowed, retry_after = check_and_consume(f"confirm:{ip}", RATE_LIMIT_CONFIRM_PER_MINUTE)
    if not allowed:
        return rate_limited_response(retry_after)

    code = (params.get("code") or "").strip().upper()
    if not code:
        return JSONResponse({"success": False, "error": "Code is required"}, status_code=400)

    try:
        confirmation = flows.confirm(code)
    except Expired:
        log_audit(db, EVENT_CODE_CONFIRMED, ip=ip, outcome=OUTCOME_FAIL)
        return JSONResponse({"success": False, "error": "Code expired"}, status_code=404)
    except NotFound:
        log_audit(db, EVENT_CODE_CONFIRMED, ip=ip, outcome=OUTCOME_FAIL)
        return JSONResponse({"success": False, "error": "Invalid code"}, status_code=404)

    log_audit(db, EVENT_CODE_CONFIRMED, ip=ip, outcome=OUTCOME_SUCCESS)
    body = {
        "success": True,
        "code": code,
        "message": "Already authorized" if confirmation.already_authorized else "Successfully connected",
    }
    if confirmation.redirect_url:
        body["redirect_url"] = confirmation.redirect_url
    return body
