"""
Audit logging. Security-relevant events only; no codes, tokens, secrets or request bodies.
GET /audit lists recent events when debug endpoints are enabled.
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from connect_server.database import get_db
from connect_server.models import AuditLog

EVENT_AUTHORIZATION_STARTED = "authorization_started"
EVENT_DEVICE_AUTHORIZATION_STARTED = "device_authorization_started"
EVENT_CODE_CONFIRMED = "code_confirmed"
EVENT_TOKEN_ISSUED = "token_issued"
EVENT_TOKEN_REFRESHED = "token_refreshed"
EVENT_TOKEN_REVOKED = "token_revoked"
EVENT_GRANT_FAILED = "grant_failed"
EVENT_CLIENT_REGISTERED = "client_registered"
EVENT_AUTH_REJECTED = "auth_rejected"

OUTCOME_SUCCESS = "success"
OUTCOME_FAIL = "fail"


def log_audit(
    db: Session,
    event_type: str,
    *,
    client_id: str | None = None,
    ip: str | None = None,
    outcome: str = OUTCOME_SUCCESS,
) -> None:
    """Append one audit record. Never log tokens or codes."""
    db.add(
        AuditLog(
            event_type=event_type,
            client_id=client_id,
            ip=ip,
            outcome=outcome,
        )
    )
    db.commit()


router = APIRouter(tags=["audit"])


def _query_audit_logs(
    db: Session,
    *,
    limit: int = 100,
    event_type: str | None = None,
    outcome: str | None = None,
    client_id: str | None = None,
):
    """Query audit logs with optional filters. Most recent first."""
    q = db.query(AuditLog).order_by(AuditLog.id.desc())
    if event_type:
        q = q.filter(AuditLog.event_type == event_type)
    if outcome:
        q = q.filter(AuditLog.outcome == outcome)
    if client_id:
        q = q.filter(AuditLog.client_id == client_id)
    rows = q.limit(min(max(1, limit), 500)).all()
    return [
        {
            "created_at": r.created_at.isoformat() if r.created_at else None,
            "event_type": r.event_type,
            "client_id": r.client_id,
            "ip": r.ip,
            "outcome": r.outcome,
        }
        for r in rows
    ]


@router.get("/audit")
def list_audit_logs(
    limit: int = 100,
    event_type: str | None = None,
    outcome: str | None = None,
    client_id: str | None = None,
    db: Session = Depends(get_db),
):
    """List recent audit events. Most recent first."""
    return _query_audit_logs(
        db, limit=limit, event_type=event_type, outcome=outcome, client_id=client_id
    )
