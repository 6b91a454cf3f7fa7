"""
Protected MCP surface.
GET /sse: authenticated SSE admission stream with keep-alive pings.
POST /sse, POST /mcp: JSON-RPC 2.0 messages.
GET /mcp: server info.
"""
import asyncio
import json
import logging
from datetime import datetime, timezone
from typing import Annotated, Any

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse, StreamingResponse
from fastapi.security import HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from connect_server import config
from connect_server.database import get_db
from connect_server.guard import (
    AccessGuard,
    Principal,
    authenticate_request,
    challenge_description,
    challenge_headers,
    get_guard,
    require_principal,
    security,
)
from connect_server.http_utils import public_base_url, read_json
from connect_server.rpc import SERVER_INFO, UNAUTHORIZED, dispatch, error_response, is_jsonrpc_message

logger = logging.getLogger(__name__)
router = APIRouter()


async def _ping_stream(request: Request, interval: float):
    # No initial event: the client opens the MCP handshake itself
    while True:
        await asyncio.sleep(interval)
        if await request.is_disconnected():
            logger.info("SSE client disconnected")
            break
        ping = {"type": "ping", "timestamp": datetime.now(timezone.utc).isoformat()}
        yield f"data: {json.dumps(ping)}\n\n"


@router.get("/sse")
async def sse(request: Request, principal: Annotated[Principal, Depends(require_principal)]):
    logger.info("SSE stream opened (client_id=%s)", principal.client_id)
    return StreamingResponse(
        _ping_stream(request, config.SSE_PING_INTERVAL_SECONDS),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "Connection": "keep-alive"},
    )


def _handle_rpc(
    request: Request,
    body: Any,
    guard: AccessGuard,
    db: Session,
    credentials: HTTPAuthorizationCredentials | None,
    access_token: str | None,
):
    request_id = body.get("id") if isinstance(body, dict) else None

    principal, token = authenticate_request(request, guard, db, credentials, access_token)
    if principal is None:
        return JSONResponse(
            error_response(UNAUTHORIZED, "Unauthorized", request_id),
            status_code=401,
            headers=challenge_headers(public_base_url(request), challenge_description(token)),
        )
    if not is_jsonrpc_message(body):
        return JSONResponse({"error": "Expected MCP JSON-RPC 2.0 message"}, status_code=400)
    logger.info("RPC %s from client_id=%s", body["method"], principal.client_id)
    return dispatch(body)


@router.post("/sse")
def sse_message(
    request: Request,
    body: Annotated[Any, Depends(read_json)],
    guard: Annotated[AccessGuard, Depends(get_guard)],
    db: Annotated[Session, Depends(get_db)],
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
    access_token: Annotated[str | None, Query()] = None,
):
    """JSON-RPC over the SSE transport. The token may also travel as access_token in the JSON body."""
    if not access_token and isinstance(body, dict) and isinstance(body.get("access_token"), str):
        access_token = body["access_token"]
    return _handle_rpc(request, body, guard, db, credentials, access_token)


@router.post("/mcp")
def mcp_message(
    request: Request,
    body: Annotated[Any, Depends(read_json)],
    guard: Annotated[AccessGuard, Depends(get_guard)],
    db: Annotated[Session, Depends(get_db)],
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
    access_token: Annotated[str | None, Query()] = None,
):
    return _handle_rpc(request, body, guard, db, credentials, access_token)


@router.get("/mcp")
def mcp_info(principal: Annotated[Principal, Depends(require_principal)]):
    return {
        **SERVER_INFO,
        "status": "ready",
        "message": "MCP server ready for JSON-RPC calls via POST",
    }
