"""
Connect server: account-linking authorization broker in front of an MCP JSON-RPC surface.
Redirect-code and device-code flows, token issue/refresh/revoke, bearer guard on /sse and /mcp.
Stores are in memory and built per app in create_app(); the lifespan starts and stops the sweeper.
"""
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Callable

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from connect_server import config
from connect_server.audit import router as audit_router
from connect_server.authorization_store import AuthorizationStore
from connect_server.authorize import router as authorize_router
from connect_server.database import init_db, session_scope
from connect_server.device import router as device_router
from connect_server.errors import OAuthError
from connect_server.flows import AuthorizationFlowManager
from connect_server.guard import AccessGuard
from connect_server.issuer import TokenIssuer
from connect_server.mcp_endpoints import router as mcp_router
from connect_server.registration import router as registration_router
from connect_server.revoke import router as revoke_router
from connect_server.seed import seed_from_env
from connect_server.sweeper import ExpirySweeper
from connect_server.token_endpoint import router as token_router
from connect_server.token_store import TokenStore
from connect_server.well_known import router as well_known_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create tables, seed a client from env, run the expiry sweeper for the app's lifetime."""
    init_db()
    with session_scope() as db:
        seed_from_env(db)
    app.state.sweeper.start()
    try:
        yield
    finally:
        app.state.sweeper.stop()


async def oauth_error_handler(request: Request, exc: OAuthError) -> JSONResponse:
    return JSONResponse(exc.to_dict(), status_code=exc.status_code)


def create_app(
    clock: Callable[[], float] | None = None,
    static_api_key: str | None = config.STATIC_API_KEY,
    enable_debug: bool = config.ENABLE_DEBUG_ENDPOINTS,
    sweep_interval: float = config.SWEEP_INTERVAL_SECONDS,
) -> FastAPI:
    app = FastAPI(title="Connect Server", version=config.SERVER_VERSION, lifespan=lifespan)

    kwargs = {"clock": clock} if clock is not None else {}
    authorizations = AuthorizationStore(**kwargs)
    tokens = TokenStore(**kwargs)
    app.state.authorizations = authorizations
    app.state.tokens = tokens
    app.state.flows = AuthorizationFlowManager(authorizations)
    app.state.issuer = TokenIssuer(authorizations, tokens)
    app.state.guard = AccessGuard(tokens, static_api_key)
    app.state.sweeper = ExpirySweeper([authorizations, tokens], interval=sweep_interval)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["WWW-Authenticate"],
    )
    app.add_exception_handler(OAuthError, oauth_error_handler)

    app.include_router(well_known_router, tags=["well-known"])
    app.include_router(authorize_router, tags=["authorize"])
    app.include_router(device_router, tags=["device"])
    app.include_router(token_router, tags=["token"])
    app.include_router(revoke_router, tags=["revoke"])
    app.include_router(registration_router, tags=["registration"])
    app.include_router(mcp_router, tags=["mcp"])

    @app.get("/")
    def index():
        return {
            "name": config.SERVER_NAME,
            "version": config.SERVER_VERSION,
            "endpoints": {
                "sse": "/sse (requires access_token)",
                "mcp": "/mcp (requires bearer token)",
                "oauth_discovery": "/.well-known/mcp_oauth",
                "authorize": "/oauth/authorize",
                "device": "/oauth/device",
                "token": "/oauth/token",
            },
        }

    @app.get("/health")
    def health():
        """Health check endpoint."""
        return {
            "status": "ok",
            "service": "connect_server",
            "pending_authorizations": len(app.state.authorizations),
            "issued_tokens": len(app.state.tokens),
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    if enable_debug:
        logger.warning("Debug endpoints enabled: /debug/pending and /audit expose live user codes")

        @app.get("/debug/pending")
        def debug_pending():
            return {"pending": app.state.authorizations.snapshot()}

        app.include_router(audit_router)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "connect_server.main:app",
        host=config.HOST,
        port=config.PORT,
    )
