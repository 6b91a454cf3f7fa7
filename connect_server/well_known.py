"""
Well-known endpoints: OAuth authorization server metadata (RFC 8414) and the MCP OAuth discovery document.
URLs are built from the request's public base URL unless OAUTH_ISSUER is set.
"""
from fastapi import APIRouter, Request

from connect_server.config import DEVICE_CODE_GRANT, SCOPES_SUPPORTED
from connect_server.http_utils import public_base_url

router = APIRouter()

GRANT_TYPES_SUPPORTED = ["authorization_code", DEVICE_CODE_GRANT, "refresh_token"]


@router.get("/.well-known/oauth-authorization-server")
def authorization_server_metadata(request: Request):
    """Authorization server metadata."""
    base = public_base_url(request)
    return {
        "issuer": base,
        "authorization_endpoint": f"{base}/oauth/authorize",
        "token_endpoint": f"{base}/oauth/token",
        "device_authorization_endpoint": f"{base}/oauth/device",
        "registration_endpoint": f"{base}/oauth/register",
        "revocation_endpoint": f"{base}/oauth/revoke",
        "response_types_supported": ["code"],
        "grant_types_supported": GRANT_TYPES_SUPPORTED,
        "token_endpoint_auth_methods_supported": ["client_secret_post", "client_secret_basic", "none"],
        "code_challenge_methods_supported": ["S256", "plain"],
        "scopes_supported": SCOPES_SUPPORTED,
    }


@router.get("/.well-known/mcp_oauth")
def mcp_oauth(request: Request):
    """Short discovery document read by MCP desktop clients."""
    base = public_base_url(request)
    return {
        "authorization_endpoint": f"{base}/oauth/authorize",
        "token_endpoint": f"{base}/oauth/token",
        "device_authorization_endpoint": f"{base}/oauth/device",
        "supported_response_types": ["code"],
        "grant_types_supported": GRANT_TYPES_SUPPORTED,
    }
