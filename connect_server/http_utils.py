"""
Request helpers shared by the routers: public base URL and body parameters (form or JSON).
The body readers are async dependencies; handlers taking them are plain `def` and run in the threadpool.
"""
import json
import logging
from typing import Any

from fastapi import Request
from fastapi.responses import JSONResponse

from connect_server import config

logger = logging.getLogger(__name__)


def public_base_url(request: Request) -> str:
    """
    Base URL clients should use to reach this server. OAUTH_ISSUER wins; otherwise the request's
    own Host, with https forced behind known TLS-terminating proxies.
    """
    if config.ISSUER:
        return config.ISSUER
    host = request.headers.get("host") or request.url.netloc
    scheme = request.headers.get("x-forwarded-proto") or request.url.scheme
    hostname = host.split(":")[0]
    if any(hostname.endswith(suffix) for suffix in config.HTTPS_HOST_SUFFIXES):
        scheme = "https"
    return f"{scheme}://{host}"


async def read_params(request: Request) -> dict[str, str]:
    """Body parameters from a form or a JSON object. Anything else reads as empty."""
    content_type = request.headers.get("content-type", "")
    if content_type.startswith(("application/x-www-form-urlencoded", "multipart/form-data")):
        form = await request.form()
        return {k: str(v) for k, v in form.items()}
    body = await request.body()
    if not body:
        return {}
    try:
        data = json.loads(body)
    except ValueError:
        logger.debug("Ignoring unparseable request body (content-type=%s)", content_type)
        return {}
    if not isinstance(data, dict):
        return {}
    return {k: str(v) for k, v in data.items() if v is not None}


async def read_json(request: Request) -> Any:
    """Parsed JSON body, or None when it is empty or not JSON."""
    body = await request.body()
    if not body:
        return None
    try:
        return json.loads(body)
    except ValueError:
        logger.debug("Ignoring non-JSON request body")
        return None


def get_client_ip(request: Request | None) -> str | None:
    """Client IP if available (request.client.host). Forwarding headers are not trusted."""
    if request is None or request.client is None:
        return None
    return getattr(request.client, "host", None)


def rate_limited_response(retry_after: int | None) -> JSONResponse:
    return JSONResponse(
        {"error": "rate_limited", "error_description": "Too many requests"},
        status_code=429,
        headers={"Retry-After": str(retry_after or 1)},
    )
