"""
Connect server configuration. Everything is read from the environment with development defaults.
No secrets in this file except the well-known development fallback key; set STATIC_API_KEY in production.
"""
import os

# Public base URL. Empty = derive from the request's own host (see http_utils.public_base_url)
ISSUER = os.environ.get("OAUTH_ISSUER", "").rstrip("/")

# Long-lived key accepted by the access guard alongside issued tokens
STATIC_API_KEY = os.environ.get("STATIC_API_KEY", "csk_dev_0000000000000000000000000000")

# Human-facing user codes look like LINK-7QX4
USER_CODE_PREFIX = os.environ.get("USER_CODE_PREFIX", "LINK")
USER_CODE_LENGTH = 4
# How many fresh user codes to try before giving up when a live code is already taken
USER_CODE_ATTEMPTS = 5

# Pending authorization lifetime (seconds)
CODE_TTL_SECONDS = int(os.environ.get("OAUTH_CODE_TTL_SECONDS", "600"))

# Access token lifetime (seconds). Default 7 days.
TOKEN_TTL_SECONDS = int(os.environ.get("OAUTH_TOKEN_TTL_SECONDS", str(7 * 24 * 3600)))

# Refresh window (seconds). An entry stays refreshable this long after issuance. Default 30 days.
REFRESH_TOKEN_TTL_SECONDS = int(os.environ.get("OAUTH_REFRESH_TOKEN_TTL_SECONDS", str(30 * 24 * 3600)))

# Background sweep of expired records (seconds)
SWEEP_INTERVAL_SECONDS = float(os.environ.get("OAUTH_SWEEP_INTERVAL_SECONDS", "60"))

# Suggested device polling interval returned by /oauth/device (seconds)
DEVICE_POLL_INTERVAL_SECONDS = int(os.environ.get("OAUTH_DEVICE_POLL_INTERVAL_SECONDS", "5"))

DEVICE_CODE_GRANT = "urn:ietf:params:oauth:grant-type:device_code"

DEFAULT_SCOPE = os.environ.get("OAUTH_DEFAULT_SCOPE", "read:health_data")
SCOPES_SUPPORTED = [s for s in os.environ.get("OAUTH_SCOPES_SUPPORTED", DEFAULT_SCOPE).split() if s]

# Registered clients and audit rows. In-memory SQLite by default; nothing survives a restart.
DATABASE_URL = os.environ.get("CONNECT_DATABASE_URL", "sqlite:///:memory:")

# Rate limiting: per-IP, per minute
RATE_LIMIT_CONFIRM_PER_MINUTE = int(os.environ.get("OAUTH_RATE_LIMIT_CONFIRM_PER_MINUTE", "20"))
RATE_LIMIT_TOKEN_PER_MINUTE = int(os.environ.get("OAUTH_RATE_LIMIT_TOKEN_PER_MINUTE", "60"))

# Hosts that sit behind a TLS-terminating proxy; base URLs for them are always https
HTTPS_HOST_SUFFIXES = tuple(
    s.strip() for s in os.environ.get("HTTPS_HOST_SUFFIXES", "railway.app").split(",") if s.strip()
)

# /debug/pending and /audit. Off by default: they expose live user codes.
ENABLE_DEBUG_ENDPOINTS = os.environ.get("ENABLE_DEBUG_ENDPOINTS", "false").lower() in ("1", "true", "yes")

# Keep-alive comment interval on the SSE admission stream (seconds)
SSE_PING_INTERVAL_SECONDS = float(os.environ.get("SSE_PING_INTERVAL_SECONDS", "60"))

SERVER_NAME = os.environ.get("SERVER_NAME", "Connect MCP Server")
SERVER_VERSION = "1.0.0"
MCP_PROTOCOL_VERSION = "2024-11-05"

HOST = os.environ.get("HOST", "127.0.0.1")
PORT = int(os.environ.get("PORT", "3001"))
