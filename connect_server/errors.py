"""
Error taxonomy for the authorization core. Every member is recoverable by the caller
(retry, re-initiate the flow, or keep polling). The `error` attribute is the OAuth error code
returned on the wire.
"""


class OAuthError(Exception):
    error = "server_error"
    status_code = 400
    description = ""

    def __init__(self, description: str | None = None):
        if description is not None:
            self.description = description
        super().__init__(self.description or self.error)

    def to_dict(self) -> dict:
        body = {"error": self.error}
        if self.description:
            body["error_description"] = self.description
        return body


class NotFound(OAuthError):
    """Unknown code. Says nothing about whether it ever existed."""

    error = "not_found"
    status_code = 404
    description = "Code not found"


class Expired(OAuthError):
    """The record existed but is past its TTL; it has been evicted."""

    error = "expired"
    status_code = 404
    description = "Code expired"


class InvalidGrant(OAuthError):
    # Wrong value and wrong state are deliberately the same answer
    error = "invalid_grant"


class AuthorizationPending(OAuthError):
    error = "authorization_pending"
    description = "The user has not confirmed this code yet"


class ExpiredToken(OAuthError):
    error = "expired_token"
    description = "The device code has expired"


class UnsupportedGrantType(OAuthError):
    error = "unsupported_grant_type"


class InvalidRequest(OAuthError):
    error = "invalid_request"


class InvalidClient(OAuthError):
    error = "invalid_client"
    status_code = 401
    description = "Invalid client credentials"
