"""
Token issuer: redeems confirmed authorizations for token pairs, rotates pairs on refresh,
and revokes them. Redemption deletes the pending record under the store lock, so a code can
be redeemed once no matter how many requests race for it.
"""
import logging
from dataclasses import dataclass
from typing import Callable

from connect_server.authorization_store import AuthorizationStore
from connect_server.codes import new_opaque_token, preview
from connect_server.config import DEFAULT_SCOPE, REFRESH_TOKEN_TTL_SECONDS, TOKEN_TTL_SECONDS
from connect_server.errors import AuthorizationPending, ExpiredToken, InvalidGrant
from connect_server.token_store import IssuedToken, TokenStore

logger = logging.getLogger(__name__)

# client_id -> whether that client must authenticate to use what was issued to it
ClientPredicate = Callable[[str], bool]


@dataclass
class TokenPair:
    access_token: str
    refresh_token: str
    expires_in: int
    scope: str
    client_id: str
    token_type: str = "Bearer"

    def to_response(self) -> dict:
        return {
            "access_token": self.access_token,
            "refresh_token": self.refresh_token,
            "token_type": self.token_type,
            "expires_in": self.expires_in,
            "scope": self.scope,
        }


class TokenIssuer:
    def __init__(
        self,
        authorizations: AuthorizationStore,
        tokens: TokenStore,
        token_ttl: int = TOKEN_TTL_SECONDS,
        refresh_ttl: int = REFRESH_TOKEN_TTL_SECONDS,
        default_scope: str = DEFAULT_SCOPE,
    ):
        self.authorizations = authorizations
        self.tokens = tokens
        self.token_ttl = token_ttl
        self.refresh_ttl = refresh_ttl
        self.default_scope = default_scope

    def _mint(self, client_id: str, scope: str) -> IssuedToken:
        now = self.tokens.now()
        return IssuedToken(
            access_token=new_opaque_token(32),
            refresh_token=new_opaque_token(32),
            client_id=client_id,
            scope=scope or self.default_scope,
            issued_at=now,
            expires_at=now + self.token_ttl,
            refresh_expires_at=now + max(self.refresh_ttl, self.token_ttl),
        )

    def _pair(self, token: IssuedToken) -> TokenPair:
        return TokenPair(
            access_token=token.access_token,
            refresh_token=token.refresh_token,
            expires_in=token.expires_in(self.tokens.now()),
            scope=token.scope,
            client_id=token.client_id,
        )

    def _bound_elsewhere(self, owner: str, client_id: str | None, requires_auth: ClientPredicate | None) -> bool:
        """True when owner is a client that must authenticate and the caller is not that client."""
        if requires_auth is None or client_id == owner:
            return False
        return requires_auth(owner)

    def exchange_authorization_code(
        self,
        code: str | None,
        client_id: str | None = None,
        requires_auth: ClientPredicate | None = None,
    ) -> TokenPair:
        """
        Redeem an authorization code from a confirmed redirect flow.
        Unknown, unconfirmed and expired codes all raise the same InvalidGrant, as does a code
        started by a confidential client and presented by anyone else. client_id must already be
        authenticated; requires_auth tells whether a client_id belongs to a confidential client.
        """
        if not code:
            raise InvalidGrant()
        with self.authorizations.locked():
            record = self.authorizations.find(lambda r: r.auth_code == code and r.authorized)
            if record is None:
                logger.info("Authorization code rejected: %s", preview(code))
                raise InvalidGrant()
            if self._bound_elsewhere(record.client_id, client_id, requires_auth):
                logger.info("Authorization code for %s presented by client_id=%s", record.user_code, client_id)
                raise InvalidGrant()
            self.authorizations.delete(record.user_code)
        if client_id and client_id != record.client_id:
            logger.debug("client_id %s differs from the one that started %s", client_id, record.user_code)
        token = self._mint(record.client_id or client_id or "", record.scope)
        self.tokens.put(token)
        logger.info("Authorization code exchanged for %s (client_id=%s)", record.user_code, token.client_id)
        return self._pair(token)

    def exchange_device_code(
        self,
        device_code: str | None,
        client_id: str | None = None,
        requires_auth: ClientPredicate | None = None,
    ) -> TokenPair:
        """
        Poll a device authorization. InvalidGrant when unknown or bound to another confidential
        client, ExpiredToken when the record is still held but dead (it is evicted),
        AuthorizationPending until the user confirms.
        """
        if not device_code:
            raise InvalidGrant()
        with self.authorizations.locked():
            record = self.authorizations.find(lambda r: r.device_code == device_code, include_expired=True)
            if record is None:
                logger.info("Device code rejected: %s", preview(device_code))
                raise InvalidGrant()
            if self._bound_elsewhere(record.client_id, client_id, requires_auth):
                logger.info("Device code for %s presented by client_id=%s", record.user_code, client_id)
                raise InvalidGrant()
            if record.is_expired(self.authorizations.now()):
                self.authorizations.delete(record.user_code)
                logger.info("Device code for %s expired", record.user_code)
                raise ExpiredToken()
            if not record.authorized:
                raise AuthorizationPending()
            self.authorizations.delete(record.user_code)
        token = self._mint(record.client_id, record.scope)
        self.tokens.put(token)
        logger.info("Device code exchanged for %s (client_id=%s)", record.user_code, token.client_id)
        return self._pair(token)

    def refresh(
        self,
        refresh_token: str | None,
        client_id: str | None = None,
        requires_auth: ClientPredicate | None = None,
    ) -> TokenPair:
        """Replace the pair owning refresh_token with a fresh one; the old pair stops working at once."""
        if not refresh_token:
            raise InvalidGrant()
        token = self.tokens.rotate(
            refresh_token,
            lambda old: self._mint(old.client_id, old.scope),
            accept=lambda old: not self._bound_elsewhere(old.client_id, client_id, requires_auth),
        )
        if token is None:
            logger.info("Refresh token rejected: %s", preview(refresh_token))
            raise InvalidGrant()
        logger.info("Token pair rotated (client_id=%s)", token.client_id)
        return self._pair(token)

    def revoke(self, token: str | None) -> bool:
        """Delete the entry matching an access or refresh token. Unknown tokens are not an error."""
        if not token:
            return False
        if self.tokens.delete(token):
            logger.info("Access token revoked: %s", preview(token))
            return True
        if self.tokens.delete_by_refresh(token):
            logger.info("Refresh token revoked: %s", preview(token))
            return True
        return False
