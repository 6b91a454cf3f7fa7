"""
Authorization flow manager: creates pending authorizations for the redirect-code and
device-code handshakes, reports their status, and applies the out-of-band confirmation.
"""
import logging
from dataclasses import dataclass
from urllib.parse import quote, urlencode

from connect_server.authorization_store import AuthorizationStore, PendingAuthorization
from connect_server.codes import new_opaque_token, new_user_code, preview
from connect_server.config import (
    CODE_TTL_SECONDS,
    DEVICE_POLL_INTERVAL_SECONDS,
    USER_CODE_ATTEMPTS,
    USER_CODE_PREFIX,
)

logger = logging.getLogger(__name__)


@dataclass
class RedirectAuthorization:
    user_code: str
    expires_in: int


@dataclass
class DeviceAuthorization:
    device_code: str
    user_code: str
    verification_uri: str
    verification_uri_complete: str
    expires_in: int
    interval: int

    def to_response(self) -> dict:
        return {
            "device_code": self.device_code,
            "user_code": self.user_code,
            "verification_uri": self.verification_uri,
            "verification_uri_complete": self.verification_uri_complete,
            "expires_in": self.expires_in,
            "interval": self.interval,
        }


@dataclass
class AuthorizationStatus:
    authorized: bool
    expires_in: int
    redirect_uri: str | None = None
    auth_code: str | None = None
    state: str | None = None

    def to_response(self) -> dict:
        body = {"authorized": self.authorized, "expires_in": self.expires_in}
        if self.authorized:
            body["redirect_uri"] = self.redirect_uri
            body["auth_code"] = self.auth_code
            body["state"] = self.state
        return body


@dataclass
class Confirmation:
    success: bool
    already_authorized: bool = False
    redirect_url: str | None = None


def build_redirect_url(redirect_uri: str, auth_code: str, state: str | None) -> str:
    """Append code (and state, if any) to an already-valid absolute redirect URI."""
    params = {"code": auth_code}
    if state:
        params["state"] = state
    separator = "&" if "?" in redirect_uri else "?"
    return f"{redirect_uri}{separator}{urlencode(params, quote_via=quote)}"


class AuthorizationFlowManager:
    def __init__(
        self,
        store: AuthorizationStore,
        code_ttl: int = CODE_TTL_SECONDS,
        poll_interval: int = DEVICE_POLL_INTERVAL_SECONDS,
        user_code_prefix: str = USER_CODE_PREFIX,
    ):
        self.store = store
        self.code_ttl = code_ttl
        self.poll_interval = poll_interval
        self.user_code_prefix = user_code_prefix

    def _create(self, **fields) -> PendingAuthorization:
        now = self.store.now()
        for _ in range(USER_CODE_ATTEMPTS):
            record = PendingAuthorization(
                user_code=new_user_code(self.user_code_prefix),
                auth_code=new_opaque_token(32),
                created_at=now,
                expires_at=now + self.code_ttl,
                **fields,
            )
            if self.store.put(record):
                return record
        raise RuntimeError(f"no free user code after {USER_CODE_ATTEMPTS} attempts")

    def start_redirect_flow(
        self,
        client_id: str,
        redirect_uri: str,
        state: str | None,
        scope: str,
        code_challenge: str | None = None,
        code_challenge_method: str | None = None,
    ) -> RedirectAuthorization:
        record = self._create(
            client_id=client_id,
            redirect_uri=redirect_uri,
            state=state,
            scope=scope,
            code_challenge=code_challenge or None,
            code_challenge_method=code_challenge_method or None,
        )
        logger.info(
            "Authorization started: user_code=%s auth_code=%s client_id=%s redirect_uri=%s",
            record.user_code,
            preview(record.auth_code),
            client_id,
            redirect_uri,
        )
        return RedirectAuthorization(user_code=record.user_code, expires_in=self.code_ttl)

    def start_device_flow(self, client_id: str, scope: str, base_url: str) -> DeviceAuthorization:
        record = self._create(
            client_id=client_id,
            scope=scope,
            device_code=new_opaque_token(32),
        )
        logger.info(
            "Device authorization started: user_code=%s device_code=%s client_id=%s",
            record.user_code,
            preview(record.device_code),
            client_id,
        )
        verification_uri = f"{base_url}/device"
        return DeviceAuthorization(
            device_code=record.device_code,
            user_code=record.user_code,
            verification_uri=verification_uri,
            verification_uri_complete=f"{verification_uri}?{urlencode({'user_code': record.user_code})}",
            expires_in=self.code_ttl,
            interval=self.poll_interval,
        )

    def check_status(self, user_code: str) -> AuthorizationStatus:
        """Raises NotFound or Expired. Redirect details are only disclosed once authorized."""
        with self.store.locked():
            record = self.store.get(user_code)
            status = AuthorizationStatus(
                authorized=record.authorized,
                expires_in=record.expires_in(self.store.now()),
            )
            if record.authorized:
                status.redirect_uri = record.redirect_uri
                status.auth_code = record.auth_code
                status.state = record.state
            return status

    def confirm(self, user_code: str) -> Confirmation:
        """
        Out-of-band confirmation. Idempotent: a second confirm succeeds without mutating.
        Raises NotFound or Expired.
        """
        with self.store.locked():
            record = self.store.get(user_code)
            redirect_url = None
            if record.redirect_uri:
                redirect_url = build_redirect_url(record.redirect_uri, record.auth_code, record.state)
            if record.authorized:
                logger.info("Authorization %s already confirmed", user_code)
                return Confirmation(success=True, already_authorized=True, redirect_url=redirect_url)
            record.authorized = True
            record.authorized_at = self.store.now()
        logger.info("Authorization %s confirmed (%s flow)", user_code, record.flow)
        return Confirmation(success=True, redirect_url=redirect_url)
