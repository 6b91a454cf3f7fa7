"""
In-memory store for issued tokens (access_token -> IssuedToken) with a refresh-token index.
The access token is accepted until expires_at; the entry stays refreshable until
refresh_expires_at, after which it is reclaimed lazily or by the sweeper.
"""
import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable

logger = logging.getLogger(__name__)


@dataclass
class IssuedToken:
    access_token: str
    refresh_token: str
    client_id: str
    scope: str
    issued_at: float
    expires_at: float
    refresh_expires_at: float

    def access_expired(self, now: float) -> bool:
        return now > self.expires_at

    def refresh_expired(self, now: float) -> bool:
        return now > self.refresh_expires_at

    def expires_in(self, now: float) -> int:
        return max(0, int(self.expires_at - now))


class TokenStore:
    def __init__(self, clock: Callable[[], float] = time.time):
        self._tokens: dict[str, IssuedToken] = {}
        self._refresh_index: dict[str, str] = {}  # refresh_token -> access_token
        self._lock = threading.RLock()
        self._clock = clock

    def now(self) -> float:
        return self._clock()

    def put(self, token: IssuedToken) -> None:
        with self._lock:
            self._tokens[token.access_token] = token
            self._refresh_index[token.refresh_token] = token.access_token

    def get(self, access_token: str) -> IssuedToken | None:
        """Entry for a live access token, else None."""
        with self._lock:
            token = self._tokens.get(access_token)
            if token is None:
                return None
            now = self.now()
            if token.refresh_expired(now):
                self._remove(token)
                return None
            if token.access_expired(now):
                return None
            return token

    def find_by_refresh(self, refresh_token: str) -> IssuedToken | None:
        with self._lock:
            access_token = self._refresh_index.get(refresh_token)
            if access_token is None:
                return None
            token = self._tokens.get(access_token)
            if token is None:
                # Index and map are only ever changed together under the lock
                raise RuntimeError("refresh index points at a missing token")
            if token.refresh_expired(self.now()):
                self._remove(token)
                return None
            return token

    def rotate(
        self,
        refresh_token: str,
        make_replacement: Callable[[IssuedToken], IssuedToken],
        accept: Callable[[IssuedToken], bool] | None = None,
    ) -> IssuedToken | None:
        """
        Atomically replace the pair owning refresh_token with make_replacement(old).
        Returns the new entry, or None when the refresh token is unknown, past its window,
        or refused by accept (the old pair is then left in place).
        """
        with self._lock:
            old = self.find_by_refresh(refresh_token)
            if old is None:
                return None
            if accept is not None and not accept(old):
                return None
            replacement = make_replacement(old)
            self._remove(old)
            self.put(replacement)
            return replacement

    def delete(self, access_token: str) -> bool:
        with self._lock:
            token = self._tokens.get(access_token)
            if token is None:
                return False
            self._remove(token)
            return True

    def delete_by_refresh(self, refresh_token: str) -> bool:
        with self._lock:
            access_token = self._refresh_index.get(refresh_token)
            if access_token is None:
                return False
            return self.delete(access_token)

    def purge_expired(self) -> int:
        with self._lock:
            now = self.now()
            expired = [t for t in self._tokens.values() if t.refresh_expired(now)]
            for token in expired:
                self._remove(token)
            return len(expired)

    def _remove(self, token: IssuedToken) -> None:
        self._tokens.pop(token.access_token, None)
        self._refresh_index.pop(token.refresh_token, None)

    def __len__(self) -> int:
        with self._lock:
            return len(self._tokens)
