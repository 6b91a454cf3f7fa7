"""
In-memory store for pending authorizations (user_code -> PendingAuthorization).
Single source of truth for in-flight handshakes. One re-entrant lock guards the mapping;
callers that need check-then-mutate hold it through `locked()`.
Expired records are never returned: `get` evicts them lazily and the sweeper reclaims the rest.
"""
import logging
import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Callable, Iterator

from connect_server.errors import Expired, NotFound

logger = logging.getLogger(__name__)


@dataclass
class PendingAuthorization:
    user_code: str
    auth_code: str
    client_id: str
    scope: str
    created_at: float
    expires_at: float
    device_code: str | None = None
    redirect_uri: str | None = None
    state: str | None = None
    code_challenge: str | None = None
    code_challenge_method: str | None = None
    authorized: bool = False
    authorized_at: float | None = None

    @property
    def flow(self) -> str:
        return "device" if self.device_code else "redirect"

    def is_expired(self, now: float) -> bool:
        return now > self.expires_at

    def expires_in(self, now: float) -> int:
        return max(0, int(self.expires_at - now))


class AuthorizationStore:
    def __init__(self, clock: Callable[[], float] = time.time):
        self._records: dict[str, PendingAuthorization] = {}
        self._lock = threading.RLock()
        self._clock = clock

    def now(self) -> float:
        return self._clock()

    @contextmanager
    def locked(self) -> Iterator["AuthorizationStore"]:
        with self._lock:
            yield self

    def put(self, record: PendingAuthorization) -> bool:
        """
        Insert a record. A live record under the same user code is left untouched and False is
        returned so the caller can retry with a new code; an expired occupant is replaced.
        """
        with self._lock:
            existing = self._records.get(record.user_code)
            if existing is not None and not existing.is_expired(self.now()):
                logger.warning("User code collision on %s; keeping the live record", record.user_code)
                return False
            self._records[record.user_code] = record
            return True

    def get(self, user_code: str) -> PendingAuthorization:
        """Live record for user_code. Raises NotFound, or Expired after evicting a dead record."""
        with self._lock:
            record = self._records.get(user_code)
            if record is None:
                raise NotFound()
            if record.is_expired(self.now()):
                del self._records[user_code]
                logger.info("Evicted expired authorization %s on read", user_code)
                raise Expired()
            return record

    def delete(self, user_code: str) -> bool:
        with self._lock:
            return self._records.pop(user_code, None) is not None

    def find(
        self,
        predicate: Callable[[PendingAuthorization], bool],
        include_expired: bool = False,
    ) -> PendingAuthorization | None:
        """First record matching predicate. Expired records are skipped unless include_expired."""
        with self._lock:
            now = self.now()
            for record in self._records.values():
                if not include_expired and record.is_expired(now):
                    continue
                if predicate(record):
                    return record
            return None

    def purge_expired(self) -> int:
        with self._lock:
            now = self.now()
            expired = [code for code, rec in self._records.items() if rec.is_expired(now)]
            for code in expired:
                del self._records[code]
            return len(expired)

    def snapshot(self) -> list[dict]:
        """Non-secret view of live records (no auth or device codes)."""
        with self._lock:
            now = self.now()
            return [
                {
                    "user_code": rec.user_code,
                    "flow": rec.flow,
                    "authorized": rec.authorized,
                    "client_id": rec.client_id,
                    "expires_in": rec.expires_in(now),
                }
                for rec in self._records.values()
                if not rec.is_expired(now)
            ]

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)
