"""
Periodic expiry sweep. Lazy eviction on read bounds what callers can see; this bounds memory
held by flows nobody ever polls again. Runs on its own daemon thread and goes through the
stores' own locks.
"""
import logging
import threading
from typing import Protocol, Sequence

logger = logging.getLogger(__name__)


class Sweepable(Protocol):
    def purge_expired(self) -> int: ...


class ExpirySweeper:
    def __init__(self, stores: Sequence[Sweepable], interval: float = 60.0):
        self.stores = list(stores)
        self.interval = interval
        self._shutdown = threading.Event()
        self._thread: threading.Thread | None = None

    def sweep_once(self) -> int:
        removed = 0
        for store in self.stores:
            removed += store.purge_expired()
        if removed:
            logger.info("Expiry sweep removed %d record(s)", removed)
        return removed

    def _run(self) -> None:
        while not self._shutdown.wait(self.interval):
            try:
                self.sweep_once()
            except Exception:
                # Keep sweeping; a failed pass is retried next interval
                logger.exception("Expiry sweep failed")

    def start(self) -> None:
        if self._thread is not None and self._thread.is_alive():
            return
        self._shutdown.clear()
        self._thread = threading.Thread(target=self._run, name="expiry-sweeper", daemon=True)
        self._thread.start()
        logger.debug("Expiry sweeper started (interval=%ss)", self.interval)

    def stop(self) -> None:
        self._shutdown.set()
        if self._thread is not None:
            self._thread.join(timeout=5)
            self._thread = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()
