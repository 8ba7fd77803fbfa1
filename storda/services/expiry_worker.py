"""Background sweep for overdue transfers and inconclusive blacklist checks.

Runs as a daemon thread started from the app lifespan. Each pass is
idempotent, so overlapping with request handlers is safe.
"""

import logging
import threading

from sqlmodel import Session

from storda.config import settings
from storda.database import engine
from storda.services import transfer_service, verification_service

logger = logging.getLogger(__name__)


class ExpiryWorker:
    """Periodically expires transfer requests and re-checks flagged IMEIs."""

    def __init__(self, interval_seconds: float | None = None):
        self.interval = interval_seconds or settings.sweep_interval_seconds
        self._thread: threading.Thread | None = None
        self._stop = threading.Event()

    def start(self) -> bool:
        """Start the sweep thread. Returns False if it is already running."""
        if self.running:
            return False
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, daemon=True, name="expiry-worker")
        self._thread.start()
        logger.info("Expiry worker started (every %ss)", self.interval)
        return True

    def stop(self):
        """Cancel the sweep and wait for the current pass to finish."""
        self._stop.set()
        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=5)
        self._thread = None
        logger.info("Expiry worker stopped")

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def run_once(self) -> dict:
        """One sweep pass. Returns counts for logging and tests."""
        with Session(engine) as session:
            expired = transfer_service.expire_overdue(session)
            rechecked = verification_service.recheck_pending(session)
        return {"expired": expired, "rechecked": rechecked}

    def _run(self):
        """Main worker loop."""
        while not self._stop.is_set():
            try:
                self.run_once()
            except Exception as e:
                logger.error("Expiry sweep failed: %s", e)
            self._stop.wait(self.interval)


# Singleton worker instance
expiry_worker = ExpiryWorker()
