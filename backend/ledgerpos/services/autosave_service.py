"""
Draft Autosave Coordinator

WHY: A terminal that reloads mid-sale must be able to recover its cart. After
a quiet period with no cart mutations, the current session is written as a
DRAFT under its stable transaction id.

DESIGN PRINCIPLES:
- Debounced: every mutation restarts the timer; one write per quiet period
- Idempotent: writes are upserts by id, never inserts
- Empty carts are never written, so a timer firing after checkout (session
  already reset) writes nothing
- Failed writes are logged and retried on the next cycle; the session is
  never touched by the coordinator
"""

from __future__ import annotations

import logging
import threading
from typing import Callable

from .document_store import PersistenceFailure
from .pos_session import PosSession
from ledgerpos.time_utils import to_utc_z, utcnow


logger = logging.getLogger(__name__)

DEFAULT_DEBOUNCE_SECONDS = 1.5
MAX_CONSECUTIVE_RETRIES = 3


class AutosaveCoordinator:
    """
    Debounced background writer for one PosSession.

    Args:
        session: the terminal's session; the coordinator registers itself
            as a mutation listener
        writer: callable taking a session snapshot dict, returning the
            written record or None when nothing was written
        debounce_seconds: quiet period before a write
        timer_factory: threading.Timer compatible factory (tests inject a
            manual timer)
    """

    def __init__(
        self,
        session: PosSession,
        writer: Callable[[dict], object],
        debounce_seconds: float = DEFAULT_DEBOUNCE_SECONDS,
        timer_factory: Callable = threading.Timer,
    ):
        self.session = session
        self.writer = writer
        self.debounce_seconds = debounce_seconds
        self.timer_factory = timer_factory
        self._timer = None
        self._lock = threading.Lock()
        self._retries = 0

        self.save_count = 0
        self.failure_count = 0
        self.last_saved_at = None
        self.last_saved_id: str | None = None
        self.last_error: str | None = None

        session.add_listener(self._on_mutation)

    # =========================================================================
    # SCHEDULING
    # =========================================================================

    def _on_mutation(self, session: PosSession) -> None:
        self._retries = 0
        self.schedule()

    def schedule(self) -> None:
        """(Re)start the debounce timer."""
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
            timer = self.timer_factory(self.debounce_seconds, self._fire)
            timer.daemon = True
            self._timer = timer
            timer.start()

    def cancel(self) -> None:
        """Stop any pending write. Drafts already written stay in the store."""
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None

    @property
    def pending(self) -> bool:
        return self._timer is not None

    # =========================================================================
    # WRITING
    # =========================================================================

    def _fire(self) -> None:
        with self._lock:
            self._timer = None
        self.flush()

    def flush(self) -> bool:
        """
        Write the current snapshot now.

        Returns True when a draft was written. On failure, schedules a retry
        unless the retry budget for this quiet period is spent.
        """
        snapshot = self.session.snapshot()
        if not snapshot["lines"]:
            return False

        try:
            record = self.writer(snapshot)
        except PersistenceFailure as exc:
            self._record_failure(snapshot["transaction_id"], str(exc))
            return False
        except Exception as exc:
            logger.exception("Unexpected error autosaving draft %s", snapshot["transaction_id"])
            self._record_failure(snapshot["transaction_id"], str(exc))
            return False

        self._retries = 0
        if record is None:
            return False
        self.save_count += 1
        self.last_saved_at = utcnow()
        self.last_saved_id = snapshot["transaction_id"]
        self.last_error = None
        logger.debug("Draft %s autosaved", snapshot["transaction_id"])
        return True

    def _record_failure(self, tx_id: str | None, message: str) -> None:
        self.failure_count += 1
        self.last_error = message
        logger.warning("Draft autosave for %s failed: %s", tx_id, message)
        if self._retries < MAX_CONSECUTIVE_RETRIES:
            self._retries += 1
            self.schedule()

    def status(self) -> dict:
        return {
            "pending": self.pending,
            "save_count": self.save_count,
            "failure_count": self.failure_count,
            "last_saved_id": self.last_saved_id,
            "last_saved_at": to_utc_z(self.last_saved_at),
            "last_error": self.last_error,
        }
