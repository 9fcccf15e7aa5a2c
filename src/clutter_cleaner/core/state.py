"""Processing state machine guarding scans against overlap."""

import logging
import threading

from clutter_cleaner.core.models import ScanProgress, ScanState

logger = logging.getLogger(__name__)


class ProcessingStateMachine:
    """
    Owns the scan state and progress counters.

    Every transition happens under one lock, so two callers racing to start
    a scan cannot both succeed.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._state = ScanState.IDLE
        self._total = 0
        self._completed = 0
        self._failed = 0

    @property
    def state(self) -> ScanState:
        with self._lock:
            return self._state

    @property
    def is_processing(self) -> bool:
        with self._lock:
            return self._state in (ScanState.SCANNING, ScanState.CANCELLING)

    @property
    def cancel_requested(self) -> bool:
        with self._lock:
            return self._state is ScanState.CANCELLING

    def begin_authorizing(self) -> bool:
        """IDLE -> AUTHORIZING. Returns False if busy."""
        with self._lock:
            if self._state is not ScanState.IDLE:
                logger.debug(f"Cannot authorize while {self._state.value}")
                return False
            self._state = ScanState.AUTHORIZING
            return True

    def end_authorizing(self) -> None:
        """AUTHORIZING -> IDLE."""
        with self._lock:
            if self._state is ScanState.AUTHORIZING:
                self._state = ScanState.IDLE

    def try_begin_scan(self) -> bool:
        """
        IDLE -> SCANNING.

        Returns:
            False when a scan (or authorization) is already under way
        """
        with self._lock:
            if self._state is not ScanState.IDLE:
                logger.debug(f"Scan not started: state is {self._state.value}")
                return False
            self._state = ScanState.SCANNING
            self._total = 0
            self._completed = 0
            self._failed = 0
            return True

    def request_cancel(self) -> bool:
        """SCANNING -> CANCELLING. Returns False if no scan is running."""
        with self._lock:
            if self._state is not ScanState.SCANNING:
                return False
            self._state = ScanState.CANCELLING
            logger.info("Cancellation requested")
            return True

    def finish(self) -> None:
        """Any state -> IDLE."""
        with self._lock:
            self._state = ScanState.IDLE

    def set_total(self, total: int) -> None:
        with self._lock:
            self._total = total

    def record(self, ok: bool) -> None:
        with self._lock:
            self._completed += 1
            if not ok:
                self._failed += 1

    @property
    def progress(self) -> ScanProgress:
        with self._lock:
            return ScanProgress(
                total=self._total, completed=self._completed, failed=self._failed
            )
