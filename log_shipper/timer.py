"""Single-shot flush timer with at most one outstanding instance."""

import logging
import threading
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class FlushTimer:
    """Wraps ``threading.Timer`` so that only one delayed call is pending.

    Callers serialize ``arm``/``rearm``/``cancel`` through their own lock;
    the timer keeps an internal lock as well so that a firing timer and a
    concurrent ``cancel`` agree on whether it is still pending.
    """

    def __init__(self, callback: Callable[[], None], name: str = "flush-timer"):
        self._callback = callback
        self._name = name
        self._lock = threading.Lock()
        self._timer: Optional[threading.Timer] = None
        self._armed_count = 0

    @property
    def pending(self) -> bool:
        with self._lock:
            return self._timer is not None

    @property
    def armed_count(self) -> int:
        with self._lock:
            return self._armed_count

    def arm(self, delay: float) -> bool:
        """Start a timer for *delay* seconds unless one is already pending.

        Returns True if a new timer was started.
        """
        with self._lock:
            if self._timer is not None:
                return False
            self._start(delay)
            return True

    def rearm(self, delay: float) -> None:
        """Replace any pending timer with a fresh one for *delay* seconds."""
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
            self._start(delay)

    def cancel(self) -> None:
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None

    def _start(self, delay: float) -> None:
        timer = threading.Timer(max(delay, 0.0), self._fire)
        timer.name = self._name
        timer.daemon = True
        self._timer = timer
        self._armed_count += 1
        timer.start()
        logger.debug("Armed %s for %.3fs", self._name, delay)

    def _fire(self) -> None:
        current = threading.current_thread()
        with self._lock:
            # A cancelled or replaced timer can still reach here if it was
            # already running when cancel() was called.
            if self._timer is not current:
                return
            self._timer = None
        self._callback()
