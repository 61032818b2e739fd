"""Background thread that purges expired history on a fixed interval."""

from __future__ import annotations

import logging
import threading
from datetime import timedelta
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class RetentionScheduler:
    """Run ``sweep`` every ``interval`` until stopped."""

    join_timeout = 10.0

    def __init__(self, sweep: Callable[[], object], interval: timedelta) -> None:
        self._sweep = sweep
        self._interval = interval
        self._lock = threading.Lock()
        self._thread: Optional[threading.Thread] = None
        self._stop_event: Optional[threading.Event] = None

    def start(self) -> None:
        with self._lock:
            if self._thread and self._thread.is_alive():
                return
            stop_event = threading.Event()
            thread = threading.Thread(
                target=self._run_loop,
                args=(stop_event,),
                name="history-retention",
                daemon=True,
            )
            self._thread = thread
            self._stop_event = stop_event
            thread.start()
            logger.info(
                "Retention sweep armed every %.0f seconds.",
                self._interval.total_seconds(),
            )

    def stop(self) -> None:
        thread: Optional[threading.Thread] = None
        with self._lock:
            if not self._thread or not self._stop_event:
                return
            self._stop_event.set()
            thread = self._thread
            self._thread = None
            self._stop_event = None
        if thread and thread is not threading.current_thread():
            thread.join(timeout=self.join_timeout)
            if thread.is_alive():
                logger.warning(
                    "Retention sweep still running after %.1f seconds; leaving it to exit.",
                    self.join_timeout,
                )
            else:
                logger.info("Retention sweep stopped.")

    def is_running(self) -> bool:
        with self._lock:
            return bool(self._thread and self._thread.is_alive())

    def _run_loop(self, stop_event: threading.Event) -> None:
        interval = self._interval.total_seconds()
        # Sleep first; the startup sweep is run by the owner.
        while not stop_event.wait(interval):
            try:
                self._sweep()
            except Exception:
                logger.exception("Retention sweep failed; retrying next interval.")
