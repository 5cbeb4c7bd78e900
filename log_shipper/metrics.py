"""Metrics collector — thread-safe counters for batch export attempts."""

import threading
import time

FLUSH_TRIGGERS = ("size", "timer", "drain", "manual")


class ShipperMetrics:
    """Collects and reports metrics about batch export attempts."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._batches_sent: int = 0
        self._batches_failed: int = 0
        self._records_sent: int = 0
        self._records_requeued: int = 0
        self._records_dropped: int = 0
        self._exports: int = 0
        self._send_time_total_ms: float = 0.0
        self._flush_triggers: dict = {trigger: 0 for trigger in FLUSH_TRIGGERS}
        self._start_time = time.monotonic()

    def record_export(
        self,
        batch_size: int,
        success: bool,
        send_time_ms: float,
        trigger: str = "manual",
    ) -> None:
        """Record the outcome of one export attempt.

        Args:
            batch_size: Number of log records in the batch.
            success: Whether the endpoint acknowledged the batch.
            send_time_ms: Time taken by the export call, in milliseconds.
            trigger: What caused the flush — "size", "timer", "drain" or "manual".
        """
        with self._lock:
            if success:
                self._batches_sent += 1
                self._records_sent += batch_size
            else:
                self._batches_failed += 1
            self._exports += 1
            self._send_time_total_ms += send_time_ms
            self._flush_triggers[trigger] = self._flush_triggers.get(trigger, 0) + 1

    def record_requeued(self, count: int) -> None:
        with self._lock:
            self._records_requeued += count

    def record_dropped(self, count: int) -> None:
        with self._lock:
            self._records_dropped += count

    def snapshot(self) -> dict:
        """Return a point-in-time snapshot of all collected metrics."""
        with self._lock:
            avg_send = (
                self._send_time_total_ms / self._exports if self._exports else 0.0
            )

            return {
                "batches_sent": self._batches_sent,
                "batches_failed": self._batches_failed,
                "records_sent": self._records_sent,
                "records_requeued": self._records_requeued,
                "records_dropped": self._records_dropped,
                "avg_send_time_ms": avg_send,
                "flush_triggers": dict(self._flush_triggers),
                "uptime_seconds": time.monotonic() - self._start_time,
            }
