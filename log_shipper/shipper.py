"""Batching log shipper — buffers log records and exports them in batches."""

import collections
import logging
import threading
import time
from dataclasses import dataclass
from typing import Optional

from log_shipper.config import ShipperConfig
from log_shipper.dead_letter import DeadLetterWriter
from log_shipper.exporter import HTTPExporter
from log_shipper.metrics import ShipperMetrics
from log_shipper.models import LogRecord, RecordValidationError, create_log_record
from log_shipper.timer import FlushTimer

logger = logging.getLogger(__name__)

SHUTDOWN_REASON = "undelivered at shutdown"


@dataclass
class _Pending:
    record: LogRecord
    attempts: int = 0


class BatchLogShipper:
    """Accumulates log records and ships them to an ingestion endpoint.

    A flush fires when the buffer reaches ``max_batch_size`` or when the
    single pending timer expires ``max_batch_delay`` seconds after the first
    unflushed record. Size-triggered batches are snapshotted inside
    ``submit`` but sent from a background thread, so producers never wait
    on the network. Only one batch is in flight at a time. A failed batch
    goes back to the front of the buffer, so records leave in the order they
    were submitted. Consecutive failures open an exponential backoff window
    and records that fail ``max_attempts`` times are dead-lettered.

    The exporter is any object with ``export(batch) -> bool`` and
    ``close()``; it defaults to an HTTPExporter built from the config.
    """

    def __init__(
        self,
        config: ShipperConfig,
        exporter=None,
        dead_letter: Optional[DeadLetterWriter] = None,
    ):
        self._config = config
        self._exporter = exporter or HTTPExporter(
            config.endpoint, config.access_token, config.export_timeout
        )
        if dead_letter is None and config.dead_letter_path:
            dead_letter = DeadLetterWriter(config.dead_letter_path)
        self._dead_letter = dead_letter
        self._metrics = ShipperMetrics()

        self._lock = threading.Lock()
        self._idle = threading.Condition(self._lock)
        self._buffer: collections.deque[_Pending] = collections.deque()
        self._timer = FlushTimer(self._on_timer)
        self._in_flight = 0
        self._consecutive_failures = 0
        self._retry_at = 0.0
        self._closed = False
        self._close_when_idle = False
        self._lost_at_shutdown = 0
        self._sequence = 0

        self._drain_lock = threading.Lock()
        self._drain_result: Optional[bool] = None

    # ------------------------------------------------------------------
    # Ingestion
    # ------------------------------------------------------------------

    def log(self, severity: str, message: str, metadata: Optional[dict] = None) -> bool:
        """Build a timestamped record for this service and submit it."""
        record = create_log_record(
            severity,
            message,
            self._config.service_name,
            self._config.environment,
            metadata,
        )
        return self.submit(record)

    def submit(self, record: LogRecord) -> bool:
        """Append *record* to the buffer without waiting on the network.

        When the buffer reaches ``max_batch_size`` the batch is taken before
        returning and exported in the background; otherwise a delayed flush
        is made pending. Returns False if the shipper is draining and the
        record was refused.
        """
        if not isinstance(record, LogRecord):
            raise RecordValidationError(
                f"Expected a LogRecord, got {type(record).__name__}"
            )

        with self._lock:
            if self._closed:
                logger.warning("Shipper is draining; refusing log: %s", record.message)
                self._metrics.record_dropped(1)
                return False

            self._buffer.append(_Pending(record))
            size_reached = len(self._buffer) >= self._config.max_batch_size
            backing_off = time.monotonic() < self._retry_at
            if size_reached and not backing_off and self._send_in_background("size"):
                return True
            self._timer.arm(self._config.max_batch_delay)
            return True

    # ------------------------------------------------------------------
    # Flushing
    # ------------------------------------------------------------------

    def flush(self) -> bool:
        """Export the whole buffer as one batch and wait for the outcome.

        A no-op returning False when the buffer is empty or another batch
        is still in flight. Otherwise returns the export result.
        """
        return self._flush("manual")

    def _on_timer(self):
        self._flush("timer")

    def _flush(self, trigger: str) -> bool:
        with self._lock:
            taken = self._take_batch(trigger)
        if taken is None:
            return False
        pending, seq = taken
        return self._send(pending, seq, trigger)

    def _take_batch(self, trigger: str) -> Optional[tuple[list[_Pending], int]]:
        """Snapshot and clear the buffer, cancelling the timer. Lock held.

        Once draining has started only the drain itself may take a batch.
        """
        if self._in_flight or not self._buffer:
            return None
        if self._closed and trigger != "drain":
            return None
        pending = list(self._buffer)
        self._buffer.clear()
        self._timer.cancel()
        self._in_flight = len(pending)
        self._sequence += 1
        return pending, self._sequence

    def _send_in_background(self, trigger: str) -> bool:
        """Take a batch and export it on its own thread. Lock held."""
        taken = self._take_batch(trigger)
        if taken is None:
            return False
        pending, seq = taken
        worker = threading.Thread(
            target=self._send,
            args=(pending, seq, trigger),
            name=f"log-export-{seq}",
            daemon=True,
        )
        worker.start()
        return True

    def _send(self, pending: list[_Pending], seq: int, trigger: str) -> bool:
        batch = tuple(item.record for item in pending)
        start = time.monotonic()
        success = self._export(batch)
        elapsed_ms = (time.monotonic() - start) * 1000
        self._metrics.record_export(len(batch), success, elapsed_ms, trigger)

        dropped: list[LogRecord] = []
        reason = "retry limit reached"
        with self._idle:
            self._in_flight = 0
            if success:
                self._consecutive_failures = 0
                self._retry_at = 0.0
            elif self._closed:
                # Nothing will flush a closed buffer again
                dropped = list(batch)
                reason = SHUTDOWN_REASON
            else:
                dropped = self._requeue(pending)
            self._reschedule(success)
            close_now = self._close_when_idle
            self._idle.notify_all()

        if success:
            logger.info(
                "Sent batch #%d of %d logs (%s, %.1f ms)", seq, len(batch), trigger, elapsed_ms
            )
        else:
            logger.warning(
                "Batch #%d of %d logs failed (%s); %d requeued, %d dropped",
                seq,
                len(batch),
                trigger,
                len(batch) - len(dropped),
                len(dropped),
            )
        if dropped:
            self._discard(dropped, reason)
        if close_now:
            self._close_resources()
        return success

    def _export(self, batch: tuple[LogRecord, ...]) -> bool:
        try:
            return bool(self._exporter.export(batch))
        except Exception:
            logger.exception("Exporter raised while sending %d logs", len(batch))
            return False

    def _requeue(self, pending: list[_Pending]) -> list[LogRecord]:
        """Put a failed batch back at the front of the buffer. Lock held.

        Returns the records that exhausted their attempts instead.
        """
        keep: list[_Pending] = []
        dropped: list[LogRecord] = []
        for item in pending:
            item.attempts += 1
            if self._config.max_attempts and item.attempts >= self._config.max_attempts:
                dropped.append(item.record)
            else:
                keep.append(item)

        self._buffer.extendleft(reversed(keep))
        self._metrics.record_requeued(len(keep))

        self._consecutive_failures += 1
        backoff = min(
            self._config.max_batch_delay * 2 ** (self._consecutive_failures - 1),
            self._config.max_backoff,
        )
        self._retry_at = time.monotonic() + backoff
        return dropped

    def _reschedule(self, success: bool) -> None:
        """Arrange the next flush for whatever is left in the buffer. Lock held."""
        if self._closed or not self._buffer:
            return
        if not success:
            self._timer.rearm(self._retry_at - time.monotonic())
        elif len(self._buffer) >= self._config.max_batch_size:
            self._send_in_background("size")
        else:
            self._timer.arm(self._config.max_batch_delay)

    def _discard(self, records: list[LogRecord], reason: str) -> None:
        self._metrics.record_dropped(len(records))
        if reason == SHUTDOWN_REASON:
            with self._lock:
                self._lost_at_shutdown += len(records)
        if self._dead_letter is not None:
            written = self._dead_letter.write(records, reason)
            logger.error(
                "Dead-lettered %d logs to %s (%s)", written, self._dead_letter.path, reason
            )
        else:
            logger.error("Dropped %d logs (%s)", len(records), reason)

    def _close_resources(self) -> None:
        self._exporter.close()
        if self._dead_letter is not None:
            self._dead_letter.close()

    # ------------------------------------------------------------------
    # Shutdown
    # ------------------------------------------------------------------

    def drain(self, timeout: Optional[float] = None) -> bool:
        """Refuse new records, run one final flush and wait for its outcome.

        Records that cannot be delivered are dead-lettered or dropped.
        Returns True only if every buffered record was delivered. If an
        earlier export is still running after *timeout* seconds, drain gives
        up without flushing, returns False and leaves that export to finish
        and release the exporter on its own. Only the first call does any
        work.
        """
        with self._drain_lock:
            if self._drain_result is not None:
                return self._drain_result

            with self._idle:
                self._closed = True
                self._timer.cancel()
                idle = self._idle.wait_for(lambda: not self._in_flight, timeout)
                if not idle:
                    in_flight = self._in_flight
                    self._close_when_idle = True

            if idle:
                self._flush("drain")
            else:
                logger.warning(
                    "Export of %d logs still in flight after %.1fs; not waiting for it",
                    in_flight,
                    timeout,
                )

            with self._lock:
                leftovers = [item.record for item in self._buffer]
                self._buffer.clear()

            if leftovers:
                self._discard(leftovers, SHUTDOWN_REASON)
            if idle:
                self._close_resources()

            with self._lock:
                self._drain_result = idle and self._lost_at_shutdown == 0
            logger.info("Shipper drained: %s", self._metrics.snapshot())
            return self._drain_result

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @property
    def pending_count(self) -> int:
        with self._lock:
            return len(self._buffer)

    @property
    def in_flight(self) -> bool:
        with self._lock:
            return bool(self._in_flight)

    @property
    def timer(self) -> FlushTimer:
        return self._timer

    @property
    def config(self) -> ShipperConfig:
        return self._config

    @property
    def metrics(self) -> ShipperMetrics:
        return self._metrics
