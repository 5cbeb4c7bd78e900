"""Append-only NDJSON spill file for records that could not be delivered."""

import json
import logging
import os
import threading

from log_shipper.models import LogRecord, record_to_dict

logger = logging.getLogger(__name__)


class DeadLetterWriter:
    def __init__(self, path: str):
        self._path = path
        self._lock = threading.Lock()
        directory = os.path.dirname(path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        self._file = open(path, "a", encoding="utf-8")

    @property
    def path(self) -> str:
        return self._path

    def write(self, records: list[LogRecord], reason: str) -> int:
        """Append *records* as one JSON object per line. Returns lines written."""
        if not records:
            return 0
        with self._lock:
            if self._file.closed:
                logger.error(
                    "Dead-letter file %s is closed; discarding %d logs",
                    self._path,
                    len(records),
                )
                return 0
            for record in records:
                line = record_to_dict(record)
                line["dead_letter_reason"] = reason
                self._file.write(json.dumps(line, default=str) + "\n")
            self._file.flush()
        return len(records)

    def close(self):
        with self._lock:
            if not self._file.closed:
                self._file.close()
