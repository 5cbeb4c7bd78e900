"""Python logging handler that forwards records to a BatchLogShipper.

The shipper itself knows nothing about the ``logging`` module; this adapter
lets application code keep calling ``logger.info(...)`` while the shipper
sees plain severity/message/metadata triples.
"""

import logging
from collections.abc import Mapping

from log_shipper.shipper import BatchLogShipper

# Python level names that differ from the ingestion severity vocabulary
_SEVERITY_MAP = {
    "WARNING": "WARN",
    "CRITICAL": "FATAL",
}


class ShippingHandler(logging.Handler):
    """Logging handler that submits each record to a BatchLogShipper.

    Structured fields are passed with ``extra={"metadata": {...}}``::

        logger.info("Request processed", extra={"metadata": {"status": 200}})
    """

    def __init__(self, shipper: BatchLogShipper, level: int = logging.NOTSET) -> None:
        super().__init__(level)
        self._shipper = shipper

    def emit(self, record: logging.LogRecord) -> None:
        try:
            metadata = getattr(record, "metadata", None)
            metadata = dict(metadata) if isinstance(metadata, Mapping) else {}
            metadata.setdefault("logger", record.name)
            if record.exc_info and record.exc_info[0] is not None:
                metadata.setdefault("exc_type", record.exc_info[0].__name__)
                metadata.setdefault("stack", self.formatException(record.exc_info))

            severity = _SEVERITY_MAP.get(record.levelname, record.levelname)
            self._shipper.log(severity, record.getMessage(), metadata)
        except Exception:
            self.handleError(record)

    def formatException(self, exc_info) -> str:
        formatter = self.formatter or logging.Formatter()
        return formatter.formatException(exc_info)
