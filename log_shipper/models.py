"""Log record model."""

import datetime
from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Optional

SEVERITIES = frozenset(
    {"TRACE", "DEBUG", "INFO", "WARN", "WARNING", "ERROR", "FATAL", "CRITICAL"}
)


class RecordValidationError(ValueError):
    """Raised when a producer hands the shipper a malformed record."""


def _utc_now() -> str:
    return datetime.datetime.now(datetime.timezone.utc).isoformat()


@dataclass(frozen=True)
class LogRecord:
    timestamp: str
    severity: str
    message: str
    attributes: Mapping = field(default_factory=lambda: MappingProxyType({}))
    resource: Mapping = field(default_factory=lambda: MappingProxyType({}))


def create_log_record(
    severity: str,
    message: str,
    service_name: str,
    environment: str,
    metadata: Optional[Mapping] = None,
) -> LogRecord:
    """Validate producer input and build a timestamped LogRecord.

    The timestamp is assigned here, at ingestion, so records sequence by
    arrival at the shipper rather than by producer clocks.
    """
    if not isinstance(severity, str) or severity.upper() not in SEVERITIES:
        raise RecordValidationError(f"Unknown severity: {severity!r}")
    if not isinstance(message, str):
        raise RecordValidationError(
            f"Message must be a string, got {type(message).__name__}"
        )
    if metadata is None:
        metadata = {}
    if not isinstance(metadata, Mapping):
        raise RecordValidationError(
            f"Metadata must be a mapping, got {type(metadata).__name__}"
        )
    bad_keys = [key for key in metadata if not isinstance(key, str)]
    if bad_keys:
        raise RecordValidationError(f"Metadata keys must be strings: {bad_keys!r}")

    attributes = {"service": service_name, "environment": environment}
    attributes.update(metadata)

    return LogRecord(
        timestamp=_utc_now(),
        severity=severity.upper(),
        message=message,
        attributes=MappingProxyType(attributes),
        resource=MappingProxyType(
            {"service.name": service_name, "service.environment": environment}
        ),
    )


def record_to_dict(record: LogRecord) -> dict:
    """Convert a LogRecord to a plain dictionary with the wire field names."""
    return {
        "timestamp": record.timestamp,
        "severity": record.severity,
        "message": record.message,
        "attributes": dict(record.attributes),
        "resource": dict(record.resource),
    }
