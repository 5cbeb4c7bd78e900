"""JSON encoding of log batches."""

import json

from log_shipper.models import LogRecord, record_to_dict


def serialize_batch(records: tuple[LogRecord, ...] | list[LogRecord]) -> bytes:
    """Serialize records to a UTF-8 JSON array, preserving their order.

    Attribute values that JSON cannot represent natively are stringified
    rather than failing the whole batch.
    """
    payload = [record_to_dict(record) for record in records]
    return json.dumps(payload, default=str).encode("utf-8")


def deserialize_batch(data: bytes) -> list[dict]:
    """Decode bytes produced by *serialize_batch* back to a list of dicts."""
    return json.loads(data.decode("utf-8"))
