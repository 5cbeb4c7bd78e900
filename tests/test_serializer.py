"""Tests for the batch serializer."""

import datetime
import json

from log_shipper.models import create_log_record
from log_shipper.serializer import deserialize_batch, serialize_batch


def _records(count: int):
    return tuple(
        create_log_record("INFO", f"log-{i}", "svc", "test", {"seq": i})
        for i in range(count)
    )


def test_serialize_is_json_array_in_order():
    data = serialize_batch(_records(5))

    decoded = json.loads(data)
    assert isinstance(decoded, list)
    assert [entry["message"] for entry in decoded] == [f"log-{i}" for i in range(5)]


def test_serialize_empty_batch():
    assert serialize_batch(()) == b"[]"


def test_non_json_values_are_stringified():
    when = datetime.datetime(2024, 1, 15, 10, 30)
    record = create_log_record("INFO", "hi", "svc", "test", {"when": when})

    decoded = deserialize_batch(serialize_batch([record]))
    assert decoded[0]["attributes"]["when"] == str(when)


def test_unicode_round_trip():
    record = create_log_record("INFO", "héllo wörld ✓", "svc", "test")
    decoded = deserialize_batch(serialize_batch([record]))
    assert decoded[0]["message"] == "héllo wörld ✓"
