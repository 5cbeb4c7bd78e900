"""End-to-end tests: Flask app -> shipper -> HTTP exporter -> mock endpoint."""

import json
import logging
import threading
import uuid

import httpx
import pytest

from log_shipper.app import create_app
from log_shipper.config import ShipperConfig
from log_shipper.dead_letter import DeadLetterWriter
from log_shipper.exporter import TOKEN_HEADER, HTTPExporter
from log_shipper.shipper import BatchLogShipper
from fakes import wait_until

ENDPOINT = "https://ingest.example.test/v1/logs"


class IngestStub:
    """Mock ingestion endpoint that fails a scripted number of requests."""

    def __init__(self, failures: int = 0, status: int = 503):
        self._lock = threading.Lock()
        self._failures = failures
        self._status = status
        self.requests = 0
        self.received: list[dict] = []
        self.tokens: list[str] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        with self._lock:
            self.requests += 1
            self.tokens.append(request.headers.get(TOKEN_HEADER))
            if self._failures > 0:
                self._failures -= 1
                return httpx.Response(self._status, text="ingest unavailable")
            self.received.extend(json.loads(request.content))
        return httpx.Response(200, json={"status": "ok"})

    @property
    def messages(self) -> list[str]:
        with self._lock:
            return [entry["message"] for entry in self.received]


def _make_shipper(stub: IngestStub, dead_letter=None, **overrides) -> BatchLogShipper:
    settings = {
        "endpoint": ENDPOINT,
        "access_token": "integration-token",
        "service_name": "integration",
        "environment": "test",
        "max_batch_size": 5,
        "max_batch_delay": 30.0,
    }
    settings.update(overrides)
    config = ShipperConfig(**settings)
    exporter = HTTPExporter(
        config.endpoint,
        config.access_token,
        config.export_timeout,
        transport=httpx.MockTransport(stub),
    )
    return BatchLogShipper(config, exporter=exporter, dead_letter=dead_letter)


@pytest.fixture
def app_logger():
    logger = logging.getLogger(f"test-integration-{uuid.uuid4().hex}")
    yield logger
    for handler in list(logger.handlers):
        logger.removeHandler(handler)


def test_size_flush_reaches_endpoint():
    stub = IngestStub()
    shipper = _make_shipper(stub)
    try:
        for i in range(5):
            shipper.log("INFO", f"msg-{i}", {"seq": i})

        assert wait_until(lambda: len(stub.received) == 5)
        assert stub.requests == 1
        assert stub.messages == [f"msg-{i}" for i in range(5)]
        assert stub.tokens == ["integration-token"]
        entry = stub.received[0]
        assert entry["resource"] == {
            "service.name": "integration",
            "service.environment": "test",
        }
        assert entry["attributes"]["seq"] == 0
    finally:
        shipper.drain()


def test_timer_flush_reaches_endpoint():
    stub = IngestStub()
    shipper = _make_shipper(stub, max_batch_delay=0.2)
    try:
        shipper.log("WARN", "timer-test")
        assert wait_until(lambda: stub.requests == 1)
        assert stub.messages == ["timer-test"]
    finally:
        shipper.drain()


def test_outage_then_recovery_delivers_once_in_order():
    """A transient 503 delays delivery but loses and duplicates nothing."""
    stub = IngestStub(failures=1)
    shipper = _make_shipper(stub, max_batch_delay=0.1, max_backoff=0.1)
    try:
        for i in range(7):
            shipper.log("INFO", f"msg-{i}")

        assert wait_until(lambda: len(stub.received) == 7)
        assert stub.messages == [f"msg-{i}" for i in range(7)]
        assert shipper.metrics.snapshot()["batches_failed"] == 1
    finally:
        shipper.drain()


def test_app_requests_shipped_on_drain(app_logger):
    """Logs from served requests all leave in the shutdown drain."""
    stub = IngestStub()
    shipper = _make_shipper(stub, max_batch_size=50)
    app = create_app(shipper, app_logger=app_logger)
    client = app.test_client()

    client.get("/")
    client.post("/api/data", json={"data": [1, 2, 3]})
    client.get("/error")

    assert stub.requests == 0
    assert shipper.drain() is True
    assert stub.requests == 1
    assert stub.messages == [
        "Home route accessed",
        "Request processed",
        "Data processing successful",
        "Request processed",
        "Application error",
        "Request processed",
    ]


def test_failed_drain_spills_to_dead_letter(tmp_path):
    stub = IngestStub(failures=10, status=500)
    dead_letter = DeadLetterWriter(str(tmp_path / "dead.ndjson"))
    shipper = _make_shipper(stub, dead_letter=dead_letter, max_batch_size=50)

    shipper.log("ERROR", "will not make it")

    assert shipper.drain() is False
    assert stub.requests == 1
    lines = (tmp_path / "dead.ndjson").read_text().splitlines()
    assert json.loads(lines[0])["message"] == "will not make it"
