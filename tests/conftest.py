"""Shared pytest fixtures for the batch log shipper test suite."""

import pytest

from log_shipper.config import ShipperConfig
from log_shipper.shipper import BatchLogShipper

TEST_ENDPOINT = "https://ingest.example.test/v1/logs"


@pytest.fixture
def make_config():
    """Return a factory for ShipperConfig aimed at a fake endpoint."""

    def _make_config(**overrides) -> ShipperConfig:
        defaults = {
            "endpoint": TEST_ENDPOINT,
            "access_token": "test-token",
            "service_name": "demo-service",
            "environment": "test",
            "max_batch_size": 3,
            "max_batch_delay": 30.0,
            "max_backoff": 60.0,
        }
        defaults.update(overrides)
        return ShipperConfig(**defaults)

    return _make_config


@pytest.fixture
def make_shipper(make_config):
    """Return a factory for shippers; every shipper is drained at teardown."""
    created: list[BatchLogShipper] = []

    def _make_shipper(exporter, dead_letter=None, **overrides) -> BatchLogShipper:
        shipper = BatchLogShipper(
            make_config(**overrides), exporter=exporter, dead_letter=dead_letter
        )
        created.append(shipper)
        return shipper

    yield _make_shipper

    for shipper in created:
        shipper.drain(timeout=5)
