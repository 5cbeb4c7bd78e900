"""HTTP exporter — posts one batch of log records to the ingestion endpoint."""

import logging
from typing import Optional

import httpx

from log_shipper.models import LogRecord
from log_shipper.serializer import serialize_batch

logger = logging.getLogger(__name__)

TOKEN_HEADER = "signoz-access-token"


class HTTPExporter:
    """Sends batches as JSON arrays over HTTP(S).

    ``export`` never raises for transport problems: every failure is logged
    and reported as ``False`` so the caller can requeue the batch.
    """

    def __init__(
        self,
        endpoint: str,
        access_token: str = "",
        timeout: float = 10.0,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self._endpoint = endpoint
        headers = {"Content-Type": "application/json"}
        if access_token:
            headers[TOKEN_HEADER] = access_token
        self._client = httpx.Client(
            headers=headers, timeout=timeout, transport=transport
        )

    @property
    def endpoint(self) -> str:
        return self._endpoint

    def export(self, batch: tuple[LogRecord, ...]) -> bool:
        """POST *batch* as a single request. Returns True on a 2xx response."""
        body = serialize_batch(batch)
        try:
            response = self._client.post(self._endpoint, content=body)
        except httpx.TimeoutException as exc:
            logger.error("Timed out sending %d logs to %s: %s", len(batch), self._endpoint, exc)
            return False
        except httpx.HTTPError as exc:
            logger.error("Error sending %d logs to %s: %s", len(batch), self._endpoint, exc)
            return False

        if not response.is_success:
            logger.error(
                "Ingestion endpoint rejected %d logs: HTTP %d %s",
                len(batch),
                response.status_code,
                response.text[:200],
            )
            return False

        logger.debug("Exported %d logs (%d bytes)", len(batch), len(body))
        return True

    def close(self):
        """Close the underlying HTTP client."""
        self._client.close()
