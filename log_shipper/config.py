"""Configuration module — frozen dataclasses loaded from environment variables."""

import logging
import os
from dataclasses import dataclass
from typing import Optional
from urllib.parse import urlparse

logger = logging.getLogger(__name__)

DEFAULT_ENDPOINT = "https://ingest.in.signoz.cloud:443/v1/logs"


class ConfigError(ValueError):
    """Raised when the shipper or server configuration is unusable."""


@dataclass(frozen=True)
class ShipperConfig:
    endpoint: str = DEFAULT_ENDPOINT
    access_token: str = ""
    service_name: str = "signoz-logging-demo"
    environment: str = "development"
    max_batch_size: int = 50
    max_batch_delay: float = 5.0
    max_attempts: int = 5
    max_backoff: float = 60.0
    export_timeout: float = 10.0
    dead_letter_path: Optional[str] = None

    def __post_init__(self):
        if not self.endpoint:
            raise ConfigError("Ingestion endpoint is required")
        parsed = urlparse(self.endpoint)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ConfigError(f"Ingestion endpoint is not an http(s) URL: {self.endpoint!r}")
        if self.max_batch_size <= 0:
            raise ConfigError(f"max_batch_size must be positive, got {self.max_batch_size}")
        if self.max_batch_delay <= 0:
            raise ConfigError(f"max_batch_delay must be positive, got {self.max_batch_delay}")
        if self.max_attempts < 0:
            raise ConfigError(f"max_attempts must be >= 0, got {self.max_attempts}")
        if self.max_backoff < self.max_batch_delay:
            raise ConfigError(
                f"max_backoff ({self.max_backoff}) must be >= max_batch_delay "
                f"({self.max_batch_delay})"
            )
        if self.export_timeout <= 0:
            raise ConfigError(f"export_timeout must be positive, got {self.export_timeout}")


def _env_number(name: str, default, cast):
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return cast(raw)
    except ValueError:
        raise ConfigError(f"{name} must be a number, got {raw!r}") from None


def load_shipper_config() -> ShipperConfig:
    """Build ShipperConfig from environment variables with sensible defaults."""
    token = os.environ.get("SIGNOZ_TOKEN", "")
    if not token:
        logger.warning("SIGNOZ_TOKEN is not set; the ingestion endpoint may reject batches")

    return ShipperConfig(
        endpoint=os.environ.get("SIGNOZ_ENDPOINT", ShipperConfig.endpoint),
        access_token=token,
        service_name=os.environ.get("SERVICE_NAME", ShipperConfig.service_name),
        environment=os.environ.get("APP_ENV", ShipperConfig.environment),
        max_batch_size=_env_number("BATCH_SIZE", ShipperConfig.max_batch_size, int),
        max_batch_delay=_env_number("BATCH_DELAY", ShipperConfig.max_batch_delay, float),
        max_attempts=_env_number("MAX_ATTEMPTS", ShipperConfig.max_attempts, int),
        max_backoff=_env_number("MAX_BACKOFF", ShipperConfig.max_backoff, float),
        export_timeout=_env_number("EXPORT_TIMEOUT", ShipperConfig.export_timeout, float),
        dead_letter_path=os.environ.get("DEAD_LETTER_PATH") or None,
    )


@dataclass(frozen=True)
class ServerConfig:
    host: str = "0.0.0.0"
    port: int = 3000
    log_level: str = "DEBUG"


def load_server_config() -> ServerConfig:
    """Build ServerConfig from environment variables.

    The log level defaults to INFO in production and DEBUG elsewhere.
    """
    default_level = "INFO" if os.environ.get("APP_ENV") == "production" else "DEBUG"
    port = _env_number("PORT", ServerConfig.port, int)
    if not 0 < port < 65536:
        raise ConfigError(f"PORT out of range: {port}")
    return ServerConfig(
        host=os.environ.get("HOST", ServerConfig.host),
        port=port,
        log_level=os.environ.get("LOG_LEVEL", default_level).upper(),
    )
