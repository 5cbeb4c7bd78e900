"""Flask demo service whose logs are shipped in batches."""

import json
import logging
import time
import traceback
from datetime import datetime, timezone
from typing import Optional

from flask import Flask, g, jsonify, request
from werkzeug.exceptions import HTTPException

from log_shipper.handler import ShippingHandler
from log_shipper.shipper import BatchLogShipper

APP_LOGGER_NAME = "signoz_demo"


def create_app(
    shipper: BatchLogShipper,
    app_logger: Optional[logging.Logger] = None,
    level: int | str = logging.DEBUG,
) -> Flask:
    """Flask application factory.

    Attaches a ShippingHandler to *app_logger* (the ``signoz_demo`` logger by
    default) so every application log line is also submitted to *shipper*.
    """
    app = Flask(__name__)

    if app_logger is None:
        app_logger = logging.getLogger(APP_LOGGER_NAME)
    for handler in list(app_logger.handlers):
        if isinstance(handler, ShippingHandler):
            app_logger.removeHandler(handler)
    app_logger.addHandler(ShippingHandler(shipper))
    app_logger.setLevel(level)

    app.config["components"] = {
        "shipper": shipper,
        "logger": app_logger,
    }

    # --- Request logging ---

    @app.before_request
    def start_timer():
        g.start_time = time.monotonic()

    @app.after_request
    def log_request(response):
        start = g.get("start_time", time.monotonic())
        duration_ms = round((time.monotonic() - start) * 1000, 3)
        app_logger.info(
            "Request processed",
            extra={
                "metadata": {
                    "method": request.method,
                    "url": request.full_path.rstrip("?"),
                    "status": response.status_code,
                    "duration": duration_ms,
                    "userAgent": request.headers.get("User-Agent"),
                    "ip": request.remote_addr,
                }
            },
        )
        return response

    @app.errorhandler(Exception)
    def handle_error(exc):
        if isinstance(exc, HTTPException):
            return exc
        app_logger.error(
            "Application error",
            extra={
                "metadata": {
                    "error": str(exc),
                    "stack": "".join(traceback.format_exception(type(exc), exc, exc.__traceback__)),
                    "method": request.method,
                    "url": request.path,
                }
            },
        )
        return jsonify({"error": "Internal Server Error"}), 500

    # --- Routes ---

    @app.route("/")
    def home():
        app_logger.info(
            "Home route accessed", extra={"metadata": {"customField": "test value"}}
        )
        return jsonify({"message": "Welcome to the SigNoz logging demo!"})

    @app.route("/api/data", methods=["POST"])
    def process_data():
        body = request.get_json(silent=True) or {}
        if not isinstance(body, dict) or not body.get("data"):
            app_logger.error(
                "Data processing failed",
                extra={"metadata": {"error": "Data is required", "payload": body}},
            )
            return jsonify({"error": "Data is required"}), 400

        app_logger.info(
            "Data processing successful",
            extra={
                "metadata": {
                    "dataSize": len(json.dumps(body)),
                    "processedAt": datetime.now(timezone.utc).isoformat(),
                }
            },
        )
        return jsonify({"success": True})

    @app.route("/error")
    def test_error():
        raise RuntimeError("Test error")

    @app.route("/health")
    def health():
        return jsonify({
            "status": "healthy",
            "pending_logs": shipper.pending_count,
            "shipper": shipper.metrics.snapshot(),
        })

    return app
