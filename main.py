"""Server entry point for the SigNoz logging demo."""

import logging
import signal
import sys
import threading

from dotenv import load_dotenv
from werkzeug.serving import make_server

from log_shipper.app import create_app
from log_shipper.config import ConfigError, load_server_config, load_shipper_config
from log_shipper.shipper import BatchLogShipper


def main():
    load_dotenv()
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    logger = logging.getLogger(__name__)
    # One line per export request is too chatty next to our own batch logs
    logging.getLogger("httpx").setLevel(logging.WARNING)

    try:
        server_config = load_server_config()
        shipper_config = load_shipper_config()
    except ConfigError as exc:
        logger.error("Invalid configuration, refusing to start: %s", exc)
        sys.exit(1)

    logging.getLogger().setLevel(server_config.log_level)

    shipper = BatchLogShipper(shipper_config)
    app = create_app(shipper, level=server_config.log_level)
    app_logger = app.config["components"]["logger"]
    shutdown_event = threading.Event()

    def handle_signal(signum, frame):
        logger.info("Received signal %d, shutting down...", signum)
        shutdown_event.set()

    signal.signal(signal.SIGINT, handle_signal)
    signal.signal(signal.SIGTERM, handle_signal)

    server = make_server(server_config.host, server_config.port, app, threaded=True)
    server_thread = threading.Thread(target=server.serve_forever, daemon=True)
    server_thread.start()
    app_logger.info(
        "Server started",
        extra={
            "metadata": {
                "port": server_config.port,
                "environment": shipper_config.environment,
                "serviceName": shipper_config.service_name,
            }
        },
    )

    try:
        while not shutdown_event.wait(timeout=1.0):
            pass
    except KeyboardInterrupt:
        logger.info("Interrupted")
    finally:
        app_logger.info("Starting graceful shutdown")
        server.shutdown()
        server_thread.join(timeout=5)
        delivered = shipper.drain(timeout=shipper_config.export_timeout)
        if not delivered:
            logger.warning("Some logs were not delivered before exit")

    sys.exit(0)


if __name__ == "__main__":
    main()
