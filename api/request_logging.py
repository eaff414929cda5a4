"""
Logging setup and a one-line access log per request.
"""
import logging
import time

from flask import g, request

logger = logging.getLogger("api.requests")

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(app):
    logging.basicConfig(level=app.config.get("LOG_LEVEL", "INFO"), format=LOG_FORMAT)
    logging.getLogger().setLevel(app.config.get("LOG_LEVEL", "INFO"))


def register_request_logging(app):
    @app.before_request
    def start_timer():
        g.request_started_at = time.perf_counter()

    @app.after_request
    def log_request(response):
        started = g.pop("request_started_at", None)
        elapsed_ms = (time.perf_counter() - started) * 1000 if started is not None else 0.0
        logger.info(
            "HTTP %s %s responded %s in %.1fms",
            request.method,
            request.path,
            response.status_code,
            elapsed_ms,
        )
        return response
