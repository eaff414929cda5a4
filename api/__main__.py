"""
Development server: `python -m api`.
Production deployments serve create_app() from a WSGI server instead.
"""
import logging
import os

from . import create_app

logger = logging.getLogger(__name__)

app = create_app()


def _flag(name: str, default: bool) -> bool:
    return os.getenv(name, str(default)).lower() in ("1", "true", "yes")


if __name__ == "__main__":
    host = os.getenv("FLASK_RUN_HOST", "127.0.0.1")
    port = int(os.getenv("FLASK_RUN_PORT", "8000"))
    debug = _flag("FLASK_DEBUG", app.config.get("DEBUG", False))
    logger.info("Forum API (%s) listening on %s:%d", app.config["APP_ENV"], host, port)
    app.run(host=host, port=port, debug=debug)
