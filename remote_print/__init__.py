"""
Remote print worker package

This module provides a small application factory for the worker's status
endpoints:
- Configures logging (uses remote_print.core.logging)
- Creates a Flask app exposing /healthz and /jobs for an attached PrintWorker
- Optionally serves that app from a background thread next to the worker
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Optional

from flask import Flask
from werkzeug.serving import make_server

from remote_print.core.logging import configure_logging
from remote_print.web import health_bp, jobs_bp

logger = logging.getLogger(__name__)


def create_app(worker: Any = None, config_overrides: Optional[dict] = None, configure_logs: bool = False) -> Flask:
    """
    Application factory.

    Parameters:
    - worker: the PrintWorker whose state the endpoints report (may be None)
    - config_overrides: values to inject into app.config after defaults
    - configure_logs: if True, (re)configure root logging

    Returns:
    - Flask app instance
    """
    app = Flask("remote_print")
    app.url_map.strict_slashes = False

    if configure_logs:
        configure_logging()

    # Make Flask's app logger propagate to root (avoid double formatting)
    app.logger.handlers = []
    app.logger.propagate = True

    app.extensions["print_worker"] = worker
    app.register_blueprint(health_bp)
    app.register_blueprint(jobs_bp)

    if config_overrides:
        app.config.update(config_overrides)

    app.logger.info("Status app created")
    return app


def serve_in_background(app: Flask, host: str, port: int):
    """
    Serve `app` with werkzeug's threaded server on a daemon thread.
    Returns the server; call shutdown() on it to stop.
    """
    server = make_server(host, port, app, threaded=True)
    t = threading.Thread(target=server.serve_forever, daemon=True, name="status-http")
    t.start()
    logger.info("Status endpoints listening on http://%s:%d", host, server.server_port)
    return server


__all__ = ["create_app", "health_bp", "jobs_bp", "serve_in_background"]
