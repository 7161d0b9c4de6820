from __future__ import annotations

"""
Health endpoints for the remote print worker.

This blueprint exposes `/healthz`, reporting:
- Overall status ("ok" or "degraded")
- Connection state to the job source
- Worker thread liveness, queue size and job counts (via PrintWorker.status)
"""

from typing import Any, Dict

from flask import Blueprint, current_app

health_bp = Blueprint("health", __name__)


@health_bp.get("/healthz")
def healthz():
    status: Dict[str, Any] = {"status": "ok"}

    worker = current_app.extensions.get("print_worker")
    if worker is None:
        status["status"] = "degraded"
        status["reason"] = "no_worker"
        return status, 200

    status.update(worker.status())

    if not (status["monitor_alive"] and status["consumer_alive"]) and not status["stopping"]:
        status["status"] = "degraded"
        status["reason"] = "worker_not_running"
    elif status["connection"] != "open":
        status["status"] = "degraded"
        status["reason"] = "connection_" + status["connection"]

    return status, 200
