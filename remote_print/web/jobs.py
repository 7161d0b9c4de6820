from __future__ import annotations

"""
Jobs endpoints for the remote print worker.

This blueprint exposes:
- GET /jobs: JSON list of jobs seen by this worker, newest first
- GET /jobs/<job_id>: JSON status for a specific job (404 if not found)
"""

from typing import Any, Dict, Optional

from flask import Blueprint, current_app

jobs_bp = Blueprint("jobs", __name__)


def _registry():
    worker = current_app.extensions.get("print_worker")
    return worker.registry if worker is not None else None


@jobs_bp.get("/jobs/<int:job_id>")
def job_status(job_id: int):
    """
    Return the JSON representation of a job by id, or 404 if not found.
    """
    registry = _registry()
    job: Optional[Dict[str, Any]] = registry.get(job_id) if registry is not None else None
    if job:
        current_app.logger.info("GET /jobs/%s ok status=%s", job_id, job.get("status"))
        return job
    current_app.logger.info("GET /jobs/%s not found", job_id)
    return {"error": "not_found"}, 404


@jobs_bp.get("/jobs")
def jobs_list():
    registry = _registry()
    jobs = registry.list() if registry is not None else []
    return {"jobs": jobs, "count": len(jobs)}
