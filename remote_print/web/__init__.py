"""
Web module for the remote print worker.

Exposes blueprints for:
- Health endpoint: health_bp
- Jobs endpoints: jobs_bp
"""

from .health import health_bp
from .jobs import jobs_bp

__all__ = ["health_bp", "jobs_bp"]
