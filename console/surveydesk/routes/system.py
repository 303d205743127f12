# console/surveydesk/routes/system.py
"""
System health endpoint.

Reports whether the console is up and whether the REST backend answers.
"""

import time
from flask import Blueprint, current_app, jsonify

from ..extensions import backend
from ..services.api_client import BackendError

system_bp = Blueprint("system", __name__)


def check_backend_health() -> dict:
    """
    Check the backend answers HTTP at all.

    Any status code counts as reachable; only transport failures are unhealthy.
    """
    start_time = time.time()
    try:
        with backend.create_client() as client:
            status_code = client.ping()
        elapsed_ms = (time.time() - start_time) * 1000
        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": {"status_code": status_code},
        }
    except BackendError:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Backend health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Backend unreachable",
        }


@system_bp.get("/health")
def health():
    backend_health = check_backend_health()
    overall = "healthy" if backend_health["status"] == "healthy" else "degraded"
    return jsonify({"status": overall, "backend": backend_health}), 200 if overall == "healthy" else 503
