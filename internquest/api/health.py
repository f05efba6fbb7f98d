"""Health check endpoints."""
from flask import Blueprint

bp = Blueprint("health", __name__)


@bp.route("/health")
def health_check():
    """Liveness: the process is serving requests."""
    return ("ok", 200, {"Content-Type": "text/plain"})


@bp.route("/ready")
def readiness_check():
    """Readiness: collaborators are wired."""
    from flask import current_app

    if current_app.config.get("SERVICES") is None:
        return ("not ready", 503, {"Content-Type": "text/plain"})
    return ("ready", 200, {"Content-Type": "text/plain"})
