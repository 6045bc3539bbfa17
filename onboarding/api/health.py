"""Liveness and readiness endpoints for the role service."""
import logging

from flask import Blueprint, current_app, jsonify

from onboarding.core.exceptions import RoleServiceError

logger = logging.getLogger(__name__)

bp = Blueprint("health", __name__)


@bp.route("/health")
def health_check():
    """Process is up; no dependencies are touched."""
    return ("ok", 200, {"Content-Type": "text/plain"})


@bp.route("/ready")
def readiness_check():
    """Ready once the configured role store answers a role listing."""
    store = current_app.extensions["role_store"]
    try:
        store.get_all_roles()
    except RoleServiceError as exc:
        logger.warning("Readiness check failed: role store %s: %s", type(store).__name__, exc)
        return jsonify({"status": "unavailable", "store": type(store).__name__, "message": exc.detail}), 503
    return jsonify({"status": "ready", "store": type(store).__name__})
