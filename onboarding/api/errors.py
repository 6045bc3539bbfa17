"""Error handlers for the application."""
import logging

from flask import jsonify
from werkzeug.exceptions import HTTPException

from onboarding.core.exceptions import RoleServiceError

logger = logging.getLogger(__name__)


def register_error_handlers(app):
    """Register JSON error handlers with the Flask app."""

    @app.errorhandler(RoleServiceError)
    def role_service_error(error):
        """Render taxonomy errors with the status they carry."""
        if error.status >= 500:
            logger.error("Role operation failed: %s", error, exc_info=error)
        else:
            logger.info("Role operation rejected (%s): %s", error.status, error.detail)
        return jsonify(error.to_dict()), error.status

    @app.errorhandler(HTTPException)
    def http_error(error):
        """Render werkzeug HTTP errors as JSON."""
        return jsonify({
            "error": error.name,
            "status": str(error.code),
            "message": error.description,
        }), error.code

    @app.errorhandler(Exception)
    def handle_exception(error):
        """Handle uncaught exceptions."""
        logger.error("Unhandled exception: %s", error, exc_info=True)
        return jsonify({
            "error": "internalError",
            "status": "500",
            "message": "An unexpected error occurred",
        }), 500
