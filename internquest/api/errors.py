"""Error handlers for the application (JSON only)."""
import logging

from flask import jsonify
from werkzeug.exceptions import HTTPException

from internquest.core.errors import ServiceError
from internquest.core.lookup import AccountBlockedError

logger = logging.getLogger(__name__)


def register_error_handlers(app):
    """Register error handlers with the Flask app."""

    @app.errorhandler(ServiceError)
    def service_error(error):
        """Classified operation failure on an HTTP function."""
        if isinstance(error, AccountBlockedError):
            return jsonify(error.to_payload()), error.http_status
        return jsonify({"error": error.message}), error.http_status

    @app.errorhandler(400)
    def bad_request(error):
        return jsonify({"error": "Bad Request"}), 400

    @app.errorhandler(401)
    def unauthorized(error):
        return jsonify({"error": "Authentication required"}), 401

    @app.errorhandler(403)
    def forbidden(error):
        return jsonify({"error": "Forbidden"}), 403

    @app.errorhandler(404)
    def not_found(error):
        return jsonify({"error": "Not found"}), 404

    @app.errorhandler(405)
    def method_not_allowed(error):
        return jsonify({"error": "Method not allowed"}), 405

    @app.errorhandler(500)
    def internal_error(error):
        logger.error("Internal error: %s", error, exc_info=True)
        return jsonify({"error": "Internal error"}), 500

    @app.errorhandler(Exception)
    def handle_exception(error):
        """Handle uncaught exceptions."""
        # Pass through HTTP errors
        if isinstance(error, HTTPException):
            return error
        logger.error("Unhandled exception: %s", error, exc_info=True)
        return jsonify({"error": "Internal error"}), 500
