"""
error_handler.py — Centralized error handling for the Flask app.
"""
import logging
import traceback
from flask import jsonify

from combiner.exceptions import (
    AssetNotFound,
    CombinedFileNotFound,
    ForbiddenAssetPath,
    StorageConfigError,
)

logger = logging.getLogger("combiner")


def register_error_handlers(app):
    """Register all error handlers on the Flask app."""

    @app.errorhandler(400)
    def bad_request(e):
        return jsonify({"error": "Bad Request", "message": str(e)}), 400

    @app.errorhandler(403)
    def forbidden(e):
        return jsonify({"error": "Forbidden", "message": str(e)}), 403

    @app.errorhandler(404)
    def not_found(e):
        return jsonify({"error": "Not Found", "message": str(e)}), 404

    @app.errorhandler(CombinedFileNotFound)
    def combined_file_not_found(e):
        return jsonify({"error": "Not Found", "message": str(e)}), 404

    @app.errorhandler(AssetNotFound)
    def asset_not_found(e):
        logger.warning(f"Missing asset: {e.path}")
        return jsonify({"error": "Not Found", "message": str(e)}), 404

    @app.errorhandler(ForbiddenAssetPath)
    def forbidden_asset_path(e):
        logger.warning(f"Rejected asset path: {e.path}")
        return jsonify({"error": "Forbidden", "message": str(e)}), 403

    @app.errorhandler(429)
    def rate_limited(e):
        return jsonify({
            "error": "Rate Limited",
            "message": "Too many requests. Please slow down.",
        }), 429

    @app.errorhandler(StorageConfigError)
    def storage_misconfigured(e):
        logger.error(f"Storage misconfigured: {e}")
        return jsonify({
            "error": "Service Unavailable",
            "message": "Combined asset storage is not configured.",
        }), 503

    @app.errorhandler(500)
    def internal_error(e):
        logger.error(f"Internal error: {e}\n{traceback.format_exc()}")
        return jsonify({
            "error": "Internal Server Error",
            "message": "Something went wrong.",
        }), 500
