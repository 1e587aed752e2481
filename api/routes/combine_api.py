"""
combine_api.py — /api/combine endpoints: JSON combine requests and cache admin.
"""
import logging
from flask import Blueprint, current_app, jsonify, request
from marshmallow import ValidationError

from api.middleware.rate_limiter import limiter
from api.schemas.combine_schema import CombineRequestSchema, CombineResponseSchema

logger = logging.getLogger("combiner")

combine_api_bp = Blueprint("combine_api", __name__, url_prefix="/api")

_combiner = None

request_schema = CombineRequestSchema()
response_schema = CombineResponseSchema()


def init_combine_api_bp(combiner):
    global _combiner
    _combiner = combiner


@combine_api_bp.route("/combine", methods=["POST"])
def combine_assets():
    """Combine a list of assets and return the URL of the result."""
    try:
        data = request_schema.load(request.get_json(silent=True) or {})
    except ValidationError as e:
        return jsonify({"error": "Bad Request", "errors": e.messages}), 400

    url = _combiner.prepare_request(data["assets"], data["path"])
    if url is None:
        return jsonify({"error": "Storage Unavailable",
                        "message": "Combined file could not be stored."}), 503

    return jsonify(response_schema.dump({"url": url, "assets": data["assets"]}))


@combine_api_bp.route("/combine/reset", methods=["POST"])
@limiter.limit("10/minute")
def combine_reset():
    if not _is_admin():
        return jsonify({"error": "Unauthorized"}), 403
    removed = _combiner.reset_cache()
    return jsonify({"status": "reset", "removed": removed,
                    "stats": _combiner.store.stats.to_dict()})


@combine_api_bp.route("/combine/stats")
@limiter.limit("30/minute")
def combine_stats():
    if not _is_admin():
        return jsonify({"error": "Unauthorized"}), 403
    stats = _combiner.store.stats.to_dict()
    stats["entries"] = len(_combiner.store.keys())
    return jsonify(stats)


def _is_admin():
    admin_key = request.headers.get("X-Admin-Key", "")
    return bool(admin_key) and admin_key == current_app.config.get("COMBINER_ADMIN_KEY")
