"""
app.py — Application Factory for the asset combiner service.

Assembles the combiner extension, blueprints and middleware.
Usage:
    flask --app app run
    flask --app app combiner build
"""

import os
from flask import Flask, request

from config import config_map

# Middleware & Ext
from flask_caching import Cache
from flask_compress import Compress
from cache.entry_store import init_cache
from api.middleware.rate_limiter import init_limiter
from api.middleware.error_handler import register_error_handlers

# Combiner & Services
from combiner.extension import AssetCombiner
from services.logger import setup_logging

# Blueprints
from api.routes.combine import combine_bp, init_combine_bp
from api.routes.combine_api import combine_api_bp, init_combine_api_bp

cache = Cache()


def create_app(config_name=None, config_overrides=None, registrations=()):
    """Flask application factory."""
    config_name = config_name or os.environ.get("FLASK_ENV", "development")
    app = Flask(__name__)

    # ── Configuration ──
    app.config.from_object(config_map[config_name])
    app.config.update(config_overrides or {})

    # ── Setup Logging ──
    logger = setup_logging(app.config["LOG_DIR"], app.config["LOG_LEVEL"])
    logger.info(f"Starting asset combiner ({config_name} mode)")

    # ── Initialize Extensions ──
    Compress(app)
    init_cache(app, cache)
    init_limiter(app)
    register_error_handlers(app)

    # ── Initialize Combiner ──
    combiner = AssetCombiner(cache=cache, registrations=registrations).init_app(app)

    # ── Initialize Blueprint Dependencies ──
    init_combine_bp(combiner)
    init_combine_api_bp(combiner)

    # ── Register Blueprints ──
    app.register_blueprint(combine_bp)
    app.register_blueprint(combine_api_bp)

    # Combined files in durable storage never change under the same name
    @app.after_request
    def add_cache_headers(response):
        if request.path.startswith("/static/combined/"):
            response.headers["Cache-Control"] = "public, max-age=31536000, immutable"
        return response

    return app

