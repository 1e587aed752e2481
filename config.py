"""
config.py — Application configuration classes.
"""

import os

BASE_DIR = os.path.dirname(os.path.abspath(__file__))


class Config:
    """Base configuration."""
    SECRET_KEY = os.environ.get("SECRET_KEY", "combiner-dev-key")
    BASE_DIR = BASE_DIR
    DEBUG = False

    # Combiner
    COMBINER_ENABLE_ASSET_CACHE = False
    COMBINER_ENABLE_ASSET_MINIFY = None       # None: minify unless DEBUG
    COMBINER_ENABLE_ASSET_DEEP_HASHING = None  # None: deep hash when DEBUG
    COMBINER_STORAGE_DRIVER = "controller"     # "controller" or "storage"
    COMBINER_STORAGE_DISK = "local"
    COMBINER_DISKS = {
        "local": {
            "driver": "local",
            "root": os.path.join(BASE_DIR, "static", "combined"),
            "url": "/static/combined",
        },
    }
    COMBINER_ASSET_CACHE_DIR = os.path.join(BASE_DIR, "storage", "combiner", "assets")
    COMBINER_PUBLIC_PATH = BASE_DIR
    COMBINER_ALIASES = {}
    COMBINER_BUNDLES = []
    COMBINER_ADMIN_KEY = os.environ.get("COMBINER_ADMIN_KEY", "combiner-admin")

    # Cache (combiner entries are stored forever)
    CACHE_TYPE = "SimpleCache"
    CACHE_DEFAULT_TIMEOUT = 0
    CACHE_THRESHOLD = 10000
    CACHE_KEY_PREFIX = "assetc_"

    # Compression
    COMPRESS_MIMETYPES = [
        "text/css", "text/javascript",
        "application/javascript", "application/json",
    ]
    COMPRESS_MIN_SIZE = 256

    # Rate limiting
    RATELIMIT_STORAGE_URI = "memory://"
    RATELIMIT_HEADERS_ENABLED = True

    # Logging
    LOG_DIR = os.path.join(BASE_DIR, "logs")
    LOG_LEVEL = "INFO"


class DevelopmentConfig(Config):
    DEBUG = True
    LOG_LEVEL = "DEBUG"


class ProductionConfig(Config):
    DEBUG = False
    COMBINER_ENABLE_ASSET_CACHE = True
    CACHE_TYPE = "SimpleCache"


class TestingConfig(Config):
    TESTING = True
    RATELIMIT_ENABLED = False
    COMBINER_ASSET_CACHE_DIR = None
    LOG_DIR = None


config_map = {
    "development": DevelopmentConfig,
    "production": ProductionConfig,
    "testing": TestingConfig,
}
