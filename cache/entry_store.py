"""
entry_store.py — Combination cache entries kept in Flask-Caching.

Every combined request is recorded as a CacheEntry under
``combiner.<key>``. Entries never expire; the list of stored keys is kept
under ``combiner.index`` so the whole cache can be reset at once.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone

from marshmallow import Schema, ValidationError, fields, post_load, validate

logger = logging.getLogger("combiner")

KEY_PREFIX = "combiner."
INDEX_KEY = "combiner.index"

MIMETYPES = {
    "css": "text/css",
    "js": "application/javascript",
}


@dataclass(frozen=True)
class CacheEntry:
    """Resolved state of one combination request."""

    version: str
    etag: str
    last_modified: int
    files: tuple
    path: str
    extension: str

    @property
    def kind(self):
        return "stylesheet" if self.extension == "css" else "script"

    @property
    def mimetype(self):
        return MIMETYPES["css"] if self.extension == "css" else MIMETYPES["js"]


class CacheEntrySchema(Schema):
    version = fields.String(required=True)
    etag = fields.String(required=True)
    last_modified = fields.Integer(required=True, data_key="lastMod")
    files = fields.List(fields.String(), required=True)
    path = fields.String(required=True)
    extension = fields.String(required=True, validate=validate.OneOf(["js", "css"]))

    @post_load
    def make_entry(self, data, **kwargs):
        data["files"] = tuple(data["files"])
        return CacheEntry(**data)


# ── Cache stats tracking ──────────────────────────────────────────────────

class CacheStats:
    """Simple hit/miss counter (in-memory, resets on restart)."""

    def __init__(self):
        self.hits = 0
        self.misses = 0
        self.writes = 0
        self.not_modified = 0
        self.resets = 0
        self.last_reset = None

    @property
    def total(self):
        return self.hits + self.misses

    @property
    def hit_rate(self):
        return round(self.hits / self.total * 100, 1) if self.total > 0 else 0.0

    def record_hit(self):
        self.hits += 1

    def record_miss(self):
        self.misses += 1

    def record_write(self):
        self.writes += 1

    def record_not_modified(self):
        self.not_modified += 1

    def record_reset(self):
        self.resets += 1
        self.last_reset = datetime.now(timezone.utc).isoformat()
        self.hits = 0
        self.misses = 0

    def to_dict(self):
        return {
            "hits": self.hits,
            "misses": self.misses,
            "total_lookups": self.total,
            "hit_rate_pct": self.hit_rate,
            "writes": self.writes,
            "not_modified": self.not_modified,
            "resets": self.resets,
            "last_reset": self.last_reset,
        }


# ── Entry store ───────────────────────────────────────────────────────────

class EntryStore:
    """First-writer-wins store of CacheEntry records."""

    def __init__(self, cache):
        self.cache = cache
        self.schema = CacheEntrySchema()
        self.stats = CacheStats()

    def put(self, key, entry):
        """Store ``entry`` unless the key is already taken. Returns True on write."""
        cache_key = KEY_PREFIX + key
        if self.cache.has(cache_key):
            return False

        if not self.cache.add(cache_key, self.schema.dumps(entry), timeout=0):
            return False

        self._put_index(cache_key)
        self.stats.record_write()
        logger.debug(f"Stored combiner entry {key} ({len(entry.files)} files)")
        return True

    def get(self, key):
        """Return the entry for ``key``, or None when missing or unreadable."""
        blob = self.cache.get(KEY_PREFIX + key)
        if blob is None:
            self.stats.record_miss()
            return None

        try:
            entry = self.schema.loads(blob)
        except (ValidationError, ValueError, TypeError) as e:
            logger.warning(f"Discarding unreadable combiner entry {key}: {e}")
            self.stats.record_miss()
            return None

        self.stats.record_hit()
        return entry

    def keys(self):
        return self._load_index()

    def reset_all(self):
        """Forget every indexed entry and the index itself."""
        index = self._load_index()
        for cache_key in index:
            self.cache.delete(cache_key)
        self.cache.delete(INDEX_KEY)
        self.stats.record_reset()
        logger.info(f"Combiner cache reset ({len(index)} entries removed)")
        return len(index)

    def _load_index(self):
        index = self.cache.get(INDEX_KEY)
        if not isinstance(index, list):
            return []
        return list(index)

    def _put_index(self, cache_key):
        index = self._load_index()
        if cache_key in index:
            return False
        index.append(cache_key)
        self.cache.set(INDEX_KEY, index, timeout=0)
        return True


# ── Init helper ───────────────────────────────────────────────────────────

def init_cache(app, cache):
    """
    Configure Flask-Caching on the app.

    Combiner entries are written with ``timeout=0`` and never expire, so
    pick a backend without aggressive eviction in production:
        from flask_caching import Cache
        cache = Cache()
        init_cache(app, cache)
    """
    app.config.setdefault("CACHE_TYPE", "SimpleCache")
    app.config.setdefault("CACHE_DEFAULT_TIMEOUT", 0)
    app.config.setdefault("CACHE_THRESHOLD", 10000)
    app.config.setdefault("CACHE_KEY_PREFIX", "assetc_")

    cache.init_app(app)
    logger.info(
        f"Cache initialised: type={app.config['CACHE_TYPE']}, "
        f"max_items={app.config['CACHE_THRESHOLD']}"
    )
