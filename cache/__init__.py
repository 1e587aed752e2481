# cache/__init__.py
from .entry_store import (
    CacheEntry,
    CacheEntrySchema,
    CacheStats,
    EntryStore,
    init_cache,
)

__all__ = ["CacheEntry", "CacheEntrySchema", "CacheStats", "EntryStore", "init_cache"]
