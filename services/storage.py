"""
storage.py — Durable storage disks for combined files.

A disk is anything with ``exists(name)``, ``put(name, contents)`` and
``url(name)``. Disks are declared in the ``COMBINER_DISKS`` config:

    COMBINER_DISKS = {
        "local": {"driver": "local", "root": "static/combined", "url": "/static/combined"},
    }
"""
import os
import logging

from combiner.exceptions import StorageConfigError

logger = logging.getLogger("combiner")


class LocalDiskStorage:
    """Stores files under a local directory served from ``url``."""

    def __init__(self, root, url="/storage"):
        self.root = root
        self.base_url = url.rstrip("/")

    def path(self, name):
        return os.path.join(self.root, name)

    def exists(self, name):
        return os.path.isfile(self.path(name))

    def put(self, name, contents):
        path = self.path(name)
        os.makedirs(os.path.dirname(path), exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            f.write(contents)
        logger.info(f"Stored {name} on local disk ({len(contents)} chars)")

    def url(self, name):
        return f"{self.base_url}/{name}"


DRIVERS = {
    "local": LocalDiskStorage,
}


def get_disk(disks, name):
    """Build the disk called ``name`` from a ``COMBINER_DISKS`` mapping."""
    options = dict((disks or {}).get(name) or {})
    if not options:
        raise StorageConfigError(f"Storage disk '{name}' is not configured")

    driver = options.pop("driver", "local")
    if driver not in DRIVERS:
        raise StorageConfigError(f"Unknown storage disk driver '{driver}'")
    return DRIVERS[driver](**options)
