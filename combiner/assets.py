"""
assets.py — Combinations built as webassets bundles.

Every file of a combination becomes a child ``Bundle`` carrying the filters
of its extension; the parent bundle merges the children in request order,
joined by a newline. The parent's output lives under the combination's
target path, which is what ``cssrewrite`` rebases urls against. Nothing is
written to that output: the merged text is built into a buffer.

With a cache directory, webassets keeps filtered files in its filesystem
cache. Cache keys cover the file contents, the filters and whatever extra
keys the filters report (the combination hash, import timestamps).
"""

import io
import os
import logging

from webassets import Bundle, Environment

from combiner.exceptions import AssetNotFound
from combiner.filters import ImportHashingFilter

logger = logging.getLogger("combiner")


def make_environment(public_path, cache_dir=None):
    """webassets environment rooted at the public directory, served from ``/``."""
    env = Environment(directory=os.path.realpath(public_path), url="/")
    env.debug = False
    env.auto_build = False
    env.manifest = False
    if cache_dir:
        os.makedirs(cache_dir, exist_ok=True)
        env.cache = cache_dir
    else:
        env.cache = False
    return env


class AssetCollection:
    """Ordered ``(path, filters)`` sources dumped as one text."""

    def __init__(self, env, sources, target_path="combine/"):
        self.env = env
        self.sources = [(path, list(filters)) for path, filters in sources]
        self.target_path = target_path
        self.output = target_path.lstrip("/") + "combined"

    @property
    def paths(self):
        return [path for path, _ in self.sources]

    def bundle(self):
        children = [Bundle(path, filters=filters) for path, filters in self.sources]
        return Bundle(*children, output=self.output, env=self.env)

    def dump(self, use_cache=True):
        if not self.sources:
            return ""
        for path in self.paths:
            if not os.path.isfile(path):
                raise AssetNotFound(path)

        buffer = io.StringIO()
        self.bundle().build(force=True, output=buffer, disable_cache=not use_cache)
        return buffer.getvalue()

    def last_modified(self):
        """Newest mtime of the directly referenced files (0 when empty)."""
        return max((self._mtime(path) for path in self.paths), default=0)

    def deep_last_modified(self):
        """Newest mtime across the files and everything they import."""
        newest = self.last_modified()
        for path, filters in self.sources:
            for flt in filters:
                if not isinstance(flt, ImportHashingFilter):
                    continue
                for child in flt.import_graph(path):
                    try:
                        newest = max(newest, int(os.path.getmtime(child)))
                    except OSError:
                        logger.debug(f"Skipping missing import {child} of {path}")
        return newest

    @staticmethod
    def _mtime(path):
        try:
            return int(os.path.getmtime(path))
        except OSError:
            raise AssetNotFound(path) from None
