"""
exceptions.py — Errors raised by the asset combiner.
"""


class CombinerError(Exception):
    """Base class for combiner failures."""


class CombinedFileNotFound(CombinerError):
    """No cache entry exists for the requested combination key."""

    def __init__(self, name):
        self.name = name
        super().__init__(f"The combiner file '{name}' is not found.")


class AssetNotFound(CombinerError):
    """A resolved asset path does not exist on disk."""

    def __init__(self, path):
        self.path = path
        super().__init__(f"Asset file not found: {path}")


class StorageConfigError(CombinerError):
    """Unknown storage driver or disk."""


class ForbiddenAssetPath(CombinerError):
    """A base path or asset resolves outside the public directory."""

    def __init__(self, path):
        self.path = path
        super().__init__(f"Asset path is outside the public directory: {path}")
