# combiner/__init__.py
from .combiner import Combiner, combine
from .exceptions import (
    AssetNotFound,
    CombinedFileNotFound,
    CombinerError,
    ForbiddenAssetPath,
    StorageConfigError,
)
from .extension import AssetCombiner

__all__ = [
    "AssetCombiner", "Combiner", "combine",
    "CombinerError", "CombinedFileNotFound", "AssetNotFound", "ForbiddenAssetPath",
    "StorageConfigError",
]
