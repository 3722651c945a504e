from .upgrade import (
    LATEST,
    SUPPORTED_VERSIONS,
    CommandTransformer,
    TransformError,
    Transformer,
    normalize_version,
)

__all__ = [
    "LATEST",
    "SUPPORTED_VERSIONS",
    "CommandTransformer",
    "TransformError",
    "Transformer",
    "normalize_version",
]
