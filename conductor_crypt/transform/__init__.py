"""Path-targeted payload transformation."""

from .engine import LeafTransform, PathTransformEngine, TransformMode
from .paths import JsonValue, normalize, parse_path, read_string, read_value, write_value

__all__ = [
    "JsonValue",
    "LeafTransform",
    "PathTransformEngine",
    "TransformMode",
    "normalize",
    "parse_path",
    "read_string",
    "read_value",
    "write_value",
]
