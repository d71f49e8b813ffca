"""The four pipeline stages, as plain functions over record iterables."""

from .normalize import NormalizeStats, normalize
from .aggregate import aggregate_by_decade
from .trends import detect_trends
from .emit import EmitResult, emit, read_fragments

__all__ = [
    "normalize",
    "NormalizeStats",
    "aggregate_by_decade",
    "detect_trends",
    "emit",
    "read_fragments",
    "EmitResult",
]
