"""Versioned stage datasets."""

from .store import DatasetHandle, DatasetStore

__all__ = ["DatasetHandle", "DatasetStore"]
