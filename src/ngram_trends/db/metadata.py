# ngram_trends/db/metadata.py
from __future__ import annotations

import logging
from typing import Optional

from rocksdict import Rdict

logger = logging.getLogger(__name__)

META_PREFIX = b"__meta__/"

KIND_KEY = META_PREFIX + b"kind"
COUNT_KEY = META_PREFIX + b"count"
LINEAGE_KEY = META_PREFIX + b"lineage"
COMMITTED_KEY = META_PREFIX + b"committed"

__all__ = [
    "META_PREFIX",
    "get_meta",
    "set_meta",
    "is_committed",
    "mark_committed",
    "KIND_KEY",
    "COUNT_KEY",
    "LINEAGE_KEY",
    "COMMITTED_KEY",
]


def get_meta(db: Rdict, key: bytes) -> Optional[str]:
    """Return a metadata value as text, or None when unset."""
    value = db.get(key)
    if value is None:
        return None
    return value.decode("utf-8")


def set_meta(db: Rdict, key: bytes, value: str) -> None:
    db[key] = value.encode("utf-8")


def is_committed(db: Rdict) -> bool:
    """O(1) check for the commit marker written after all records."""
    return COMMITTED_KEY in db


def mark_committed(db: Rdict) -> None:
    """Write the commit marker; callers flush record batches first."""
    db[COMMITTED_KEY] = b"1"
    logger.debug("Marked dataset committed")
