from __future__ import annotations

import logging
from typing import Iterable, Tuple

from rocksdict import Rdict, WriteBatch  # type: ignore

logger = logging.getLogger(__name__)

# Tunable defaults
DEFAULT_WRITE_BATCH_SIZE = 50_000  # entries (not bytes)

__all__ = ["DEFAULT_WRITE_BATCH_SIZE", "write_batch_to_db"]


def write_batch_to_db(db: Rdict, items: Iterable[Tuple[bytes, bytes]]) -> int:
    """
    Write key/value pairs to RocksDB as one atomic batch.

    Returns
    -------
    int
        Number of entries written.

    Raises
    ------
    Exception
        Propagates DB errors after logging.
    """
    wb = WriteBatch()
    count = 0
    try:
        for key, value in items:
            wb.put(key, value)
            count += 1
        if count:
            db.write(wb)
            logger.debug("Wrote batch of %s entries", f"{count:,}")
        return count
    except Exception:
        logger.exception("Error writing batch")
        raise
    finally:
        del wb
