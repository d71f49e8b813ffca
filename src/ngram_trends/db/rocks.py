# ngram_trends/db/rocks.py
from __future__ import annotations

import logging
import os
import re
import time
from pathlib import Path
from typing import Optional

from rocksdict import Options, Rdict

logger = logging.getLogger(__name__)

# "lock hold by current process", "While lock file: .../LOCK: ..."
_LOCK_ERROR_RX = re.compile(r"\block\b", re.IGNORECASE)

__all__ = [
    "make_default_options",
    "make_catalog_options",
    "setup_rocksdb",
    "is_lock_error",
]


def make_default_options(
    *,
    create_if_missing: bool = True,
    background_jobs: Optional[int] = None,
    write_buffer_size: int = 64 * 1024 * 1024,
    l0_compaction_trigger: int = 8,
) -> Options:
    """
    Options for stage datasets: written once in bulk, then scanned in order.
    """
    opts = Options()
    if create_if_missing:
        opts.create_if_missing(True)

    if background_jobs is None:
        background_jobs = max(2, min(8, os.cpu_count() or 2))
    opts.set_max_background_jobs(int(background_jobs))

    opts.set_write_buffer_size(write_buffer_size)
    opts.set_level_zero_file_num_compaction_trigger(l0_compaction_trigger)
    return opts


def make_catalog_options() -> Options:
    """Options for the catalog: a handful of small keys, rewritten often."""
    return make_default_options(
        background_jobs=1,
        write_buffer_size=4 * 1024 * 1024,
        l0_compaction_trigger=4,
    )


def is_lock_error(exc: BaseException) -> bool:
    """True when a RocksDB open failed because another handle holds the LOCK file."""
    return _LOCK_ERROR_RX.search(str(exc)) is not None


def setup_rocksdb(
    db_path: str | Path,
    *,
    options: Optional[Options] = None,
    retries: int = 1,
    delay_seconds: float = 0.2,
    backoff: float = 2.0,
) -> Rdict:
    """
    Open (creating if needed) a RocksDB at ``db_path``.

    A LOCK held by a process that has just exited is released shortly
    after, so lock errors are retried ``retries`` times with backoff.
    Anything else propagates on the first failure. Pass ``retries=0`` to
    fail fast when the LOCK means another live run owns the database.
    """
    path = Path(db_path).expanduser()
    path.parent.mkdir(parents=True, exist_ok=True)
    opts = options or make_default_options()

    attempt = 1
    delay = delay_seconds
    while True:
        try:
            db = Rdict(str(path), opts)
            logger.debug("Opened RocksDB at %s (attempt %d)", path, attempt)
            return db
        except Exception as exc:
            if not is_lock_error(exc) or attempt > retries:
                logger.error("Failed to open RocksDB at %s: %s", path, exc)
                raise
            logger.warning(
                "RocksDB at %s is locked (attempt %d/%d): %s",
                path,
                attempt,
                retries + 1,
                exc,
            )
            time.sleep(delay)
            delay *= backoff
            attempt += 1
