# ngram_trends/utils/cleanup.py
from __future__ import annotations

import logging
import shutil
import time
import uuid
from pathlib import Path
from typing import Union

logger = logging.getLogger(__name__)

__all__ = ["safe_remove_dir"]


def _clear_nfs_placeholders(path: Path) -> list[Path]:
    """Unlink .nfs* files, moving busy ones next to the directory instead."""
    moved: list[Path] = []
    for nfs_file in path.rglob(".nfs*"):
        try:
            nfs_file.unlink()
        except OSError as exc:
            dest = path.parent / f".nfs_cleanup_{uuid.uuid4().hex}_{nfs_file.name}"
            try:
                nfs_file.rename(dest)
                moved.append(dest)
            except OSError:
                logger.debug("Could not unlink or move %s: %s", nfs_file, exc)
    return moved


def safe_remove_dir(
    dir_path: Union[str, Path],
    max_retries: int = 5,
    delay_seconds: float = 0.5,
    backoff: float = 1.5,
) -> bool:
    """
    Remove a dataset version or output directory, retrying on OS errors.

    Behavior
    --------
    - Missing path: returns True (idempotent no-op).
    - Path that is not a directory: raises ValueError.
    - Lingering NFS placeholder files are cleared before each attempt.
    - Returns False once ``max_retries`` attempts have failed.
    """
    path = Path(dir_path).expanduser()

    if not path.exists():
        return True
    if not path.is_dir():
        raise ValueError(f"{path!s} exists but is not a directory")

    delay = delay_seconds
    for attempt in range(1, max_retries + 1):
        moved = _clear_nfs_placeholders(path)
        try:
            shutil.rmtree(path)
            logger.debug("Removed %s (attempt %d)", path, attempt)
            return True
        except OSError as exc:
            if attempt == max_retries:
                logger.error(
                    "Failed to remove %s after %d attempts: %s", path, max_retries, exc
                )
                return False
            logger.warning(
                "Cleanup attempt %d/%d for %s failed: %s", attempt, max_retries, path, exc
            )
            time.sleep(delay)
            delay *= backoff
        finally:
            for p in moved:
                try:
                    p.unlink()
                except OSError:
                    pass

    return False
