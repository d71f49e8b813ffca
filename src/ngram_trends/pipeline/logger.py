# ngram_trends/pipeline/logger.py
from __future__ import annotations

import logging
from datetime import datetime
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Union

# Partition workers log from their own processes
LOG_FORMAT = "%(asctime)s %(levelname)s [%(processName)s] %(name)s: %(message)s"
LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"


def _resolve_level(level: Union[int, str]) -> int:
    if isinstance(level, int):
        return level
    value = logging.getLevelName(level.upper())
    if not isinstance(value, int):
        raise ValueError(f"Unknown log level: {level!r}")
    return value


def setup_logger(
    log_dir: str | Path,
    *,
    level: Union[int, str] = logging.INFO,
    filename_prefix: str = "ngram_trends",
    console: bool = False,
    rotate: bool = False,
    max_bytes: int = 10 * 1024 * 1024,
    backup_count: int = 3,
    force: bool = False,
) -> Path:
    """
    Send root logging to a timestamped file in the pipeline work directory.

    ``log_dir`` is normally the run's ``work_dir``; a path with a suffix
    is treated as a file and its parent used instead. ``level`` takes a
    logging constant or a name such as ``"debug"``. Pass ``force=True`` to
    drop handlers left by an earlier call. Returns the log file path.
    """
    lvl = _resolve_level(level)
    p = Path(log_dir).expanduser()
    log_dir = p if (p.is_dir() or not p.suffix) else p.parent
    log_dir.mkdir(parents=True, exist_ok=True)

    ts = datetime.now().strftime("%Y%m%d_%H%M%S")
    log_path = log_dir / f"{filename_prefix}_{ts}.log"

    root = logging.getLogger()
    if force:
        for h in list(root.handlers):
            root.removeHandler(h)
            h.close()
    root.setLevel(lvl)

    fmt = logging.Formatter(LOG_FORMAT, datefmt=LOG_DATEFMT)
    if rotate:
        fhandler: logging.Handler = RotatingFileHandler(
            log_path, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8"
        )
    else:
        fhandler = logging.FileHandler(log_path, mode="w", encoding="utf-8")
    fhandler.setLevel(lvl)
    fhandler.setFormatter(fmt)
    root.addHandler(fhandler)

    if console:
        shandler = logging.StreamHandler()
        shandler.setLevel(lvl)
        shandler.setFormatter(fmt)
        root.addHandler(shandler)

    root.info("Logging to: %s (level %s)", log_path, logging.getLevelName(lvl))
    return log_path
