# ngram_trends/io/read.py
from __future__ import annotations

import gzip
import hashlib
import io
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import IO, Iterable, Iterator, Optional, Union

from tqdm import tqdm

from ngram_trends.errors import MalformedRecordError
from ngram_trends.io.parse import parse_raw_line
from ngram_trends.types import RawRecord

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]

__all__ = ["ReadStats", "open_text", "iter_raw_records", "raw_fingerprint"]


@dataclass
class ReadStats:
    """Line counters collected while scanning raw input files."""

    files: int = 0
    lines: int = 0
    parsed: int = 0
    malformed: int = 0


def open_text(path: PathLike) -> IO[str]:
    """Open a plain or gzip-compressed UTF-8 text file for reading."""
    p = Path(path).expanduser()
    if p.suffix == ".gz":
        return io.TextIOWrapper(gzip.open(p, "rb"), encoding="utf-8", errors="replace")
    return p.open("r", encoding="utf-8", errors="replace")


def iter_raw_records(
    paths: Iterable[PathLike],
    *,
    stats: Optional[ReadStats] = None,
    progress: bool = False,
) -> Iterator[RawRecord]:
    """
    Stream RawRecords from tab-delimited corpus files, in file order.

    Malformed lines are counted in ``stats`` and skipped; they never stop
    the scan. Missing files raise FileNotFoundError.
    """
    if stats is None:
        stats = ReadStats()

    for path in paths:
        p = Path(path).expanduser()
        if not p.exists():
            raise FileNotFoundError(f"Raw input file not found: {p}")

        stats.files += 1
        logger.info("Reading %s", p)
        with open_text(p) as fh, tqdm(
            desc=f"Reading {p.name}",
            unit="lines",
            unit_scale=True,
            disable=not progress,
        ) as pbar:
            for lineno, line in enumerate(fh, start=1):
                stats.lines += 1
                pbar.update(1)
                if not line.strip():
                    continue
                try:
                    rec = parse_raw_line(line)
                except MalformedRecordError as exc:
                    stats.malformed += 1
                    logger.debug("Skipping %s line %d: %s", p.name, lineno, exc)
                    continue
                stats.parsed += 1
                yield rec

    if stats.malformed:
        logger.info(
            "Skipped %s malformed lines out of %s", f"{stats.malformed:,}", f"{stats.lines:,}"
        )


def raw_fingerprint(paths: Iterable[PathLike]) -> str:
    """
    Identify a set of raw input files by path, size, and modification time.

    Used as the lineage token of the normalized dataset, so that a resumed
    run notices when the corpus files change.
    """
    h = hashlib.sha1()
    for path in paths:
        p = Path(path).expanduser().resolve()
        st = p.stat()
        h.update(f"{p}|{st.st_size}|{st.st_mtime_ns}\n".encode("utf-8"))
    return h.hexdigest()
