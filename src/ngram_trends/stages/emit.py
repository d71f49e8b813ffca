"""Result emission: write ranked change records as text fragments."""

from __future__ import annotations

import logging
import os
import uuid
from dataclasses import dataclass, field
from itertools import groupby
from pathlib import Path
from typing import IO, Iterable, Iterator, List, Optional, Union

from ngram_trends.types import ChangeRecord
from ngram_trends.utils.cleanup import safe_remove_dir

logger = logging.getLogger(__name__)

DEFAULT_SEPARATOR = "\x01"
SUCCESS_MARKER = "_SUCCESS"
FRAGMENT_PREFIX = "part-"

__all__ = [
    "DEFAULT_SEPARATOR",
    "SUCCESS_MARKER",
    "EmitResult",
    "format_change_record",
    "parse_change_line",
    "emit",
    "read_fragments",
    "read_success_marker",
]


@dataclass
class EmitResult:
    """Summary of one emission."""

    path: Path
    records: int = 0
    decades: int = 0
    fragments: List[Path] = field(default_factory=list)


def fragment_name(index: int) -> str:
    return f"{FRAGMENT_PREFIX}{index:05d}"


def format_change_record(rec: ChangeRecord, separator: str = DEFAULT_SEPARATOR) -> str:
    """Render one record as a line: gram, decade, ratio, increase."""
    return separator.join((rec.gram, str(rec.decade), repr(rec.ratio), repr(rec.increase))) + "\n"


def parse_change_line(line: str, separator: str = DEFAULT_SEPARATOR) -> ChangeRecord:
    """Inverse of format_change_record(); raises ValueError on bad lines."""
    parts = line.rstrip("\n").split(separator)
    if len(parts) != 4:
        raise ValueError(f"Expected 4 fields, got {len(parts)}: {line!r}")
    gram, decade, ratio, increase = parts
    return ChangeRecord(gram=gram, decade=int(decade), ratio=float(ratio), increase=float(increase))


def emit(
    change_records: Iterable[ChangeRecord],
    sink: Union[str, Path],
    *,
    num_fragments: int = 1,
    separator: str = DEFAULT_SEPARATOR,
    marker: str = "",
) -> EmitResult:
    """
    Write change records into ``sink`` as ``part-NNNNN`` fragment files.

    Consecutive records of one decade form a partition; each partition goes
    whole into one fragment, partitions assigned round-robin in arrival
    order, so the per-decade order established upstream survives inside
    every fragment. Nothing is implied about order across fragments.

    The directory is built in a staging location next to ``sink`` and
    swapped in only once complete, replacing any previous output. A
    ``_SUCCESS`` file holding ``marker`` is written last.
    """
    if num_fragments < 1:
        raise ValueError(f"num_fragments must be >= 1, got {num_fragments}")
    if not separator or "\n" in separator:
        raise ValueError("separator must be a non-empty string without newlines")

    sink = Path(sink).expanduser()
    sink.parent.mkdir(parents=True, exist_ok=True)
    staging = sink.parent / f".{sink.name}.staging-{uuid.uuid4().hex}"
    staging.mkdir()

    result = EmitResult(path=sink)
    handles: List[IO[str]] = []
    try:
        for i in range(num_fragments):
            frag = staging / fragment_name(i)
            handles.append(frag.open("w", encoding="utf-8", newline="\n"))
            result.fragments.append(sink / frag.name)

        for idx, (_, rows) in enumerate(groupby(change_records, key=lambda r: r.decade)):
            out = handles[idx % num_fragments]
            for rec in rows:
                if separator in rec.gram:
                    raise ValueError(f"separator {separator!r} occurs in gram {rec.gram!r}")
                out.write(format_change_record(rec, separator))
                result.records += 1
            result.decades += 1
    except BaseException:
        for fh in handles:
            fh.close()
        safe_remove_dir(staging)
        raise

    for fh in handles:
        fh.close()
    (staging / SUCCESS_MARKER).write_text(marker, encoding="utf-8")

    if sink.exists():
        if not safe_remove_dir(sink):
            safe_remove_dir(staging)
            raise RuntimeError(f"Could not replace existing output at {sink}")
    os.replace(staging, sink)

    logger.info(
        "Emitted %s records (%d decades) to %s in %d fragments",
        f"{result.records:,}",
        result.decades,
        sink,
        num_fragments,
    )
    return result


def read_success_marker(sink: Union[str, Path]) -> Optional[str]:
    """Return the contents of the sink's _SUCCESS file, or None if absent."""
    path = Path(sink).expanduser() / SUCCESS_MARKER
    if not path.is_file():
        return None
    return path.read_text(encoding="utf-8")


def read_fragments(
    sink: Union[str, Path],
    *,
    separator: str = DEFAULT_SEPARATOR,
) -> Iterator[ChangeRecord]:
    """Stream change records back from an emitted directory, fragments in name order."""
    sink = Path(sink).expanduser()
    if read_success_marker(sink) is None:
        raise FileNotFoundError(f"No completed output at {sink}")
    for frag in sorted(sink.glob(f"{FRAGMENT_PREFIX}*")):
        with frag.open("r", encoding="utf-8", newline="\n") as fh:
            for line in fh:
                if line.strip():
                    yield parse_change_line(line, separator)
