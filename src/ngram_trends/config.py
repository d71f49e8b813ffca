# ngram_trends/config.py
"""Configuration for trend pipeline runs."""
from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path
from typing import Literal, Tuple

from .db.write import DEFAULT_WRITE_BATCH_SIZE
from .stages.emit import DEFAULT_SEPARATOR
from .stages.normalize import DEFAULT_MIN_YEAR
from .stages.trends import DEFAULT_MIN_DECADE, DEFAULT_MIN_RATIO
from .utils.filters import DEFAULT_GRAM_PATTERN


@dataclass(frozen=True)
class PipelineConfig:
    """End-to-end configuration for one trend pipeline run."""

    # I/O
    raw_paths: Tuple[Path, ...]
    work_dir: Path
    output_dir: Path

    # Filtering and ranking rules
    min_year: int = DEFAULT_MIN_YEAR
    gram_pattern: str = DEFAULT_GRAM_PATTERN
    min_ratio: float = DEFAULT_MIN_RATIO
    min_decade: int = DEFAULT_MIN_DECADE

    # Parallelism
    num_workers: int = 1  # 1 runs every partition inline
    use_threads: bool = False  # Threads instead of processes for partition work

    # Output layout
    num_fragments: int = 1
    field_separator: str = DEFAULT_SEPARATOR

    # Dataset storage
    write_batch_size: int = DEFAULT_WRITE_BATCH_SIZE
    keep_versions: int = 1  # Committed versions kept per dataset name

    # Pipeline control
    mode: Literal["restart", "resume"] = "restart"
    progress: bool = True
    log_to_file: bool = False  # Write a timestamped log file into work_dir

    def __post_init__(self) -> None:
        object.__setattr__(self, "raw_paths", tuple(Path(p) for p in self.raw_paths))
        object.__setattr__(self, "work_dir", Path(self.work_dir))
        object.__setattr__(self, "output_dir", Path(self.output_dir))

        if not self.raw_paths:
            raise ValueError("raw_paths must name at least one input file")
        if self.mode not in ("restart", "resume"):
            raise ValueError(f"Invalid mode: {self.mode}. Must be 'restart' or 'resume'")
        if self.num_workers < 1:
            raise ValueError("num_workers must be >= 1")
        if self.num_fragments < 1:
            raise ValueError("num_fragments must be >= 1")
        if self.keep_versions < 1:
            raise ValueError("keep_versions must be >= 1")
        if self.write_batch_size < 1:
            raise ValueError("write_batch_size must be >= 1")
        if self.min_ratio < 0:
            raise ValueError("min_ratio must be non-negative")
        if not self.field_separator or "\n" in self.field_separator:
            raise ValueError("field_separator must be non-empty and contain no newline")
        try:
            re.compile(self.gram_pattern)
        except re.error as exc:
            raise ValueError(f"Invalid gram_pattern {self.gram_pattern!r}: {exc}") from None
