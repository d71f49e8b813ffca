# ngram_trends/pipeline/report.py
from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Sequence

if TYPE_CHECKING:
    from ngram_trends.config import PipelineConfig
    from ngram_trends.pipeline.orchestrate import PipelineResult

logger = logging.getLogger(__name__)

__all__ = [
    "format_run_summary",
    "print_run_summary",
    "log_run_summary",
    "format_completion",
    "print_completion",
]


def _abbrev(s: str, width: int = 96) -> str:
    """Return s truncated with an ellipsis if it exceeds width."""
    return s if len(s) <= width else (s[: max(0, width - 1)] + "…")


def _paths_line(paths: Sequence[object]) -> str:
    if not paths:
        return "None"
    if len(paths) == 1:
        return _abbrev(str(paths[0]))
    return f"{_abbrev(str(paths[0]), 80)} (+{len(paths) - 1} more)"


def format_run_summary(
    config: PipelineConfig,
    *,
    start_time: datetime,
    color: bool = True,
) -> str:
    """Build a formatted, human-readable summary of the planned run."""
    heading = f"Start Time: {start_time:%Y-%m-%d %H:%M:%S}"
    if color:
        heading = f"\033[31m{heading}\033[0m"

    executor_name = "threads" if config.use_threads else "processes"
    workers = (
        f"{config.num_workers} ({executor_name})" if config.num_workers > 1 else "1 (inline)"
    )

    lines = [
        heading,
        ("\033[4mDecade Trend Configuration\033[0m" if color
         else "Decade Trend Configuration"),
        f"Raw input files:            {len(config.raw_paths)}",
        f"First input:                {_paths_line(config.raw_paths)}",
        f"Work directory:             {_abbrev(str(config.work_dir))}",
        f"Output directory:           {_abbrev(str(config.output_dir))}",
        f"Minimum year:               {config.min_year}",
        f"Gram pattern:               {config.gram_pattern}",
        f"Minimum ratio:              {config.min_ratio:g}",
        f"Minimum decade:             {config.min_decade}",
        f"Output fragments:           {config.num_fragments}",
        f"Mode:                       {config.mode}",
        f"Write batch size:           {config.write_batch_size:,}",
        f"Partition workers:          {workers}",
    ]
    return "\n".join(lines) + "\n"


def print_run_summary(config: PipelineConfig, **kwargs) -> None:
    """Print the run summary to stdout (CLI usage)."""
    print(format_run_summary(config, **kwargs), end="")


def log_run_summary(config: PipelineConfig, *, color: bool = False, **kwargs) -> None:
    """Log the run summary at INFO level (pipelines using logging)."""
    summary = format_run_summary(config, color=color, **kwargs)
    for line in summary.rstrip("\n").splitlines():
        logger.info(line)


def format_completion(result: PipelineResult, *, color: bool = True) -> str:
    """Summarize a finished run: stage datasets, drop counts, runtime."""
    runtime: timedelta = result.end_time - result.start_time
    done = "Pipeline completed!"
    if color:
        done = f"\033[32m{done}\033[0m"

    lines = [done]
    for handle in (result.normalized, result.decade_ratios, result.change_records):
        flag = " (reused)" if handle.token in result.reused else ""
        lines.append(f"{handle.token + ':':<28}{handle.count:,} records{flag}")

    if result.read_stats is not None:
        lines.append(f"{'Malformed lines skipped:':<28}{result.read_stats.malformed:,}")
    if result.normalize_stats is not None:
        lines.append(f"{'Dropped by year:':<28}{result.normalize_stats.dropped_year:,}")
        lines.append(f"{'Dropped by gram rule:':<28}{result.normalize_stats.dropped_gram:,}")

    if result.emitted is not None:
        lines.append(
            f"{'Emitted:':<28}{result.emitted.records:,} records in "
            f"{len(result.emitted.fragments)} fragments"
        )
    else:
        lines.append(f"{'Emitted:':<28}skipped (output already current)")

    lines.append(f"{'Total Runtime:':<28}{runtime}")
    return "\n".join(lines) + "\n"


def print_completion(result: PipelineResult, **kwargs) -> None:
    print(format_completion(result, **kwargs), end="")
