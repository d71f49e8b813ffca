#!/usr/bin/env python3
"""
run_trends.py

Batch entry point: compute per-decade fastest-rising words from yearly
n-gram count files and write them to an output directory.

Input files are tab-separated (gram, year, occurrences, pages, books),
plain or gzip-compressed.

Examples:
  ./run_trends.py googlebooks-eng-1gram-*.gz --work-dir /scratch/trends --out /data/risers
  ./run_trends.py counts.tsv --work-dir work --out out --workers 8 --fragments 4 --resume
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

from ngram_trends import PipelineConfig, run_trend_pipeline
from ngram_trends.errors import TrendPipelineError
from ngram_trends.pipeline.logger import setup_logger
from ngram_trends.stages.emit import DEFAULT_SEPARATOR
from ngram_trends.stages.normalize import DEFAULT_MIN_YEAR
from ngram_trends.stages.trends import DEFAULT_MIN_DECADE, DEFAULT_MIN_RATIO
from ngram_trends.utils.filters import DEFAULT_GRAM_PATTERN


def _unescape(value: str) -> str:
    """Turn a shell-typed escape such as '\\x01' or '\\t' into the character."""
    return value.encode("utf-8").decode("unicode_escape")


def _parse_args(argv=None) -> argparse.Namespace:
    ap = argparse.ArgumentParser(description=__doc__, formatter_class=argparse.RawDescriptionHelpFormatter)
    ap.add_argument("inputs", nargs="+", type=Path, help="Raw n-gram count files")
    ap.add_argument("--work-dir", type=Path, required=True, help="Dataset store directory")
    ap.add_argument("--out", type=Path, required=True, help="Output directory")
    ap.add_argument("--workers", type=int, default=1)
    ap.add_argument("--threads", action="store_true", help="Use threads instead of processes")
    ap.add_argument("--fragments", type=int, default=1, help="Number of output fragments")
    ap.add_argument("--separator", type=_unescape, default=DEFAULT_SEPARATOR,
                    help="Output field separator; escapes like '\\x01' are accepted (default: \\x01)")
    ap.add_argument("--min-year", type=int, default=DEFAULT_MIN_YEAR)
    ap.add_argument("--gram-pattern", default=DEFAULT_GRAM_PATTERN,
                    help="Regex a lower-cased gram must fully match (default: %(default)s)")
    ap.add_argument("--min-ratio", type=float, default=DEFAULT_MIN_RATIO)
    ap.add_argument("--min-decade", type=int, default=DEFAULT_MIN_DECADE)
    ap.add_argument("--keep-versions", type=int, default=1, help="Committed versions kept per dataset")
    ap.add_argument("--resume", action="store_true", help="Reuse stage datasets that are still current")
    ap.add_argument("--quiet", action="store_true", help="No progress bars or summaries on stdout")
    ap.add_argument("--log-console", action="store_true", help="Echo log records to stderr as well as the log file")
    ap.add_argument("--log-level", default="INFO", choices=["DEBUG", "INFO", "WARNING", "ERROR"], type=str.upper)
    return ap.parse_args(argv)


def main(argv=None) -> int:
    args = _parse_args(argv)

    log_path = setup_logger(
        args.work_dir,
        level=args.log_level,
        console=args.log_console,
    )

    try:
        config = PipelineConfig(
            raw_paths=tuple(args.inputs),
            work_dir=args.work_dir,
            output_dir=args.out,
            min_year=args.min_year,
            gram_pattern=args.gram_pattern,
            min_ratio=args.min_ratio,
            min_decade=args.min_decade,
            num_workers=args.workers,
            use_threads=args.threads,
            num_fragments=args.fragments,
            field_separator=args.separator,
            keep_versions=args.keep_versions,
            mode="resume" if args.resume else "restart",
            progress=not args.quiet,
        )
    except ValueError as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 2

    try:
        run_trend_pipeline(config)
    except (TrendPipelineError, FileNotFoundError) as exc:
        print(f"ERROR: {exc} (see {log_path})", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
