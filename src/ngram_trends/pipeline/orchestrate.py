# ngram_trends/pipeline/orchestrate.py
"""Sequential orchestration of the four trend pipeline stages."""
from __future__ import annotations

import logging
import threading
from concurrent.futures import ProcessPoolExecutor, ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Optional, Set, Tuple, Type

from setproctitle import setproctitle

from ngram_trends.config import PipelineConfig
from ngram_trends.datasets import DatasetHandle, DatasetStore
from ngram_trends.errors import PipelineBusyError
from ngram_trends.io.encoding import KIND_CHANGE, KIND_DECADE_RATIO, KIND_NORMALIZED
from ngram_trends.io.read import ReadStats, iter_raw_records, raw_fingerprint
from ngram_trends.pipeline.logger import setup_logger
from ngram_trends.pipeline.report import log_run_summary, print_completion, print_run_summary
from ngram_trends.stages.aggregate import aggregate_by_decade
from ngram_trends.stages.emit import EmitResult, emit, read_success_marker
from ngram_trends.stages.normalize import NormalizeStats, normalize
from ngram_trends.stages.trends import detect_trends
from ngram_trends.utils.filters import GramMatcher, make_gram_matcher

logger = logging.getLogger(__name__)

NORMALIZED = "normalized"
DECADE_RATIOS = "decade_ratios"
CHANGE_RECORDS = "change_records"

__all__ = [
    "PipelineState",
    "PipelineResult",
    "TrendPipeline",
    "run_trend_pipeline",
]


class PipelineState(str, Enum):
    IDLE = "idle"
    NORMALIZING = "normalizing"
    AGGREGATING = "aggregating"
    TRENDING = "trending"
    EMITTING = "emitting"


@dataclass
class PipelineResult:
    """Handles and counters from one completed run."""

    normalized: DatasetHandle
    decade_ratios: DatasetHandle
    change_records: DatasetHandle
    emitted: Optional[EmitResult]
    start_time: datetime
    end_time: datetime
    reused: Set[str] = field(default_factory=set)
    read_stats: Optional[ReadStats] = None
    normalize_stats: Optional[NormalizeStats] = None
    log_path: Optional[Path] = None


class TrendPipeline:
    """
    Runs normalize -> aggregate -> detect -> emit over versioned datasets.

    Each stage starts only after validating that its input dataset is
    committed and current. Runs are non-reentrant: ``run()`` raises
    PipelineBusyError while another run of this instance is active, and the
    dataset store's catalog lock rejects concurrent runs on the same
    ``work_dir`` from other instances or processes.
    """

    def __init__(self, config: PipelineConfig, *, matcher: Optional[GramMatcher] = None):
        """
        Args:
            config: Pipeline configuration
            matcher: Gram predicate for the normalizer; built from
                ``config.gram_pattern`` when omitted
        """
        self.config = config
        self.matcher = matcher or make_gram_matcher(config.gram_pattern)
        self._state = PipelineState.IDLE
        self._run_lock = threading.Lock()

    @property
    def state(self) -> PipelineState:
        return self._state

    def _transition(self, state: PipelineState) -> None:
        logger.info("Pipeline state: %s -> %s", self._state.value, state.value)
        self._state = state

    @property
    def executor_class(self) -> Type:
        return ThreadPoolExecutor if self.config.use_threads else ProcessPoolExecutor

    # ------------------------------------------------------------------ #
    # Entry point
    # ------------------------------------------------------------------ #

    def run(self) -> PipelineResult:
        """Execute all four stages in order and return their outputs."""
        if not self._run_lock.acquire(blocking=False):
            raise PipelineBusyError("A run of this pipeline is already active")

        try:
            setproctitle("ngt:orchestrator")
            cfg = self.config
            start_time = datetime.now()

            log_path = None
            if cfg.log_to_file:
                log_path = setup_logger(cfg.work_dir)

            log_run_summary(cfg, start_time=start_time)
            if cfg.progress:
                print_run_summary(cfg, start_time=start_time)

            reused: Set[str] = set()
            with DatasetStore(
                cfg.work_dir,
                write_batch_size=cfg.write_batch_size,
                keep_versions=cfg.keep_versions,
            ) as store:
                normalized, read_stats, norm_stats = self._normalize(store, reused)
                ratios = self._aggregate(store, normalized, reused)
                changes = self._detect(store, ratios, reused)
                emitted = self._emit(store, changes)

            result = PipelineResult(
                normalized=normalized,
                decade_ratios=ratios,
                change_records=changes,
                emitted=emitted,
                start_time=start_time,
                end_time=datetime.now(),
                reused=reused,
                read_stats=read_stats,
                normalize_stats=norm_stats,
                log_path=log_path,
            )
            if cfg.progress:
                print_completion(result)
            logger.info("Run finished in %s", result.end_time - start_time)
            return result
        except Exception:
            logger.exception("Pipeline aborted while %s", self._state.value)
            raise
        finally:
            self._transition(PipelineState.IDLE)
            self._run_lock.release()

    # ------------------------------------------------------------------ #
    # Stages
    # ------------------------------------------------------------------ #

    def _reusable(self, store: DatasetStore, name: str, lineage: str) -> Optional[DatasetHandle]:
        if self.config.mode != "resume":
            return None
        handle = store.current(name)
        if handle is not None and handle.lineage == lineage:
            logger.info("Resume: reusing %s", handle.token)
            return handle
        return None

    def _normalize_lineage(self) -> Tuple[str, bool]:
        """
        Lineage of the normalized dataset, and whether it identifies the
        gram rule well enough for resume to trust it.

        Matchers from make_gram_matcher() carry their regex. Any other
        callable is opaque, so its output is never reused.
        """
        cfg = self.config
        pattern = getattr(self.matcher, "pattern", None)
        if pattern is not None:
            rule = f"pattern={pattern!r}|flags={getattr(self.matcher, 'flags', 0)}"
        else:
            name = getattr(self.matcher, "__qualname__", type(self.matcher).__name__)
            rule = f"matcher={name}"
        lineage = f"raw:{raw_fingerprint(cfg.raw_paths)}|min_year={cfg.min_year}|{rule}"
        return lineage, pattern is not None

    def _normalize(self, store: DatasetStore, reused: Set[str]):
        self._transition(PipelineState.NORMALIZING)
        lineage, trusted = self._normalize_lineage()

        if not trusted and self.config.mode == "resume":
            logger.info("Resume: gram matcher has no pattern; rebuilding %s", NORMALIZED)
        handle = self._reusable(store, NORMALIZED, lineage) if trusted else None
        if handle is not None:
            reused.add(handle.token)
            return handle, None, None

        read_stats = ReadStats()
        norm_stats = NormalizeStats()
        raw = iter_raw_records(
            self.config.raw_paths, stats=read_stats, progress=self.config.progress
        )
        records = normalize(
            raw, matcher=self.matcher, min_year=self.config.min_year, stats=norm_stats
        )
        handle = store.write(NORMALIZED, KIND_NORMALIZED, records, lineage=lineage)
        return handle, read_stats, norm_stats

    def _aggregate(
        self, store: DatasetStore, normalized: DatasetHandle, reused: Set[str]
    ) -> DatasetHandle:
        store.require(normalized)
        self._transition(PipelineState.AGGREGATING)
        lineage = normalized.token

        handle = self._reusable(store, DECADE_RATIOS, lineage)
        if handle is not None:
            reused.add(handle.token)
            return handle

        ratios = aggregate_by_decade(
            store.read(normalized),
            workers=self.config.num_workers,
            executor_class=self.executor_class,
            progress=self.config.progress,
        )
        return store.write(DECADE_RATIOS, KIND_DECADE_RATIO, ratios, lineage=lineage)

    def _detect(
        self, store: DatasetStore, ratios: DatasetHandle, reused: Set[str]
    ) -> DatasetHandle:
        store.require(ratios)
        self._transition(PipelineState.TRENDING)
        cfg = self.config
        lineage = f"{ratios.token}|min_ratio={cfg.min_ratio!r}|min_decade={cfg.min_decade}"

        handle = self._reusable(store, CHANGE_RECORDS, lineage)
        if handle is not None:
            reused.add(handle.token)
            return handle

        changes = detect_trends(
            store.read(ratios),
            min_ratio=cfg.min_ratio,
            min_decade=cfg.min_decade,
            workers=cfg.num_workers,
            executor_class=self.executor_class,
            progress=cfg.progress,
        )
        return store.write(CHANGE_RECORDS, KIND_CHANGE, changes, lineage=lineage)

    def _emit(self, store: DatasetStore, changes: DatasetHandle) -> Optional[EmitResult]:
        store.require(changes)
        self._transition(PipelineState.EMITTING)
        cfg = self.config
        marker = (
            f"{changes.token}|fragments={cfg.num_fragments}|"
            f"separator={cfg.field_separator!r}"
        )

        if cfg.mode == "resume" and read_success_marker(cfg.output_dir) == marker:
            logger.info("Resume: output at %s is already current", cfg.output_dir)
            return None

        return emit(
            store.read(changes),
            cfg.output_dir,
            num_fragments=cfg.num_fragments,
            separator=cfg.field_separator,
            marker=marker,
        )


def run_trend_pipeline(
    config: PipelineConfig,
    *,
    matcher: Optional[GramMatcher] = None,
) -> PipelineResult:
    """Build a TrendPipeline for ``config`` and run it once."""
    return TrendPipeline(config, matcher=matcher).run()
