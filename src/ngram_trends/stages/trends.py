"""Trend detection stage: decade-over-decade growth of gram ratios."""

from __future__ import annotations

import logging
from concurrent.futures import Executor
from typing import Dict, Iterable, Iterator, List, Optional, Tuple, Type

from ngram_trends.parallel.partitioning import sort_partitions
from ngram_trends.types import ChangeRecord, DecadeRatio

logger = logging.getLogger(__name__)

DEFAULT_MIN_RATIO = 0.000001
DEFAULT_MIN_DECADE = 190

__all__ = [
    "DEFAULT_MIN_RATIO",
    "DEFAULT_MIN_DECADE",
    "rank_key",
    "join_consecutive_decades",
    "detect_trends",
]


def rank_key(rec: ChangeRecord) -> Tuple[int, float, str]:
    """Sort key within a decade partition: decade asc, increase desc, gram asc."""
    return (rec.decade, -rec.increase, rec.gram)


def join_consecutive_decades(
    decade_ratios: Iterable[DecadeRatio],
    *,
    min_ratio: float = DEFAULT_MIN_RATIO,
    min_decade: int = DEFAULT_MIN_DECADE,
) -> Dict[int, List[ChangeRecord]]:
    """
    Inner-join ratios with themselves on gram where current.decade - 1 == prior.decade.

    Rows are kept only when ``current.ratio > min_ratio`` and
    ``current.decade >= min_decade``. Grams with no prior-decade ratio
    produce nothing, as do prior ratios of exactly zero. Results are
    partitioned by decade, unsorted.
    """
    by_decade: Dict[int, Dict[str, float]] = {}
    for r in decade_ratios:
        by_decade.setdefault(r.decade, {})[r.gram] = r.ratio

    partitions: Dict[int, List[ChangeRecord]] = {}
    for decade, current in by_decade.items():
        if decade < min_decade:
            continue
        prior = by_decade.get(decade - 1)
        if not prior:
            logger.debug("Decade %d has no prior decade; nothing to join", decade)
            continue

        rows: List[ChangeRecord] = []
        for gram, ratio in current.items():
            if not ratio > min_ratio:
                continue
            prior_ratio = prior.get(gram)
            if not prior_ratio:
                continue
            rows.append(
                ChangeRecord(gram=gram, decade=decade, ratio=ratio, increase=ratio / prior_ratio)
            )
        if rows:
            partitions[decade] = rows

    return partitions


def detect_trends(
    decade_ratios: Iterable[DecadeRatio],
    *,
    min_ratio: float = DEFAULT_MIN_RATIO,
    min_decade: int = DEFAULT_MIN_DECADE,
    workers: int = 1,
    executor_class: Optional[Type[Executor]] = None,
    progress: bool = False,
) -> Iterator[ChangeRecord]:
    """
    Rank grams by how fast their ratio rose since the previous decade.

    Each decade partition is sorted independently (increase descending) and
    the partitions are concatenated without a merge: the stream is ordered
    within a decade only.
    """
    partitions = join_consecutive_decades(
        decade_ratios, min_ratio=min_ratio, min_decade=min_decade
    )
    logger.info(
        "Joined %s change records across %d decades",
        f"{sum(len(p) for p in partitions.values()):,}",
        len(partitions),
    )
    return sort_partitions(
        partitions,
        rank_key,
        workers=workers,
        executor_class=executor_class,
        progress=progress,
    )
