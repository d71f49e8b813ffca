"""Decade aggregation stage: each gram's share of a decade's total volume."""

from __future__ import annotations

import logging
from collections import Counter
from concurrent.futures import Executor
from typing import Dict, Iterable, Iterator, List, Optional, Tuple, Type

from tqdm import tqdm

from ngram_trends.errors import ZeroCorpusError
from ngram_trends.parallel.partitioning import concat_partitions, map_partitions
from ngram_trends.types import DecadeRatio, NormalizedRecord, decade_of

logger = logging.getLogger(__name__)

__all__ = ["collect_totals", "decade_ratios", "aggregate_by_decade"]


def collect_totals(
    normalized: Iterable[NormalizedRecord],
    *,
    progress: bool = False,
) -> Tuple[Dict[int, int], Dict[int, Dict[str, int]]]:
    """
    Scan normalized records once and return both groupings.

    Returns
    -------
    (decade_total, gram_decade_total)
        ``decade_total[decade]`` sums occurrences of every gram in the
        decade; ``gram_decade_total[decade][gram]`` sums one gram's
        occurrences in the decade.
    """
    totals: Counter = Counter()
    grouped: Dict[int, Counter] = {}

    for rec in tqdm(normalized, desc="Aggregating", unit="recs", unit_scale=True, disable=not progress):
        d = decade_of(rec.year)
        totals[d] += rec.occurrences
        counts = grouped.get(d)
        if counts is None:
            grouped[d] = counts = Counter()
        counts[rec.gram] += rec.occurrences

    return dict(totals), {d: dict(c) for d, c in grouped.items()}


def decade_ratios(decade: int, gram_totals: Dict[str, int], total: int) -> List[DecadeRatio]:
    """
    Compute ratios for one decade partition, grams in ascending order.

    Raises ZeroCorpusError when ``total`` is zero.
    """
    if total == 0:
        raise ZeroCorpusError(decade)
    return [
        DecadeRatio(gram=gram, decade=decade, ratio=gram_totals[gram] / total)
        for gram in sorted(gram_totals)
    ]


def _ratios_or_skip(decade: int, gram_totals: Dict[str, int], total: int) -> List[DecadeRatio]:
    try:
        return decade_ratios(decade, gram_totals, total)
    except ZeroCorpusError as exc:
        logger.warning("%s; skipping %d grams", exc, len(gram_totals))
        return []


def aggregate_by_decade(
    normalized: Iterable[NormalizedRecord],
    *,
    workers: int = 1,
    executor_class: Optional[Type[Executor]] = None,
    progress: bool = False,
) -> Iterator[DecadeRatio]:
    """
    Turn normalized records into per-decade gram ratios.

    Integer sums are exact, so the resulting ratios do not depend on input
    order. The per-decade ratio computation is distributed over
    ``workers``. A decade whose total is zero yields no ratios. Output is
    ordered by decade, then gram.
    """
    totals, grouped = collect_totals(normalized, progress=progress)
    logger.info(
        "Aggregated %d decades, %s gram-decade pairs",
        len(grouped),
        f"{sum(len(c) for c in grouped.values()):,}",
    )

    tasks = {d: (grouped[d], totals[d]) for d in grouped}
    results = map_partitions(
        _ratios_or_skip,
        tasks,
        workers=workers,
        executor_class=executor_class,
        desc="Decade ratios",
        progress=progress,
    )
    return concat_partitions(results)
