"""Ingestion stage: filter and clean raw corpus records."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Iterator, Optional

from ngram_trends.types import NormalizedRecord, RawRecord
from ngram_trends.utils.filters import GramMatcher, make_gram_matcher

logger = logging.getLogger(__name__)

DEFAULT_MIN_YEAR = 1890

__all__ = ["DEFAULT_MIN_YEAR", "NormalizeStats", "normalize"]


@dataclass
class NormalizeStats:
    """Counts of records seen and dropped by the normalizer."""

    seen: int = 0
    kept: int = 0
    dropped_year: int = 0
    dropped_gram: int = 0

    @property
    def dropped(self) -> int:
        return self.dropped_year + self.dropped_gram


def normalize(
    raw: Iterable[RawRecord],
    *,
    matcher: Optional[GramMatcher] = None,
    min_year: int = DEFAULT_MIN_YEAR,
    stats: Optional[NormalizeStats] = None,
) -> Iterator[NormalizedRecord]:
    """
    Yield lower-cased records from ``raw`` that pass the year and gram rules.

    Records are dropped silently when ``year < min_year`` or when the
    lower-cased gram is rejected by ``matcher`` (default: a full match of
    ``[A-Za-z+'-]+``). Page and book counts are discarded.
    """
    if matcher is None:
        matcher = make_gram_matcher()
    if stats is None:
        stats = NormalizeStats()

    for rec in raw:
        stats.seen += 1
        if rec.year < min_year:
            stats.dropped_year += 1
            continue

        gram = rec.gram.lower()
        if not matcher(gram):
            stats.dropped_gram += 1
            continue

        stats.kept += 1
        yield NormalizedRecord(gram=gram, year=rec.year, occurrences=rec.occurrences)

    logger.info(
        "Normalized %s of %s records (%s before %d, %s rejected grams)",
        f"{stats.kept:,}",
        f"{stats.seen:,}",
        f"{stats.dropped_year:,}",
        min_year,
        f"{stats.dropped_gram:,}",
    )
