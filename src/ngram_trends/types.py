"""Record types flowing between pipeline stages."""

from __future__ import annotations

from dataclasses import dataclass

__all__ = [
    "RawRecord",
    "NormalizedRecord",
    "DecadeRatio",
    "ChangeRecord",
    "decade_of",
]


def decade_of(year: int) -> int:
    """Return the decade bucket for a year (1923 -> 192)."""
    return year // 10


@dataclass(frozen=True)
class RawRecord:
    """One row of the yearly occurrence corpus, as supplied."""

    gram: str
    year: int
    occurrences: int
    pages: int
    books: int


@dataclass(frozen=True)
class NormalizedRecord:
    """A raw record that passed the year and character-class filters."""

    gram: str
    """Lower-cased n-gram text"""

    year: int
    occurrences: int

    @property
    def decade(self) -> int:
        return decade_of(self.year)


@dataclass(frozen=True)
class DecadeRatio:
    """Share of a decade's total occurrences held by one gram."""

    gram: str
    decade: int
    ratio: float


@dataclass(frozen=True)
class ChangeRecord:
    """Relative growth of a gram's ratio against the previous decade."""

    gram: str
    decade: int
    ratio: float
    increase: float
