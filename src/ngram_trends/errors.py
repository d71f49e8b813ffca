"""Exception hierarchy for the trend pipeline."""

from __future__ import annotations

__all__ = [
    "TrendPipelineError",
    "MalformedRecordError",
    "ZeroCorpusError",
    "UpstreamDependencyError",
    "MissingDatasetError",
    "IncompleteDatasetError",
    "StaleDatasetError",
    "PipelineBusyError",
]


class TrendPipelineError(Exception):
    """Base class for all pipeline errors."""


class MalformedRecordError(TrendPipelineError, ValueError):
    """A raw input line could not be parsed into a RawRecord."""

    def __init__(self, line: str, reason: str):
        self.line = line
        self.reason = reason
        super().__init__(f"{reason}: {line[:80]!r}")


class ZeroCorpusError(TrendPipelineError, ArithmeticError):
    """A decade has zero total occurrences, so no ratio is defined."""

    def __init__(self, decade: int):
        self.decade = decade
        super().__init__(f"Decade {decade} has zero total occurrences")


class UpstreamDependencyError(TrendPipelineError):
    """A stage input dataset cannot be used; the run must abort."""


class MissingDatasetError(UpstreamDependencyError):
    """The dataset was never written or has been removed."""


class IncompleteDatasetError(UpstreamDependencyError):
    """The dataset was not committed or its contents are truncated."""


class StaleDatasetError(UpstreamDependencyError):
    """A newer version of the dataset has replaced the one requested."""


class PipelineBusyError(TrendPipelineError, RuntimeError):
    """A pipeline run is already active against the same datasets."""
