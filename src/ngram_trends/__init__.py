"""Decade-over-decade trends of word usage in yearly n-gram corpora."""

from .types import ChangeRecord, DecadeRatio, NormalizedRecord, RawRecord, decade_of
from .config import PipelineConfig
from .stages import aggregate_by_decade, detect_trends, emit, normalize, read_fragments
from .utils.filters import make_gram_matcher
from .pipeline import PipelineState, TrendPipeline, run_trend_pipeline

__all__ = [
    # Pipeline API
    "run_trend_pipeline",
    "TrendPipeline",
    "PipelineState",

    # Stage functions
    "normalize",
    "aggregate_by_decade",
    "detect_trends",
    "emit",
    "read_fragments",
    "make_gram_matcher",

    # Configuration
    "PipelineConfig",

    # Records
    "RawRecord",
    "NormalizedRecord",
    "DecadeRatio",
    "ChangeRecord",
    "decade_of",
]
