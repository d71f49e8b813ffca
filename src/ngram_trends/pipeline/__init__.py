"""Pipeline orchestration, logging, and run reports."""

from .orchestrate import PipelineResult, PipelineState, TrendPipeline, run_trend_pipeline

__all__ = ["TrendPipeline", "PipelineState", "PipelineResult", "run_trend_pipeline"]
