# tests/pipeline/test_orchestrate.py
from __future__ import annotations

import gzip
import threading
from concurrent.futures import ProcessPoolExecutor, ThreadPoolExecutor
from pathlib import Path

import pytest

import ngram_trends.pipeline.orchestrate as orchestrate
from ngram_trends.config import PipelineConfig
from ngram_trends.datasets import DatasetStore
from ngram_trends.errors import PipelineBusyError, StaleDatasetError
from ngram_trends.pipeline.orchestrate import PipelineState, TrendPipeline, run_trend_pipeline
from ngram_trends.stages.emit import read_fragments, read_success_marker
from ngram_trends.utils.filters import make_gram_matcher


CORPUS = [
    # 189x: total 1000
    "the\t1895\t100\t10\t5",
    "rose\t1896\t400\t10\t5",
    "tulip\t1897\t500\t10\t5",
    # 190x: total 1500
    "The\t1905\t150\t10\t5",
    "rose\t1906\t300\t10\t5",
    "tulip\t1907\t1000\t10\t5",
    "newcomer\t1908\t50\t10\t5",
    # dropped before aggregation
    "rose\t1850\t999\t10\t5",
    "Hello123\t1905\t999\t10\t5",
    "not\ta\tvalid\tline",
]


@pytest.fixture(autouse=True)
def quiet_proctitle(monkeypatch):
    monkeypatch.setattr(orchestrate, "setproctitle", lambda title: None)


def _write_corpus(tmp_path: Path, lines=CORPUS) -> Path:
    src = tmp_path / "corpus.tsv.gz"
    with gzip.open(src, "wt", encoding="utf-8") as fh:
        fh.write("\n".join(lines) + "\n")
    return src


def _config(tmp_path: Path, src: Path, **kw) -> PipelineConfig:
    kw.setdefault("progress", False)
    return PipelineConfig(
        raw_paths=(src,),
        work_dir=tmp_path / "work",
        output_dir=tmp_path / "out",
        **kw,
    )


def test_end_to_end_ranks_decade_risers(tmp_path: Path):
    src = _write_corpus(tmp_path)
    result = run_trend_pipeline(_config(tmp_path, src))

    assert result.read_stats.malformed == 1
    assert result.normalize_stats.dropped_year == 1
    assert result.normalize_stats.dropped_gram == 1
    assert result.normalized.count == 7
    assert result.decade_ratios.count == 7
    assert result.change_records.count == 3

    rows = list(read_fragments(tmp_path / "out"))
    assert [(r.gram, r.decade) for r in rows] == [("tulip", 190), ("the", 190), ("rose", 190)]

    by_gram = {r.gram: r for r in rows}
    assert by_gram["the"].ratio == pytest.approx(0.1)
    assert by_gram["the"].increase == pytest.approx(1.0)
    assert by_gram["tulip"].increase == pytest.approx((1000 / 1500) / 0.5)
    assert by_gram["rose"].increase == pytest.approx(0.2 / 0.4)
    assert "newcomer" not in by_gram

    assert read_success_marker(tmp_path / "out").startswith("change_records@v1|")
    assert result.emitted.records == 3


def test_state_returns_to_idle_and_visits_each_stage(tmp_path: Path, monkeypatch):
    src = _write_corpus(tmp_path)
    pipeline = TrendPipeline(_config(tmp_path, src))
    seen = []
    real = TrendPipeline._transition

    def spy(self, state):
        seen.append(state)
        real(self, state)

    monkeypatch.setattr(TrendPipeline, "_transition", spy)
    assert pipeline.state is PipelineState.IDLE
    pipeline.run()

    assert seen == [
        PipelineState.NORMALIZING,
        PipelineState.AGGREGATING,
        PipelineState.TRENDING,
        PipelineState.EMITTING,
        PipelineState.IDLE,
    ]
    assert pipeline.state is PipelineState.IDLE


def test_restart_writes_new_versions(tmp_path: Path):
    src = _write_corpus(tmp_path)
    cfg = _config(tmp_path, src)
    first = run_trend_pipeline(cfg)
    second = run_trend_pipeline(cfg)

    assert second.normalized.version == first.normalized.version + 1
    assert second.change_records.version == 2
    assert not second.reused
    assert list(read_fragments(tmp_path / "out"))


def test_resume_reuses_current_datasets_and_output(tmp_path: Path):
    src = _write_corpus(tmp_path)
    first = run_trend_pipeline(_config(tmp_path, src))
    again = run_trend_pipeline(_config(tmp_path, src, mode="resume"))

    assert again.normalized == first.normalized
    assert again.change_records == first.change_records
    assert again.reused == {
        "normalized@v1",
        "decade_ratios@v1",
        "change_records@v1",
    }
    assert again.emitted is None
    assert again.read_stats is None


def test_resume_recomputes_downstream_of_changed_parameter(tmp_path: Path):
    src = _write_corpus(tmp_path)
    run_trend_pipeline(_config(tmp_path, src))
    again = run_trend_pipeline(_config(tmp_path, src, mode="resume", min_ratio=0.3))

    assert again.reused == {"normalized@v1", "decade_ratios@v1"}
    assert again.change_records.version == 2
    assert [r.gram for r in read_fragments(tmp_path / "out")] == ["tulip"]


def test_resume_redoes_emit_when_layout_changes(tmp_path: Path):
    src = _write_corpus(tmp_path)
    run_trend_pipeline(_config(tmp_path, src))
    again = run_trend_pipeline(_config(tmp_path, src, mode="resume", num_fragments=2))

    assert again.emitted is not None
    assert len(again.emitted.fragments) == 2


def test_threaded_partition_workers(tmp_path: Path):
    src = _write_corpus(tmp_path)
    inline = run_trend_pipeline(_config(tmp_path, src))
    inline_rows = list(read_fragments(tmp_path / "out"))

    threaded = TrendPipeline(_config(tmp_path, src, num_workers=3, use_threads=True))
    assert threaded.executor_class is ThreadPoolExecutor
    threaded.run()
    assert list(read_fragments(tmp_path / "out")) == inline_rows
    assert inline.change_records.count == len(inline_rows)


def test_process_partition_workers(tmp_path: Path):
    src = _write_corpus(tmp_path)
    run_trend_pipeline(_config(tmp_path, src))
    inline_rows = list(read_fragments(tmp_path / "out"))

    pooled = TrendPipeline(_config(tmp_path, src, num_workers=2))
    assert pooled.executor_class is ProcessPoolExecutor
    pooled.run()
    assert list(read_fragments(tmp_path / "out")) == inline_rows


def test_custom_matcher_is_used(tmp_path: Path):
    src = _write_corpus(tmp_path)

    def no_tulips(gram: str) -> bool:
        return gram != "tulip"

    result = run_trend_pipeline(_config(tmp_path, src), matcher=no_tulips)
    grams = {r.gram for r in read_fragments(tmp_path / "out")}
    assert grams == {"the", "rose"}
    # hello123 now passes, both tulip lines do not
    assert result.normalize_stats.dropped_gram == 2


def test_missing_input_aborts_before_writing(tmp_path: Path):
    cfg = _config(tmp_path, tmp_path / "nope.tsv")
    pipeline = TrendPipeline(cfg)
    with pytest.raises(FileNotFoundError):
        pipeline.run()
    assert pipeline.state is PipelineState.IDLE
    assert not (tmp_path / "out").exists()


def test_stale_upstream_aborts_dependent_stage(tmp_path: Path, monkeypatch):
    src = _write_corpus(tmp_path)
    pipeline = TrendPipeline(_config(tmp_path, src))
    real_aggregate = TrendPipeline._aggregate

    def sneaky(self, store: DatasetStore, normalized, reused):
        # another writer replaces the dataset between stages
        store.write("normalized", normalized.kind, store.read(normalized), lineage="other")
        return real_aggregate(self, store, normalized, reused)

    monkeypatch.setattr(TrendPipeline, "_aggregate", sneaky)
    with pytest.raises(StaleDatasetError):
        pipeline.run()
    assert not (tmp_path / "out").exists()
    assert pipeline.state is PipelineState.IDLE


def test_run_is_not_reentrant(tmp_path: Path, monkeypatch):
    src = _write_corpus(tmp_path)
    pipeline = TrendPipeline(_config(tmp_path, src))
    inside = threading.Event()
    release = threading.Event()
    real_normalize = TrendPipeline._normalize

    def slow_normalize(self, store, reused):
        inside.set()
        release.wait(timeout=10)
        return real_normalize(self, store, reused)

    monkeypatch.setattr(TrendPipeline, "_normalize", slow_normalize)

    t = threading.Thread(target=lambda: pipeline.run())
    t.start()
    try:
        assert inside.wait(timeout=10)
        with pytest.raises(PipelineBusyError):
            pipeline.run()
        with pytest.raises(PipelineBusyError):
            TrendPipeline(_config(tmp_path, src)).run()
    finally:
        release.set()
        t.join(timeout=30)
    assert pipeline.state is PipelineState.IDLE


def test_log_to_file_writes_log_in_work_dir(tmp_path: Path):
    import logging

    root = logging.getLogger()
    before = list(root.handlers)
    src = _write_corpus(tmp_path)
    try:
        result = run_trend_pipeline(_config(tmp_path, src, log_to_file=True))
        assert result.log_path.parent == tmp_path / "work"
        assert "Pipeline state: normalizing -> aggregating" in result.log_path.read_text()
    finally:
        for h in list(root.handlers):
            if h not in before:
                root.removeHandler(h)
                h.close()


def test_out_of_range_year_is_skipped_not_fatal(tmp_path: Path):
    src = _write_corpus(tmp_path, CORPUS + ["bad\t99999999999\t1\t1\t1"])
    result = run_trend_pipeline(_config(tmp_path, src))

    assert result.read_stats.malformed == 2
    assert result.change_records.count == 3
    assert {r.gram for r in read_fragments(tmp_path / "out")} == {"the", "rose", "tulip"}


def test_resume_rebuilds_when_matcher_pattern_changes(tmp_path: Path):
    src = _write_corpus(tmp_path)
    run_trend_pipeline(_config(tmp_path, src), matcher=make_gram_matcher("[a-z]+"))
    again = run_trend_pipeline(
        _config(tmp_path, src, mode="resume"), matcher=make_gram_matcher("rose")
    )

    assert again.normalized.version == 2
    assert not again.reused
    assert {r.gram for r in read_fragments(tmp_path / "out")} == {"rose"}


def test_resume_reuses_same_matcher_pattern(tmp_path: Path):
    src = _write_corpus(tmp_path)
    run_trend_pipeline(_config(tmp_path, src), matcher=make_gram_matcher("[a-z]+"))
    again = run_trend_pipeline(
        _config(tmp_path, src, mode="resume"), matcher=make_gram_matcher("[a-z]+")
    )
    assert "normalized@v1" in again.reused


def test_resume_never_reuses_output_of_opaque_matcher(tmp_path: Path):
    src = _write_corpus(tmp_path)

    def no_tulips(gram: str) -> bool:
        return gram != "tulip"

    run_trend_pipeline(_config(tmp_path, src), matcher=no_tulips)
    again = run_trend_pipeline(_config(tmp_path, src, mode="resume"), matcher=no_tulips)

    assert again.normalized.version == 2
    assert again.decade_ratios.version == 2
    assert not again.reused
