# tests/test_config.py
from pathlib import Path

import pytest

from ngram_trends.config import PipelineConfig


def _cfg(**kw):
    base = dict(raw_paths=["a.tsv", "b.tsv.gz"], work_dir="work", output_dir="out")
    base.update(kw)
    return PipelineConfig(**base)


def test_defaults_match_trend_rules():
    cfg = _cfg()
    assert cfg.min_year == 1890
    assert cfg.min_ratio == 0.000001
    assert cfg.min_decade == 190
    assert cfg.gram_pattern == r"[A-Za-z+'-]+"
    assert cfg.field_separator == "\x01"
    assert cfg.mode == "restart"
    assert cfg.num_workers == 1 and cfg.num_fragments == 1


def test_paths_are_coerced():
    cfg = _cfg()
    assert cfg.raw_paths == (Path("a.tsv"), Path("b.tsv.gz"))
    assert isinstance(cfg.work_dir, Path)
    assert isinstance(cfg.output_dir, Path)


def test_config_is_frozen():
    cfg = _cfg()
    with pytest.raises(Exception):
        cfg.min_year = 1900


@pytest.mark.parametrize(
    "kw",
    [
        {"raw_paths": []},
        {"mode": "append"},
        {"num_workers": 0},
        {"num_fragments": 0},
        {"keep_versions": 0},
        {"write_batch_size": 0},
        {"min_ratio": -1.0},
        {"field_separator": ""},
        {"field_separator": "\n"},
        {"gram_pattern": "[unclosed"},
    ],
)
def test_invalid_settings_rejected(kw):
    with pytest.raises(ValueError):
        _cfg(**kw)
