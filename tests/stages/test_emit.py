# tests/stages/test_emit.py
from pathlib import Path

import pytest

from ngram_trends.stages.emit import (
    SUCCESS_MARKER,
    emit,
    format_change_record,
    parse_change_line,
    read_fragments,
    read_success_marker,
)
from ngram_trends.types import ChangeRecord


def cr(gram, decade, ratio, increase):
    return ChangeRecord(gram=gram, decade=decade, ratio=ratio, increase=increase)


RANKED = [
    cr("fast", 190, 0.2, 2.0),
    cr("slow", 190, 0.15, 1.5),
    cr("up", 191, 0.3, 3.0),
    cr("down", 191, 0.01, 0.5),
    cr("new", 192, 0.1, 1.1),
]


def test_line_layout_uses_control_a_separator():
    line = format_change_record(cr("chateau-d'if", 190, 0.1, 1.0))
    assert line == "chateau-d'if\x01190\x010.1\x011.0\n"


def test_parse_change_line_rejects_wrong_field_count():
    with pytest.raises(ValueError):
        parse_change_line("a\x01190\x010.1\n")


def test_single_fragment_preserves_order(tmp_path: Path):
    out = tmp_path / "risers"
    result = emit(RANKED, out)

    assert result.records == 5
    assert result.decades == 3
    assert [p.name for p in result.fragments] == ["part-00000"]
    assert (out / SUCCESS_MARKER).exists()

    lines = (out / "part-00000").read_text(encoding="utf-8").splitlines()
    assert lines[0].split("\x01") == ["fast", "190", "0.2", "2.0"]
    assert list(read_fragments(out)) == RANKED


def test_decade_partitions_stay_whole_across_fragments(tmp_path: Path):
    out = tmp_path / "risers"
    result = emit(RANKED, out, num_fragments=2)

    assert [p.name for p in result.fragments] == ["part-00000", "part-00001"]
    first = [parse_change_line(l) for l in (out / "part-00000").read_text().splitlines()]
    second = [parse_change_line(l) for l in (out / "part-00001").read_text().splitlines()]

    assert [c.gram for c in first] == ["fast", "slow", "new"]
    assert [c.gram for c in second] == ["up", "down"]


def test_more_fragments_than_decades_leaves_empty_fragments(tmp_path: Path):
    out = tmp_path / "risers"
    emit(RANKED[:2], out, num_fragments=3)
    assert (out / "part-00002").read_text() == ""
    assert len(list(read_fragments(out))) == 2


def test_replaces_previous_output_entirely(tmp_path: Path):
    out = tmp_path / "risers"
    emit(RANKED, out, num_fragments=3)
    emit(RANKED[:1], out, num_fragments=1)

    assert sorted(p.name for p in out.iterdir()) == ["_SUCCESS", "part-00000"]
    assert list(read_fragments(out)) == RANKED[:1]
    assert not any(p.name.startswith(".risers.staging") for p in tmp_path.iterdir())


def test_custom_separator_and_marker(tmp_path: Path):
    out = tmp_path / "tsv"
    emit(RANKED[:1], out, separator="\t", marker="change_records@v3")
    assert (out / "part-00000").read_text() == "fast\t190\t0.2\t2.0\n"
    assert read_success_marker(out) == "change_records@v3"
    assert list(read_fragments(out, separator="\t")) == RANKED[:1]


def test_gram_containing_separator_aborts_without_touching_output(tmp_path: Path):
    out = tmp_path / "risers"
    emit(RANKED, out)

    with pytest.raises(ValueError):
        emit([cr("bad\x01gram", 190, 0.1, 1.0)], out)

    assert list(read_fragments(out)) == RANKED
    assert not any(".staging-" in p.name for p in tmp_path.iterdir())


def test_invalid_arguments(tmp_path: Path):
    with pytest.raises(ValueError):
        emit(RANKED, tmp_path / "x", num_fragments=0)
    with pytest.raises(ValueError):
        emit(RANKED, tmp_path / "x", separator="")


def test_read_fragments_requires_success_marker(tmp_path: Path):
    (tmp_path / "partial").mkdir()
    (tmp_path / "partial" / "part-00000").write_text("a\x01190\x010.1\x011.0\n")
    assert read_success_marker(tmp_path / "partial") is None
    with pytest.raises(FileNotFoundError):
        list(read_fragments(tmp_path / "partial"))


def test_floats_round_trip_exactly(tmp_path: Path):
    rec = cr("the", 190, 1 / 3, 0.1 + 0.2)
    emit([rec], tmp_path / "o")
    (back,) = read_fragments(tmp_path / "o")
    assert back == rec
