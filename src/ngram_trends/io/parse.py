# ngram_trends/io/parse.py
from __future__ import annotations

import logging

from ngram_trends.errors import MalformedRecordError
from ngram_trends.types import RawRecord

logger = logging.getLogger(__name__)

RAW_FIELD_COUNT = 5
INT64_MAX = 2**63 - 1
# Years are stored as int32 in stage datasets
INT32_MIN = -(2**31)
INT32_MAX = 2**31 - 1

__all__ = ["RAW_FIELD_COUNT", "parse_raw_line"]


def _parse_count(value: str, field: str, line: str) -> int:
    try:
        n = int(value)
    except ValueError:
        raise MalformedRecordError(line, f"non-integer {field}") from None
    if n < 0 or n > INT64_MAX:
        raise MalformedRecordError(line, f"{field} out of int64 range")
    return n


def parse_raw_line(line: str) -> RawRecord:
    """
    Parse "gram\\tYEAR\\tOCCURRENCES\\tPAGES\\tBOOKS" into a RawRecord.

    - Trailing newline characters are ignored; other whitespace is kept,
      since it belongs to the gram.
    - Raises MalformedRecordError on a wrong column count, an empty gram,
      or counts that are not non-negative int64 values.
    """
    s = line.rstrip("\r\n")
    parts = s.split("\t")
    if len(parts) != RAW_FIELD_COUNT:
        raise MalformedRecordError(
            s, f"expected {RAW_FIELD_COUNT} columns, got {len(parts)}"
        )

    gram, y_str, o_str, p_str, b_str = parts
    if not gram:
        raise MalformedRecordError(s, "empty gram")

    try:
        year = int(y_str)
    except ValueError:
        raise MalformedRecordError(s, "non-integer year") from None
    if not INT32_MIN <= year <= INT32_MAX:
        raise MalformedRecordError(s, "year out of int32 range")

    return RawRecord(
        gram=gram,
        year=year,
        occurrences=_parse_count(o_str, "occurrences", s),
        pages=_parse_count(p_str, "pages", s),
        books=_parse_count(b_str, "books", s),
    )
