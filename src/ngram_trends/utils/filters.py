# ngram_trends/utils/filters.py
from __future__ import annotations

import re
from typing import Callable, Pattern, Union

DEFAULT_GRAM_PATTERN = r"[A-Za-z+'-]+"

GramMatcher = Callable[[str], bool]

__all__ = ["DEFAULT_GRAM_PATTERN", "GramMatcher", "make_gram_matcher"]


def make_gram_matcher(
    pattern: Union[str, Pattern[str]] = DEFAULT_GRAM_PATTERN,
) -> GramMatcher:
    """
    Return predicate(gram) -> bool accepting grams that fully match pattern.

    Notes
    -----
    - The pattern is compiled once; the predicate only calls fullmatch().
    - Matching is anchored at both ends: "hello123" does not match
      "[A-Za-z]+", it is rejected rather than truncated.
    - Empty grams never match.
    - The predicate carries ``matcher.pattern`` and ``matcher.flags`` from
      the compiled regex; dataset lineage uses them to identify the rule.
    """
    rx = pattern if isinstance(pattern, re.Pattern) else re.compile(pattern)
    fullmatch = rx.fullmatch

    def matcher(gram: str) -> bool:
        return bool(gram) and fullmatch(gram) is not None

    matcher.pattern = rx.pattern  # type: ignore[attr-defined]
    matcher.flags = rx.flags  # type: ignore[attr-defined]
    return matcher
