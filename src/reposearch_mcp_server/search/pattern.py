"""Compile search options into a single regular expression."""

from __future__ import annotations

from collections.abc import Iterator
import re

from reposearch_mcp_server.domain.search import SearchOptions
from reposearch_mcp_server.search.errors import InvalidSearchInputError


def build_pattern_source(options: SearchOptions) -> str:
    """Return the regex source for ``options``.

    Literal queries are escaped first, then whole-word anchors are added
    around the (possibly escaped) query.
    """
    source = options.query if options.is_regex else re.escape(options.query)
    if options.whole_word:
        source = rf"\b(?:{source})\b"
    return source


def compile_search_pattern(options: SearchOptions) -> re.Pattern[str]:
    """Compile ``options`` into a pattern used with find-all semantics.

    Raises:
        InvalidSearchInputError: if a regex query does not compile
    """
    flags = 0 if options.case_sensitive else re.IGNORECASE
    try:
        return re.compile(build_pattern_source(options), flags)
    except re.error as exc:
        raise InvalidSearchInputError(f"Invalid regular expression {options.query!r}: {exc}") from exc


def iter_line_matches(pattern: re.Pattern[str], line: str) -> Iterator[tuple[int, int]]:
    """Yield ``(start, end)`` of every non-overlapping match in ``line``.

    Zero-length matches are reported once per position and the scan always
    moves forward, so an empty query terminates.
    """
    position = 0
    length = len(line)
    while position <= length:
        match = pattern.search(line, position)
        if match is None:
            return
        start, end = match.span()
        yield start, end
        position = end if end > start else end + 1
