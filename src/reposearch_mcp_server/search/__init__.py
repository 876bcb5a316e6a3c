"""Search engine building blocks: ignore rules, walker, pattern compiler and collector."""

from reposearch_mcp_server.search.collector import MatchCollector
from reposearch_mcp_server.search.errors import (
    FileReadError,
    InvalidSearchInputError,
    SearchError,
    SearchRootError,
    SearchTimeoutError,
)
from reposearch_mcp_server.search.ignore import (
    DEFAULT_IGNORE_PATTERNS,
    IgnoreFilter,
    IgnoreRule,
    IgnoreRuleSet,
    is_path_included,
    parse_ignore_rules,
)
from reposearch_mcp_server.search.pattern import compile_search_pattern, iter_line_matches
from reposearch_mcp_server.search.walker import DirectoryWalker


__all__ = [
    "DEFAULT_IGNORE_PATTERNS",
    "DirectoryWalker",
    "FileReadError",
    "IgnoreFilter",
    "IgnoreRule",
    "IgnoreRuleSet",
    "InvalidSearchInputError",
    "MatchCollector",
    "SearchError",
    "SearchRootError",
    "SearchTimeoutError",
    "compile_search_pattern",
    "is_path_included",
    "iter_line_matches",
    "parse_ignore_rules",
]
