"""Domain layer: immutable value objects for one search invocation."""

from reposearch_mcp_server.domain.search import MatchRecord, SearchOptions, SearchOutcome, SearchSummary


__all__ = ["MatchRecord", "SearchOptions", "SearchOutcome", "SearchSummary"]
