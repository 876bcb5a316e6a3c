"""Pydantic models for MCP tool responses."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

from reposearch_mcp_server.domain.search import MatchRecord, SearchOutcome, SearchSummary


class SearchFilesResponse(BaseModel):
    """Response model for the ``search`` MCP tool.

    Exactly one of three shapes is produced:

    - success: ``results`` holds every match, ``summary`` the totals
    - output limit exceeded: ``results`` is empty, ``summary.limit_exceeded``
      is true and ``message`` tells the caller how to proceed
    - failure: ``error`` describes why the search could not run

    Example Success Response:
        {
            "directory": "/repo",
            "query": "world",
            "results": [
                {"file": "a.txt", "line": 1, "content": "hello world", "match_start": 6, "match_end": 11}
            ],
            "summary": {"match_count": 1, "total_bytes": 75, "limit_exceeded": false}
        }
    """

    directory: str = Field(description="Directory that was searched")
    query: str = Field(description="Query as received")
    results: list[MatchRecord] = Field(default_factory=list, description="Matches in walk/line/column order")
    summary: SearchSummary | None = Field(default=None, description="Totals over every match found")
    message: str | None = Field(default=None, description="Guidance when the output limit was exceeded")
    error: str | None = Field(default=None, description="Error message if the search failed")

    @classmethod
    def from_outcome(
        cls, directory: str, query: str, outcome: SearchOutcome, max_output_bytes: int
    ) -> SearchFilesResponse:
        return cls(
            directory=directory,
            query=query,
            results=list(outcome.results),
            summary=outcome.summary,
            message=outcome.limit_message(max_output_bytes),
        )

    @classmethod
    def from_error(cls, directory: str, query: str, error: str) -> SearchFilesResponse:
        return cls(directory=directory, query=query, error=error)

    def to_payload(self) -> dict[str, Any]:
        """JSON-ready dict; unset optional fields (including record content) are omitted."""
        return self.model_dump(exclude_none=True)
