"""Domain models for directory text search.

Following Cosmic Python principles:
- Value Objects are immutable (frozen=True)
- No infrastructure dependencies

Everything here is created fresh for one invocation and discarded once the
response has been returned.
"""

from typing import Any, Self

import orjson
from pydantic import BaseModel, ConfigDict, Field, model_validator


UNLIMITED_OUTPUT = -1


class SearchOptions(BaseModel):
    """Caller-supplied options for one search.

    ``max_output_bytes`` of ``-1`` disables the output budget. Any other
    negative value is rejected at construction time.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    query: str
    is_regex: bool = False
    case_sensitive: bool = False
    whole_word: bool = False
    include_content: bool = True
    max_output_bytes: int = Field(default=4096, ge=UNLIMITED_OUTPUT)

    @property
    def is_unlimited(self) -> bool:
        return self.max_output_bytes == UNLIMITED_OUTPUT

    def exceeds_budget(self, total_bytes: int) -> bool:
        """Return True when ``total_bytes`` is over the output budget."""
        return not self.is_unlimited and total_bytes > self.max_output_bytes


class MatchRecord(BaseModel):
    """Value object for a single match within a line.

    ``file`` is relative to the search root with forward slashes, ``line`` is
    1-based and ``match_start``/``match_end`` are 0-based character offsets
    into the (unstripped) line. ``content`` is the stripped line text and is
    only present when the caller asked for it.
    """

    model_config = ConfigDict(frozen=True)

    file: str
    line: int = Field(ge=1)
    content: str | None = None
    match_start: int = Field(ge=0)
    match_end: int = Field(ge=0)

    def to_payload(self) -> dict[str, Any]:
        """Serialisable form; ``content`` is omitted when absent."""
        return self.model_dump(exclude_none=True)

    def estimated_size(self) -> int:
        """Bytes this record occupies in the compact JSON response."""
        return len(orjson.dumps(self.to_payload()))


class SearchSummary(BaseModel):
    """Totals for a search, always computed over every match found."""

    model_config = ConfigDict(frozen=True)

    match_count: int = Field(default=0, ge=0)
    total_bytes: int = Field(default=0, ge=0)
    limit_exceeded: bool = False


class SearchOutcome(BaseModel):
    """Complete result of one search invocation.

    All-or-nothing: when the output budget was exceeded no records are
    carried, only the summary.
    """

    model_config = ConfigDict(frozen=True)

    results: tuple[MatchRecord, ...] = ()
    summary: SearchSummary = Field(default_factory=SearchSummary)

    @model_validator(mode="after")
    def _check_all_or_nothing(self) -> Self:
        if self.summary.limit_exceeded and self.results:
            raise ValueError("results must be empty when the output limit was exceeded")
        return self

    def limit_message(self, max_output_bytes: int) -> str | None:
        """Human-readable next step when the output budget was exceeded."""
        if not self.summary.limit_exceeded:
            return None
        return (
            f"Output limit exceeded: {self.summary.match_count} matches would need "
            f"{self.summary.total_bytes} bytes but max_output_bytes is {max_output_bytes}. "
            "Narrow the query (e.g. enable whole_word or case_sensitive, or search a subdirectory) "
            "or raise max_output_bytes (-1 for unlimited)."
        )
