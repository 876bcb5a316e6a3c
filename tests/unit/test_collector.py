"""Unit tests for MatchCollector."""

from __future__ import annotations

from collections.abc import AsyncIterator, Iterable
from pathlib import Path
from types import SimpleNamespace

import pytest

from reposearch_mcp_server.domain.search import SearchOptions
from reposearch_mcp_server.search import collector as collector_module
from reposearch_mcp_server.search.collector import MatchCollector
from reposearch_mcp_server.search.errors import FileReadError, SearchTimeoutError
from reposearch_mcp_server.search.pattern import compile_search_pattern


async def _paths(paths: Iterable[Path]) -> AsyncIterator[Path]:
    for path in paths:
        yield path


async def _collect(root: Path, names: list[str], collector: MatchCollector | None = None, **options):
    search_options = SearchOptions(**options)
    collector = collector or MatchCollector()
    return await collector.collect(
        _paths(root / name for name in names), root, compile_search_pattern(search_options), search_options
    )


class TestRecords:
    @pytest.mark.asyncio
    async def test_record_fields(self, make_tree):
        root = make_tree({"src/a.txt": "first\n  hello world  \nlast"})
        outcome = await _collect(root, ["src/a.txt"], query="world")
        [record] = outcome.results
        assert record.file == "src/a.txt"
        assert record.line == 2
        assert record.content == "hello world"
        assert (record.match_start, record.match_end) == (8, 13)
        assert outcome.summary.match_count == 1
        assert outcome.summary.total_bytes == record.estimated_size()

    @pytest.mark.asyncio
    async def test_order_follows_paths_then_lines_then_columns(self, make_tree):
        root = make_tree({"b.txt": "x x\nx", "a.txt": "x"})
        outcome = await _collect(root, ["b.txt", "a.txt"], query="x")
        assert [(r.file, r.line, r.match_start) for r in outcome.results] == [
            ("b.txt", 1, 0),
            ("b.txt", 1, 2),
            ("b.txt", 2, 0),
            ("a.txt", 1, 0),
        ]

    @pytest.mark.asyncio
    async def test_crlf_lines_keep_carriage_return_out_of_content(self, make_tree):
        root = make_tree({"a.txt": "alpha\r\nbeta\r\n"})
        outcome = await _collect(root, ["a.txt"], query="beta")
        [record] = outcome.results
        assert record.line == 2
        assert record.content == "beta"

    @pytest.mark.asyncio
    async def test_content_omitted_when_not_requested(self, make_tree):
        root = make_tree({"a.txt": "hello world"})
        with_content = await _collect(root, ["a.txt"], query="world")
        without = await _collect(root, ["a.txt"], query="world", include_content=False)
        assert without.results[0].content is None
        assert [(r.file, r.line, r.match_start, r.match_end) for r in without.results] == [
            (r.file, r.line, r.match_start, r.match_end) for r in with_content.results
        ]
        assert without.summary.total_bytes < with_content.summary.total_bytes

    @pytest.mark.asyncio
    async def test_counts_searched_files(self, make_tree):
        root = make_tree({"a.txt": "x", "b.txt": "y"})
        collector = MatchCollector()
        await _collect(root, ["a.txt", "b.txt"], collector, query="x")
        assert collector.files_searched == 2


class TestOutputBudget:
    @pytest.mark.asyncio
    async def test_within_budget_returns_everything(self, make_tree):
        root = make_tree({"a.txt": "x\n" * 5})
        outcome = await _collect(root, ["a.txt"], query="x", max_output_bytes=10_000)
        assert len(outcome.results) == 5
        assert outcome.summary.limit_exceeded is False

    @pytest.mark.asyncio
    async def test_over_budget_returns_summary_only(self, make_tree):
        root = make_tree({"a.txt": "x\n" * 50})
        outcome = await _collect(root, ["a.txt"], query="x", max_output_bytes=100)
        assert outcome.results == ()
        assert outcome.summary.limit_exceeded is True
        assert outcome.summary.match_count == 50
        assert outcome.summary.total_bytes > 100

    @pytest.mark.asyncio
    async def test_total_equal_to_budget_is_not_exceeded(self, make_tree):
        root = make_tree({"a.txt": "x"})
        unlimited = await _collect(root, ["a.txt"], query="x", max_output_bytes=-1)
        exact = await _collect(root, ["a.txt"], query="x", max_output_bytes=unlimited.summary.total_bytes)
        assert exact.summary.limit_exceeded is False
        assert len(exact.results) == 1

    @pytest.mark.asyncio
    async def test_zero_budget_with_no_matches(self, make_tree):
        root = make_tree({"a.txt": "nothing here"})
        outcome = await _collect(root, ["a.txt"], query="zzz", max_output_bytes=0)
        assert outcome.summary.match_count == 0
        assert outcome.summary.limit_exceeded is False

    @pytest.mark.asyncio
    async def test_unlimited_budget(self, make_tree):
        root = make_tree({"a.txt": "x\n" * 2000})
        outcome = await _collect(root, ["a.txt"], query="x", max_output_bytes=-1)
        assert len(outcome.results) == 2000
        assert outcome.summary.limit_exceeded is False


class TestReadFailures:
    @pytest.mark.asyncio
    async def test_vanished_file_skipped(self, make_tree):
        root = make_tree({"a.txt": "x"})
        collector = MatchCollector()
        outcome = await _collect(root, ["gone.txt", "a.txt"], collector, query="x")
        assert [r.file for r in outcome.results] == ["a.txt"]
        assert collector.files_skipped == 1

    @pytest.mark.asyncio
    async def test_vanished_file_fatal_when_not_skipping(self, make_tree):
        root = make_tree({"a.txt": "x"})
        with pytest.raises(FileReadError, match="gone.txt"):
            await _collect(root, ["gone.txt"], MatchCollector(skip_unreadable=False), query="x")


class TestTimeout:
    @pytest.mark.asyncio
    async def test_deadline_checked_between_files(self, make_tree, monkeypatch):
        root = make_tree({"a.txt": "x", "b.txt": "x"})
        ticks = iter([0.0, 0.5, 2.0])
        monkeypatch.setattr(collector_module, "time", SimpleNamespace(monotonic=lambda: next(ticks)))
        collector = MatchCollector(timeout_seconds=1.0)
        with pytest.raises(SearchTimeoutError, match="1 files searched"):
            await _collect(root, ["a.txt", "b.txt"], collector, query="x")

    @pytest.mark.asyncio
    async def test_no_deadline_by_default(self, make_tree):
        root = make_tree({"a.txt": "x"})
        outcome = await _collect(root, ["a.txt"], query="x")
        assert outcome.summary.match_count == 1
