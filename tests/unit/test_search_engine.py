"""Unit tests for the search engine end to end over real directory trees."""

from __future__ import annotations

from pathlib import Path

import pytest

from reposearch_mcp_server.config import Settings
from reposearch_mcp_server.domain.search import SearchOptions
from reposearch_mcp_server.search import walker as walker_module
from reposearch_mcp_server.search.errors import (
    FileReadError,
    InvalidSearchInputError,
    SearchRootError,
)
from reposearch_mcp_server.search_engine import SearchEngine, make_search_options, search


class TestMakeSearchOptions:
    def test_defaults(self):
        options = make_search_options("foo")
        assert options.query == "foo"
        assert options.max_output_bytes == 4096

    def test_bad_budget_reported_as_invalid_input(self):
        with pytest.raises(InvalidSearchInputError, match="max_output_bytes"):
            make_search_options("foo", max_output_bytes=-7)


class TestSearchScenarios:
    @pytest.mark.asyncio
    async def test_text_file_found_binary_skipped(self, make_tree):
        root = make_tree({"a.txt": "hello world", "b.bin": b"hello\x00world"})
        outcome = await search(str(root), SearchOptions(query="world"))
        assert [r.model_dump() for r in outcome.results] == [
            {"file": "a.txt", "line": 1, "content": "hello world", "match_start": 6, "match_end": 11}
        ]
        assert outcome.summary.match_count == 1
        assert outcome.summary.limit_exceeded is False

    @pytest.mark.asyncio
    async def test_ignore_file_excludes_matches(self, make_tree):
        root = make_tree({".reposearchignore": "*.log\n", "a.txt": "x", "debug.log": "x"})
        outcome = await search(root, SearchOptions(query="x"))
        assert {r.file for r in outcome.results} == {"a.txt"}

    @pytest.mark.asyncio
    async def test_uncompilable_ignore_pattern_is_tolerated(self, make_tree):
        root = make_tree({".reposearchignore": "[z-a].txt\n*.log\n", "a.txt": "needle", "b.log": "needle"})
        outcome = await search(root, SearchOptions(query="needle"))
        assert [r.file for r in outcome.results] == ["a.txt"]

    @pytest.mark.asyncio
    async def test_ten_thousand_matches_unlimited(self, make_tree):
        root = make_tree({"many.txt": "x\n" * 10_000})
        outcome = await search(root, SearchOptions(query="x", max_output_bytes=-1))
        assert len(outcome.results) == 10_000
        assert outcome.summary.match_count == 10_000
        assert outcome.summary.limit_exceeded is False

    @pytest.mark.asyncio
    async def test_ten_thousand_matches_default_budget(self, make_tree):
        root = make_tree({"many.txt": "x\n" * 10_000})
        outcome = await search(root, SearchOptions(query="x"))
        assert outcome.results == ()
        assert outcome.summary.match_count == 10_000
        assert outcome.summary.total_bytes > 4096
        assert outcome.summary.limit_exceeded is True

    @pytest.mark.asyncio
    async def test_budget_decides_all_or_nothing(self, make_tree):
        root = make_tree({"a.txt": "one two\nthree two"})
        full = await search(root, SearchOptions(query="two", max_output_bytes=-1))
        total = full.summary.total_bytes
        at_limit = await search(root, SearchOptions(query="two", max_output_bytes=total))
        below = await search(root, SearchOptions(query="two", max_output_bytes=total - 1))
        assert at_limit.results == full.results
        assert below.results == ()
        assert below.summary.model_dump() == {**full.summary.model_dump(), "limit_exceeded": True}

    @pytest.mark.asyncio
    async def test_include_content_only_changes_content(self, make_tree):
        root = make_tree({"a.txt": "alpha beta\nbeta gamma", "sub/b.md": "beta"})
        with_content = await search(root, SearchOptions(query="beta", max_output_bytes=-1))
        without = await search(root, SearchOptions(query="beta", include_content=False, max_output_bytes=-1))
        assert [r.model_dump(exclude={"content"}) for r in with_content.results] == [
            r.model_dump(exclude={"content"}) for r in without.results
        ]
        assert all(r.content is None for r in without.results)
        assert with_content.summary.match_count == without.summary.match_count

    @pytest.mark.asyncio
    async def test_repeated_searches_are_identical(self, make_tree):
        root = make_tree({"a.txt": "foo\nbar foo", "nested/b.txt": "foo"})
        options = SearchOptions(query="foo")
        assert await search(root, options) == await search(root, options)

    @pytest.mark.asyncio
    async def test_records_grouped_per_file_in_line_order(self, make_tree):
        root = make_tree({"a.txt": "x\nx x\nnone\nx", "b.txt": "x", "c/d.txt": "x\nx"})
        outcome = await search(root, SearchOptions(query="x", max_output_bytes=-1))
        files_in_order = [r.file for r in outcome.results]
        seen: list[str] = []
        for name in files_in_order:
            if not seen or seen[-1] != name:
                assert name not in seen
                seen.append(name)
        for name in seen:
            positions = [(r.line, r.match_start) for r in outcome.results if r.file == name]
            assert positions == sorted(positions)

    @pytest.mark.asyncio
    async def test_relative_paths_use_forward_slashes(self, make_tree):
        root = make_tree({"a/b/c.txt": "needle"})
        outcome = await search(root, SearchOptions(query="needle"))
        assert outcome.results[0].file == "a/b/c.txt"

    @pytest.mark.asyncio
    async def test_no_matches(self, make_tree):
        root = make_tree({"a.txt": "hello"})
        outcome = await search(root, SearchOptions(query="absent"))
        assert outcome.results == ()
        assert outcome.summary.match_count == 0
        assert outcome.summary.total_bytes == 0

    @pytest.mark.asyncio
    async def test_user_home_expanded(self, make_tree, monkeypatch):
        root = make_tree({"a.txt": "hello"})
        monkeypatch.setenv("HOME", str(root))
        outcome = await search("~", SearchOptions(query="hello"))
        assert outcome.summary.match_count == 1


class TestSearchErrors:
    @pytest.mark.asyncio
    async def test_missing_directory(self, tmp_path: Path):
        with pytest.raises(SearchRootError):
            await search(tmp_path / "missing", SearchOptions(query="x"))

    @pytest.mark.asyncio
    @pytest.mark.parametrize("directory", ["", "   "])
    async def test_empty_directory_argument(self, directory):
        with pytest.raises(InvalidSearchInputError):
            await search(directory, SearchOptions(query="x"))

    @pytest.mark.asyncio
    async def test_invalid_regex(self, tmp_path: Path):
        with pytest.raises(InvalidSearchInputError):
            await search(tmp_path, SearchOptions(query="[", is_regex=True))

    @pytest.mark.asyncio
    @pytest.mark.parametrize(("on_read_error", "fatal"), [("skip", False), ("fail", True)])
    async def test_file_vanishing_after_walk(self, make_tree, monkeypatch, on_read_error, fatal):
        root = make_tree({"a.txt": "x"})
        original = walker_module._scan_directory

        def scan_with_phantom(directory, follow_symlinks):
            entries = original(directory, follow_symlinks)
            phantom = walker_module._DirEntry(Path(directory) / "phantom.txt", False, True, False)
            return [phantom, *entries]

        async def always_text(self, path):
            return True

        monkeypatch.setattr(walker_module, "_scan_directory", scan_with_phantom)
        monkeypatch.setattr(walker_module.DirectoryWalker, "_is_text_file", always_text)
        engine = SearchEngine(Settings(on_read_error=on_read_error))
        if fatal:
            with pytest.raises(FileReadError, match="phantom.txt"):
                await engine.search(root, SearchOptions(query="x"))
        else:
            outcome = await engine.search(root, SearchOptions(query="x"))
            assert [r.file for r in outcome.results] == ["a.txt"]


class TestSearchEngineSettings:
    @pytest.mark.asyncio
    async def test_custom_ignore_file_name(self, make_tree):
        root = make_tree({".searchignore": "secret/\n", "secret/a.txt": "x", "open/b.txt": "x"})
        engine = SearchEngine(Settings(ignore_file_name=".searchignore"))
        outcome = await engine.search(root, SearchOptions(query="x"))
        assert {r.file for r in outcome.results} == {"open/b.txt"}

    @pytest.mark.asyncio
    async def test_engine_reused_across_searches(self, make_tree):
        first = make_tree({"one/.reposearchignore": "*.txt\n", "one/a.txt": "x", "two/a.txt": "x"})
        engine = SearchEngine()
        hidden = await engine.search(first / "one", SearchOptions(query="x"))
        visible = await engine.search(first / "two", SearchOptions(query="x"))
        assert hidden.summary.match_count == 0
        assert visible.summary.match_count == 1
