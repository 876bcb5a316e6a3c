"""Search engine: one operation, ``search(directory, options) -> SearchOutcome``.

Each call builds its own ignore filter, walker and collector, so concurrent
searches share nothing but read-only process defaults. The pipeline is
strictly sequential:

    IgnoreFilter -> DirectoryWalker -> MatchCollector
                                     ^
    SearchOptions -> compile_search_pattern

Results are ordered by walk order, then line number, then match position.
"""

from __future__ import annotations

from contextlib import aclosing
import logging
import os
from pathlib import Path
import time

from opentelemetry.trace import SpanKind
from pydantic import ValidationError

from reposearch_mcp_server.config import Settings
from reposearch_mcp_server.domain.search import SearchOptions, SearchOutcome
from reposearch_mcp_server.observability.metrics import FILES_SCANNED, MATCHES_FOUND, SEARCH_LATENCY
from reposearch_mcp_server.observability.tracing import create_span
from reposearch_mcp_server.search.collector import MatchCollector
from reposearch_mcp_server.search.errors import InvalidSearchInputError, SearchError
from reposearch_mcp_server.search.ignore import IgnoreFilter
from reposearch_mcp_server.search.pattern import compile_search_pattern
from reposearch_mcp_server.search.walker import DirectoryWalker


logger = logging.getLogger(__name__)


def make_search_options(
    query: str,
    *,
    is_regex: bool = False,
    case_sensitive: bool = False,
    whole_word: bool = False,
    include_content: bool = True,
    max_output_bytes: int = 4096,
) -> SearchOptions:
    """Build validated options, reporting problems as InvalidSearchInputError."""
    try:
        return SearchOptions(
            query=query,
            is_regex=is_regex,
            case_sensitive=case_sensitive,
            whole_word=whole_word,
            include_content=include_content,
            max_output_bytes=max_output_bytes,
        )
    except ValidationError as exc:
        details = "; ".join(f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in exc.errors())
        raise InvalidSearchInputError(f"Invalid search options: {details}") from exc


class SearchEngine:
    """Directory text search with ignore rules and an output budget.

    Args:
        settings: Engine configuration; read once, never mutated
    """

    def __init__(self, settings: Settings | None = None):
        self.settings = settings or Settings()

    def _resolve_root(self, directory: str | Path) -> Path:
        if not isinstance(directory, (str, Path)) or not str(directory).strip():
            raise InvalidSearchInputError("Directory must be a non-empty path string")
        return Path(os.path.abspath(os.path.expanduser(str(directory))))

    async def search(self, directory: str | Path, options: SearchOptions) -> SearchOutcome:
        """Search every eligible text file under ``directory``.

        Raises:
            InvalidSearchInputError: malformed directory argument or regex
            SearchRootError: the root directory cannot be enumerated
            SearchTimeoutError: the configured deadline passed between files
            FileReadError: a walked file failed to read and skipping is disabled
        """
        root = self._resolve_root(directory)
        pattern = compile_search_pattern(options)
        settings = self.settings
        skip_unreadable = settings.is_skip_on_read_error()

        ignore_filter = IgnoreFilter(settings.ignore_file_name, encoding=settings.file_encoding)
        walker = DirectoryWalker(
            ignore_filter,
            encoding=settings.file_encoding,
            follow_symlinks=settings.follow_symlinks,
            skip_unreadable=skip_unreadable,
        )
        collector = MatchCollector(
            encoding=settings.file_encoding,
            skip_unreadable=skip_unreadable,
            timeout_seconds=settings.search_timeout_seconds,
        )

        logger.info(
            "Search started - root=%s, query_len=%d, regex=%s, case_sensitive=%s, whole_word=%s, max_output_bytes=%d",
            root,
            len(options.query),
            options.is_regex,
            options.case_sensitive,
            options.whole_word,
            options.max_output_bytes,
        )
        start = time.perf_counter()
        with create_span(
            "search.execute",
            kind=SpanKind.INTERNAL,
            attributes={
                "search.root": str(root),
                "search.query_length": len(options.query),
                "search.is_regex": options.is_regex,
                "search.whole_word": options.whole_word,
                "search.max_output_bytes": options.max_output_bytes,
            },
        ) as span:
            try:
                async with aclosing(walker.walk(root)) as paths:
                    outcome = await collector.collect(paths, root, pattern, options)
            except SearchError:
                SEARCH_LATENCY.labels(outcome="error").observe(time.perf_counter() - start)
                raise

            summary = outcome.summary
            label = "limit_exceeded" if summary.limit_exceeded else "ok"
            elapsed = time.perf_counter() - start
            SEARCH_LATENCY.labels(outcome=label).observe(elapsed)
            FILES_SCANNED.labels(outcome=label).inc(collector.files_searched)
            MATCHES_FOUND.labels(outcome=label).inc(summary.match_count)

            span.set_attribute("search.files_searched", collector.files_searched)
            span.set_attribute("search.match_count", summary.match_count)
            span.set_attribute("search.total_bytes", summary.total_bytes)
            span.set_attribute("search.limit_exceeded", summary.limit_exceeded)

        stats = walker.stats
        logger.info(
            "Search completed - root=%s, files=%d, ignored=%d, binary=%d, matches=%d, bytes=%d, "
            "limit_exceeded=%s, %.3fs",
            root,
            collector.files_searched,
            stats.ignored,
            stats.binary_skipped,
            summary.match_count,
            summary.total_bytes,
            summary.limit_exceeded,
            elapsed,
        )
        return outcome


async def search(directory: str | Path, options: SearchOptions, settings: Settings | None = None) -> SearchOutcome:
    """Run one search with a fresh engine."""
    return await SearchEngine(settings).search(directory, options)
