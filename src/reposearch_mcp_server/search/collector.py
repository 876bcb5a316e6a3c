"""Line-by-line match collection with an all-or-nothing output budget.

Every match is counted and sized, even after the budget has been exceeded,
so the summary always reflects the full result. Records are only kept while
the running total is within budget; if the final total is over budget the
kept records are dropped as well and only the summary is returned.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
import logging
from pathlib import Path
import re
import time

import anyio
import anyio.lowlevel

from reposearch_mcp_server.domain.search import MatchRecord, SearchOptions, SearchOutcome, SearchSummary
from reposearch_mcp_server.search.errors import FileReadError, SearchTimeoutError
from reposearch_mcp_server.search.ignore import relative_posix_path
from reposearch_mcp_server.search.pattern import iter_line_matches


logger = logging.getLogger(__name__)


class MatchCollector:
    """Apply a compiled pattern to walked files and accumulate match records.

    Args:
        encoding: Encoding used to read file content
        skip_unreadable: Skip files that fail to read after being walked;
            when False such a failure aborts the search with FileReadError
        timeout_seconds: Optional deadline, checked between files only
    """

    def __init__(
        self,
        *,
        encoding: str = "utf-8",
        skip_unreadable: bool = True,
        timeout_seconds: float | None = None,
    ):
        self.encoding = encoding
        self.skip_unreadable = skip_unreadable
        self.timeout_seconds = timeout_seconds
        self.files_searched = 0
        self.files_skipped = 0

    async def collect(
        self,
        paths: AsyncIterator[Path],
        root_dir: str | Path,
        pattern: re.Pattern[str],
        options: SearchOptions,
    ) -> SearchOutcome:
        deadline = time.monotonic() + self.timeout_seconds if self.timeout_seconds else None
        results: list[MatchRecord] = []
        match_count = 0
        total_bytes = 0

        async for path in paths:
            if deadline is not None and time.monotonic() > deadline:
                raise SearchTimeoutError(
                    f"Search timed out after {self.timeout_seconds}s ({self.files_searched} files searched)"
                )

            text = await self._read_text(path)
            if text is None:
                continue

            rel = relative_posix_path(root_dir, path) or path.as_posix()
            for line_number, line in enumerate(text.split("\n"), start=1):
                content = line.strip() if options.include_content else None
                for start, end in iter_line_matches(pattern, line):
                    record = MatchRecord(
                        file=rel,
                        line=line_number,
                        content=content,
                        match_start=start,
                        match_end=end,
                    )
                    match_count += 1
                    total_bytes += record.estimated_size()
                    if not options.exceeds_budget(total_bytes):
                        results.append(record)

            self.files_searched += 1
            await anyio.lowlevel.checkpoint()

        limit_exceeded = options.exceeds_budget(total_bytes)
        if limit_exceeded:
            logger.warning(
                "Output limit exceeded: %d matches, %d bytes > %d bytes; returning summary only",
                match_count,
                total_bytes,
                options.max_output_bytes,
            )
            results.clear()

        summary = SearchSummary(match_count=match_count, total_bytes=total_bytes, limit_exceeded=limit_exceeded)
        return SearchOutcome(results=tuple(results), summary=summary)

    async def _read_text(self, path: Path) -> str | None:
        try:
            # newline="" keeps line endings untranslated; lines are split on "\n" only
            async with await anyio.open_file(path, encoding=self.encoding, newline="") as fp:
                return await fp.read()
        except (OSError, UnicodeDecodeError) as exc:
            if not self.skip_unreadable:
                raise FileReadError(f"Cannot read file '{path}': {exc}") from exc
            logger.warning("Skipping file that became unreadable during search %s: %s", path, exc)
            self.files_skipped += 1
            return None
