"""Depth-first directory walk yielding candidate text files.

The walk is an async generator: finite, single pass, ordered by the entry
order the file system reports for each directory. Excluded directories are
pruned without looking inside them. Files whose content cannot be decoded or
contains a NUL byte are treated as binary and skipped silently.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from dataclasses import dataclass
import logging
import os
from pathlib import Path

import anyio
import anyio.to_thread

from reposearch_mcp_server.search.errors import FileReadError, SearchRootError
from reposearch_mcp_server.search.ignore import IgnoreFilter


logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class _DirEntry:
    path: Path
    is_dir: bool
    is_file: bool
    is_symlink: bool


@dataclass(slots=True)
class WalkStats:
    """Counters for one walk, used for logging and metrics."""

    directories_visited: int = 0
    files_yielded: int = 0
    binary_skipped: int = 0
    ignored: int = 0
    symlinks_skipped: int = 0
    unreadable_directories: int = 0


def _scan_directory(directory: Path, follow_symlinks: bool) -> list[_DirEntry]:
    entries: list[_DirEntry] = []
    with os.scandir(directory) as iterator:
        for entry in iterator:
            try:
                is_symlink = entry.is_symlink()
                is_dir = entry.is_dir(follow_symlinks=follow_symlinks)
                is_file = entry.is_file(follow_symlinks=follow_symlinks)
            except OSError:
                # Entry vanished or cannot be stat'ed; it is neither file nor dir for us
                continue
            entries.append(_DirEntry(Path(entry.path), is_dir, is_file, is_symlink))
    return entries


class DirectoryWalker:
    """Enumerate eligible text files below a root directory.

    Args:
        ignore_filter: Per-invocation filter; initialized on first walk
        encoding: Encoding used for the text/binary probe
        follow_symlinks: Follow symbolic links (cycles are cut by real path)
        skip_unreadable: Skip subdirectories that cannot be listed instead of
            raising :class:`FileReadError`
    """

    def __init__(
        self,
        ignore_filter: IgnoreFilter,
        *,
        encoding: str = "utf-8",
        follow_symlinks: bool = False,
        skip_unreadable: bool = True,
    ):
        self.ignore_filter = ignore_filter
        self.encoding = encoding
        self.follow_symlinks = follow_symlinks
        self.skip_unreadable = skip_unreadable
        self.stats = WalkStats()

    async def walk(self, root_dir: str | Path) -> AsyncIterator[Path]:
        """Yield absolute paths of eligible files under ``root_dir``.

        Raises:
            SearchRootError: if the root itself cannot be enumerated
        """
        root = Path(root_dir)
        await self.ignore_filter.initialize(root)

        try:
            entries = await anyio.to_thread.run_sync(_scan_directory, root, self.follow_symlinks)
        except OSError as exc:
            raise SearchRootError(f"Cannot read directory '{root}': {exc.strerror or exc}") from exc

        visited = {os.path.realpath(root)} if self.follow_symlinks else set()
        self.stats.directories_visited += 1
        async for path in self._walk_entries(root, entries, visited):
            yield path

    async def _walk_directory(self, root: Path, directory: Path, visited: set[str]) -> AsyncIterator[Path]:
        if self.follow_symlinks:
            real = os.path.realpath(directory)
            if real in visited:
                logger.debug("Skipping already visited directory %s", directory)
                return
            visited.add(real)

        try:
            entries = await anyio.to_thread.run_sync(_scan_directory, directory, self.follow_symlinks)
        except OSError as exc:
            if not self.skip_unreadable:
                raise FileReadError(f"Cannot read directory '{directory}': {exc.strerror or exc}") from exc
            logger.warning("Skipping unreadable directory %s: %s", directory, exc)
            self.stats.unreadable_directories += 1
            return

        self.stats.directories_visited += 1
        async for path in self._walk_entries(root, entries, visited):
            yield path

    async def _walk_entries(self, root: Path, entries: list[_DirEntry], visited: set[str]) -> AsyncIterator[Path]:
        for entry in entries:
            if entry.is_symlink and not self.follow_symlinks:
                self.stats.symlinks_skipped += 1
                continue

            if entry.is_dir:
                if not self.ignore_filter.should_include(entry.path, root, is_directory=True):
                    logger.debug("Pruning ignored directory %s", entry.path)
                    self.stats.ignored += 1
                    continue
                async for path in self._walk_directory(root, entry.path, visited):
                    yield path
            elif entry.is_file:
                if not self.ignore_filter.should_include(entry.path, root, is_directory=False):
                    logger.debug("Skipping ignored file %s", entry.path)
                    self.stats.ignored += 1
                    continue
                if not await self._is_text_file(entry.path):
                    self.stats.binary_skipped += 1
                    continue
                self.stats.files_yielded += 1
                yield entry.path

    async def _is_text_file(self, path: Path) -> bool:
        try:
            async with await anyio.open_file(path, encoding=self.encoding) as fp:
                content = await fp.read()
        except (OSError, UnicodeDecodeError) as exc:
            logger.debug("Treating %s as binary/unreadable: %s", path, exc)
            return False
        return "\0" not in content
