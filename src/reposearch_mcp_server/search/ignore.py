"""Ignore-rule engine deciding which paths take part in a directory walk.

Rules use ignore-file syntax:

- blank lines and ``#`` comments are skipped (``\\#`` and ``\\!`` escape them)
- ``!pattern`` re-includes a path excluded by an earlier rule
- ``pattern/`` only matches directories
- a pattern containing ``/`` is anchored at the root, otherwise it matches
  the entry name at any depth
- ``*``, ``?``, ``[...]`` never cross ``/``; ``**`` spans directories

The last matching rule wins, and a path inside an excluded directory stays
excluded. Rule sets are plain immutable values: each search invocation loads
its own through :class:`IgnoreFilter` and passes it down explicitly.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
import logging
import os
from pathlib import Path
import re

import anyio


logger = logging.getLogger(__name__)

DEFAULT_IGNORE_FILE_NAME = ".reposearchignore"

DEFAULT_IGNORE_PATTERNS: tuple[str, ...] = (
    # Build and VCS directories
    "node_modules/",
    ".git/",
    "build/",
    "dist/",
    # Common binary files
    "*.exe",
    "*.dll",
    "*.so",
    "*.dylib",
    "*.jpg",
    "*.jpeg",
    "*.png",
    "*.gif",
    "*.mp3",
    "*.mp4",
    "*.zip",
    "*.tar.gz",
    # Common text files
    "!*.txt",
    "!*.md",
    "!*.js",
    "!*.ts",
    "!*.jsx",
    "!*.tsx",
    "!*.json",
    "!*.html",
    "!*.css",
    "!*.scss",
    "!*.less",
    "!*.py",
    "!*.java",
    "!*.c",
    "!*.cpp",
    "!*.h",
    "!*.hpp",
    "!*.rs",
    "!*.go",
    "!*.rb",
    "!*.php",
    "!*.xml",
    "!*.yaml",
    "!*.yml",
)


def _translate_char_class(pattern: str, start: int) -> tuple[str, int] | None:
    """Translate ``[...]`` beginning at ``start``; None when it is unterminated."""
    end = start + 1
    if end < len(pattern) and pattern[end] in "!^":
        end += 1
    if end < len(pattern) and pattern[end] == "]":
        end += 1
    while end < len(pattern) and pattern[end] != "]":
        end += 1
    if end >= len(pattern):
        return None

    body = pattern[start + 1 : end].replace("\\", "\\\\").replace("[", "\\[")
    # A bracket expression never matches the path separator
    if body[:1] in ("!", "^"):
        return f"[^{body[1:]}/]", end + 1
    return f"(?!/)[{body}]", end + 1


def translate_glob(pattern: str) -> str:
    """Convert an ignore-file glob into a regular expression source string."""
    parts: list[str] = []
    i = 0
    length = len(pattern)
    while i < length:
        char = pattern[i]
        if char == "*":
            if pattern.startswith("**", i):
                after = i + 2
                at_segment_start = i == 0 or pattern[i - 1] == "/"
                if at_segment_start and after < length and pattern[after] == "/":
                    parts.append("(?:.*/)?")
                    i = after + 1
                    continue
                if at_segment_start and after == length:
                    parts.append(".*")
                    i = after
                    continue
                # "a**b" behaves like a single star
                parts.append("[^/]*")
                i = after
                continue
            parts.append("[^/]*")
        elif char == "?":
            parts.append("[^/]")
        elif char == "[":
            translated = _translate_char_class(pattern, i)
            if translated is not None:
                parts.append(translated[0])
                i = translated[1]
                continue
            parts.append(re.escape(char))
        elif char == "\\" and i + 1 < length:
            parts.append(re.escape(pattern[i + 1]))
            i += 2
            continue
        else:
            parts.append(re.escape(char))
        i += 1
    return "".join(parts)


@dataclass(frozen=True, slots=True)
class IgnoreRule:
    """One parsed line of an ignore file."""

    pattern: str
    negated: bool = False
    dir_only: bool = False
    anchored: bool = False
    regex: re.Pattern[str] | None = None

    @classmethod
    def from_line(cls, line: str) -> IgnoreRule | None:
        """Parse a raw ignore-file line; comments, blanks and uncompilable patterns yield None."""
        text = line.rstrip("\r\n")
        if text.endswith("\\ "):
            text = text.rstrip(" ") + " "
        else:
            text = text.rstrip()
        if not text or text.startswith("#"):
            return None

        negated = False
        if text.startswith("!"):
            negated = True
            text = text[1:]
        elif text.startswith(("\\!", "\\#")):
            text = text[1:]

        dir_only = text.endswith("/")
        text = text.rstrip("/")
        anchored = "/" in text
        text = text.lstrip("/")
        if not text:
            return None

        try:
            regex = re.compile(translate_glob(text), re.DOTALL)
        except re.error as exc:
            logger.warning("Ignoring invalid ignore pattern %r: %s", line.strip(), exc)
            return None

        return cls(pattern=text, negated=negated, dir_only=dir_only, anchored=anchored, regex=regex)

    def matches(self, rel_posix: str, is_dir: bool) -> bool:
        if self.dir_only and not is_dir:
            return False
        target = rel_posix if self.anchored else rel_posix.rsplit("/", 1)[-1]
        return self.regex is not None and self.regex.fullmatch(target) is not None


@dataclass(frozen=True, slots=True)
class IgnoreRuleSet:
    """Ordered, immutable collection of ignore rules."""

    rules: tuple[IgnoreRule, ...] = ()
    source: str = "defaults"

    def __len__(self) -> int:
        return len(self.rules)

    def _last_match_ignores(self, rel_posix: str, is_dir: bool) -> bool:
        for rule in reversed(self.rules):
            if rule.matches(rel_posix, is_dir):
                return not rule.negated
        return False

    def ignores(self, rel_posix: str) -> bool:
        """Return True when a root-relative POSIX path is excluded.

        A trailing ``/`` marks the path as a directory.
        """
        is_dir = rel_posix.endswith("/")
        path = rel_posix.strip("/")
        if not path or path == ".":
            return False

        segments = path.split("/")
        for depth in range(1, len(segments)):
            if self._last_match_ignores("/".join(segments[:depth]), True):
                return True
        return self._last_match_ignores(path, is_dir)


def parse_ignore_rules(source: str | Iterable[str], *, origin: str = "inline") -> IgnoreRuleSet:
    """Parse ignore-file text (or an iterable of lines) into a rule set."""
    lines = source.splitlines() if isinstance(source, str) else source
    rules = tuple(rule for rule in (IgnoreRule.from_line(line) for line in lines) if rule is not None)
    return IgnoreRuleSet(rules=rules, source=origin)


DEFAULT_RULE_SET = parse_ignore_rules(DEFAULT_IGNORE_PATTERNS, origin="defaults")


def relative_posix_path(root: str | Path, path: str | Path) -> str | None:
    """Return ``path`` relative to ``root`` with forward slashes, or None if outside it."""
    rel = os.path.relpath(os.fspath(path), os.fspath(root))
    rel = rel.replace(os.sep, "/")
    if rel == ".." or rel.startswith("../"):
        return None
    return rel


def is_path_included(rule_set: IgnoreRuleSet, root: str | Path, path: str | Path, is_directory: bool) -> bool:
    """Decide whether ``path`` participates in a walk of ``root``.

    Pure function of its arguments; paths outside ``root`` are never included.
    """
    rel = relative_posix_path(root, path)
    if rel is None:
        return False
    if rel == ".":
        return True
    if is_directory:
        rel += "/"
    return not rule_set.ignores(rel)


class IgnoreFilter:
    """Loads the rule set for one root directory and answers inclusion queries.

    One instance serves one search invocation. ``initialize`` is idempotent:
    only the first call reads the ignore file.
    """

    def __init__(self, ignore_file_name: str = DEFAULT_IGNORE_FILE_NAME, *, encoding: str = "utf-8"):
        self.ignore_file_name = ignore_file_name
        self.encoding = encoding
        self._rule_set: IgnoreRuleSet | None = None

    @property
    def initialized(self) -> bool:
        return self._rule_set is not None

    @property
    def rule_set(self) -> IgnoreRuleSet:
        if self._rule_set is None:
            raise RuntimeError("IgnoreFilter.initialize() must be awaited before use")
        return self._rule_set

    async def initialize(self, root_dir: str | Path) -> IgnoreRuleSet:
        if self._rule_set is not None:
            return self._rule_set

        ignore_path = Path(root_dir) / self.ignore_file_name
        try:
            async with await anyio.open_file(ignore_path, encoding=self.encoding) as fp:
                text = await fp.read()
        except (OSError, UnicodeDecodeError) as exc:
            logger.debug("No usable ignore file at %s (%s); using default rules", ignore_path, exc)
            self._rule_set = DEFAULT_RULE_SET
        else:
            self._rule_set = parse_ignore_rules(text, origin=str(ignore_path))
            logger.debug("Loaded %d ignore rules from %s", len(self._rule_set), ignore_path)
        return self._rule_set

    def should_include(self, path: str | Path, root_dir: str | Path, is_directory: bool) -> bool:
        return is_path_included(self.rule_set, root_dir, path, is_directory)
