"""Shared test fixtures and configuration."""

import os
from pathlib import Path

import pytest


# Complete test environment that overrides every configurable value
TEST_ENV = {
    "REPOSEARCH_IGNORE_FILE_NAME": ".reposearchignore",
    "REPOSEARCH_DEFAULT_MAX_OUTPUT_BYTES": "4096",
    "REPOSEARCH_FILE_ENCODING": "utf-8",
    "REPOSEARCH_FOLLOW_SYMLINKS": "false",
    "REPOSEARCH_ON_READ_ERROR": "skip",
    "REPOSEARCH_LOG_LEVEL": "info",
    "REPOSEARCH_LOG_JSON": "true",
    "REPOSEARCH_MCP_TRANSPORT": "stdio",
    "REPOSEARCH_MCP_HOST": "127.0.0.1",
    "REPOSEARCH_MCP_PORT": "15010",
    "REPOSEARCH_MASK_ERROR_DETAILS": "true",
    "REPOSEARCH_OBSERVABILITY__ENABLED": "false",
}

for key, value in TEST_ENV.items():
    os.environ[key] = value


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    """Reset REPOSEARCH_* variables to test defaults before each test."""
    for key in list(os.environ):
        if key.startswith("REPOSEARCH_") and key not in TEST_ENV:
            monkeypatch.delenv(key, raising=False)
    for key, value in TEST_ENV.items():
        monkeypatch.setenv(key, value)


def write_tree(root: Path, files: dict[str, str | bytes]) -> Path:
    """Create ``files`` (relative path -> content) below ``root``."""
    for rel, content in files.items():
        target = root / rel
        target.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(content, bytes):
            target.write_bytes(content)
        else:
            target.write_text(content, encoding="utf-8")
    return root


@pytest.fixture
def make_tree(tmp_path: Path):
    """Factory fixture building a directory tree under ``tmp_path``."""

    def _make(files: dict[str, str | bytes]) -> Path:
        return write_tree(tmp_path, files)

    return _make
