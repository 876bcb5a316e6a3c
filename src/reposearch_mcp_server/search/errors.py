"""Exceptions raised by the search engine.

Only invocation-level failures are raised. Per-file conditions (binary or
undecodable content, missing ignore file) are handled where they occur.
"""


class SearchError(Exception):
    """Base class for failures that abort a whole search invocation."""


class InvalidSearchInputError(SearchError, ValueError):
    """Raised when search options or the directory argument are malformed."""


class SearchRootError(SearchError, OSError):
    """Raised when the root directory does not exist or cannot be enumerated."""


class SearchTimeoutError(SearchError, TimeoutError):
    """Raised when the search deadline passes between two files."""


class FileReadError(SearchError, OSError):
    """Raised for an unreadable file or subdirectory when skipping is disabled."""
