"""Directory-scoped text search exposed as an MCP tool."""

__version__ = "1.0.0"
