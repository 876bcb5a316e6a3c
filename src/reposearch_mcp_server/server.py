"""FastMCP server exposing directory search as the ``search`` tool."""

import logging
from typing import Annotated, Any

from fastmcp import Context, FastMCP
from opentelemetry.trace import SpanKind

from reposearch_mcp_server.config import Settings
from reposearch_mcp_server.observability import (
    REQUEST_COUNT,
    REQUEST_LATENCY,
    create_span,
    get_trace_context,
    set_trace_context,
    track_latency,
)
from reposearch_mcp_server.search.errors import SearchError
from reposearch_mcp_server.search_engine import SearchEngine, make_search_options
from reposearch_mcp_server.utils.models import SearchFilesResponse


logger = logging.getLogger(__name__)

TOOL_NAME = "search"


def create_server(settings: Settings | None = None, engine: SearchEngine | None = None) -> FastMCP:
    """Create the MCP server with the search tool registered."""
    settings = settings or Settings()
    engine = engine or SearchEngine(settings)

    mcp = FastMCP(
        name=settings.server_name,
        instructions=(
            "Search text content of files within a directory. Pass an absolute directory path and a "
            "keyword or regex. Large result sets are replaced by a summary; narrow the query or raise "
            "max_output_bytes when that happens."
        ),
        mask_error_details=settings.mask_error_details,
    )
    register_search_tool(mcp, engine)
    return mcp


def register_search_tool(mcp: FastMCP, engine: SearchEngine) -> None:
    @mcp.tool(name=TOOL_NAME, annotations={"title": "Search Files", "readOnlyHint": True})
    async def search(
        directory: Annotated[str, "Directory to search in (use absolute path)"],
        query: Annotated[str, "Search query (keyword or regex)"],
        is_regex: Annotated[bool, "Whether to treat query as regex pattern"] = False,
        case_sensitive: Annotated[bool, "Whether to match case sensitively"] = False,
        whole_word: Annotated[bool, "Whether to match whole words only"] = False,
        include_content: Annotated[bool, "Whether to include the matching line text in each result"] = True,
        max_output_bytes: Annotated[
            int | None, "Maximum size of the results in bytes (-1 for unlimited, default from server settings)"
        ] = None,
        ctx: Context | None = None,
    ) -> dict[str, Any]:
        """Search for text content in files within a directory.

        Files excluded by the directory's .reposearchignore (or the built-in
        defaults: node_modules/, .git/, build/, dist/, binary extensions) and
        binary files are skipped.

        Returns:
            {
                "directory": "/abs/path",
                "query": "world",
                "results": [
                    {"file": "src/a.txt", "line": 1, "content": "hello world",
                     "match_start": 6, "match_end": 11}
                ],
                "summary": {"match_count": 1, "total_bytes": 79, "limit_exceeded": false}
            }

            When the output limit is exceeded, "results" is empty and
            "message" explains how to narrow the search.
        """
        ids = get_trace_context()
        set_trace_context(ids["trace_id"], ids["span_id"], tool=TOOL_NAME)
        budget = engine.settings.default_max_output_bytes if max_output_bytes is None else max_output_bytes

        with (
            track_latency(REQUEST_LATENCY, tool=TOOL_NAME),
            create_span(
                "mcp.tool.search",
                kind=SpanKind.INTERNAL,
                attributes={
                    "mcp.tool.name": TOOL_NAME,
                    "search.directory": directory[:200],
                    "search.query": query[:100],
                },
            ) as span,
        ):
            logger.info(
                "search called - directory='%s', query='%s', is_regex=%s, whole_word=%s",
                directory[:200],
                query[:50],
                is_regex,
                whole_word,
            )
            try:
                options = make_search_options(
                    query,
                    is_regex=is_regex,
                    case_sensitive=case_sensitive,
                    whole_word=whole_word,
                    include_content=include_content,
                    max_output_bytes=budget,
                )
                outcome = await engine.search(directory, options)
            except SearchError as exc:
                span.set_attribute("error", True)
                logger.error("search failed - directory='%s': %s", directory[:200], exc)
                REQUEST_COUNT.labels(tool=TOOL_NAME, status="error").inc()
                return SearchFilesResponse.from_error(directory, query, f"Search error: {exc}").to_payload()
            except Exception:
                logger.exception("search crashed - directory='%s'", directory[:200])
                REQUEST_COUNT.labels(tool=TOOL_NAME, status="error").inc()
                raise

            response = SearchFilesResponse.from_outcome(directory, query, outcome, budget)
            span.set_attribute("search.result_count", len(response.results))
            span.set_attribute("search.limit_exceeded", outcome.summary.limit_exceeded)
            status = "limit_exceeded" if outcome.summary.limit_exceeded else "ok"
            REQUEST_COUNT.labels(tool=TOOL_NAME, status=status).inc()
            if ctx is not None:
                await ctx.info(
                    f"{outcome.summary.match_count} matches ({outcome.summary.total_bytes} bytes) in {directory}"
                )
            return response.to_payload()
