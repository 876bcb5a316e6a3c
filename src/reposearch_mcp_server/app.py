"""Process entry point for the RepoSearch MCP server.

Usage:
    # stdio transport (default, for MCP clients that spawn the server)
    python -m reposearch_mcp_server

    # streamable HTTP transport
    python -m reposearch_mcp_server --transport http --port 15010

Every option can also be set through ``REPOSEARCH_*`` environment variables.
"""

import argparse
from collections.abc import Sequence
import logging

from pydantic import ValidationError

from reposearch_mcp_server import __version__
from reposearch_mcp_server.config import Settings
from reposearch_mcp_server.observability import (
    build_trace_resource_attributes,
    configure_logging,
    configure_trace_exporter,
    init_metrics,
    init_tracing,
)
from reposearch_mcp_server.server import create_server


logger = logging.getLogger(__name__)


def build_argument_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="reposearch-mcp-server",
        description="MCP server for searching text content of files within a directory",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "--transport",
        choices=("stdio", "http"),
        help="MCP transport (default: REPOSEARCH_MCP_TRANSPORT or stdio)",
    )
    parser.add_argument("--host", help="Bind host for the http transport")
    parser.add_argument("--port", type=int, help="Bind port for the http transport")
    parser.add_argument(
        "--log-level",
        choices=("debug", "info", "warning", "error", "critical"),
        help="Root log level",
    )
    parser.add_argument("--plain-logs", action="store_true", help="Plain text logs instead of JSON")
    return parser


def _apply_overrides(settings: Settings, args: argparse.Namespace) -> Settings:
    overrides: dict[str, object] = {}
    if args.transport:
        overrides["mcp_transport"] = args.transport
    if args.host:
        overrides["mcp_host"] = args.host
    if args.port is not None:
        overrides["mcp_port"] = args.port
    if args.log_level:
        overrides["log_level"] = args.log_level
    if args.plain_logs:
        overrides["log_json"] = False
    return settings.model_copy(update=overrides) if overrides else settings


def main(argv: Sequence[str] | None = None) -> int:
    args = build_argument_parser().parse_args(argv)

    try:
        settings = _apply_overrides(Settings(), args)
    except ValidationError as exc:
        configure_logging(json_output=False)
        logger.error("Configuration is invalid: %s", exc)
        return 1

    configure_logging(settings.log_level, settings.log_json)

    provider = init_tracing(resource_attributes=build_trace_resource_attributes(settings.observability))
    configure_trace_exporter(settings.observability, provider)
    init_metrics()

    mcp = create_server(settings)
    logger.info("Starting RepoSearch MCP server %s (%s transport)", __version__, settings.mcp_transport)

    try:
        if settings.mcp_transport == "http":
            mcp.run(transport="http", host=settings.mcp_host, port=settings.mcp_port)
        else:
            mcp.run(transport="stdio")
    except KeyboardInterrupt:
        logger.info("Interrupted, shutting down")
    return 0
