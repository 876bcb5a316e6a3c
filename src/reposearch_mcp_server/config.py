"""Centralized configuration for reposearch-mcp-server using Pydantic Settings."""

from typing import Annotated, Literal

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ObservabilityCollectorConfig(BaseModel):
    """Configuration for OTLP trace export."""

    model_config = {"extra": "forbid"}

    enabled: Annotated[bool, Field(description="Enable OTLP trace export to an external collector")] = False

    otlp_protocol: Annotated[Literal["http", "grpc"], Field(description="OTLP transport protocol")] = "grpc"

    collector_endpoint: Annotated[
        str,
        Field(
            description="OTLP collector endpoint (HTTP uses /v1/traces)",
            examples=["http://localhost:4317", "http://localhost:4318/v1/traces"],
        ),
    ] = "http://localhost:4317"

    headers: Annotated[
        dict[str, str],
        Field(description="Optional headers to include with OTLP requests"),
    ] = Field(default_factory=dict)

    timeout_seconds: Annotated[int, Field(ge=1, le=60, description="OTLP exporter timeout in seconds")] = 10

    grpc_insecure: Annotated[bool, Field(description="Allow insecure gRPC (plaintext) connections")] = True

    resource_attributes: Annotated[
        dict[str, str],
        Field(description="Additional OpenTelemetry resource attributes for trace export"),
    ] = Field(default_factory=dict)


class Settings(BaseSettings):
    """Strictly typed configuration loaded from ``REPOSEARCH_*`` environment variables.

    Nested observability settings use ``__`` as delimiter, e.g.
    ``REPOSEARCH_OBSERVABILITY__ENABLED=true``.
    """

    model_config = SettingsConfigDict(
        env_prefix="REPOSEARCH_",
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        case_sensitive=False,
        validate_default=True,
        extra="ignore",
    )

    # Search behaviour
    ignore_file_name: str = Field(
        default=".reposearchignore",
        min_length=1,
        description="Ignore-rules file looked up at the root of every searched directory",
    )
    default_max_output_bytes: int = Field(
        default=4096,
        ge=-1,
        description="Output budget applied when the caller does not pass one (-1 = unlimited)",
    )
    file_encoding: str = Field(default="utf-8", description="Encoding used to decode candidate text files")
    follow_symlinks: bool = Field(
        default=False,
        description="Follow symbolic links during the walk (cycles are detected by real path)",
    )
    on_read_error: Literal["skip", "fail"] = Field(
        default="skip",
        description="What to do when a walked file or subdirectory cannot be read: skip it or fail the search",
    )
    search_timeout_seconds: float | None = Field(
        default=None,
        gt=0,
        description="Optional deadline for one search, checked between files",
    )

    # Logging
    log_level: str = Field(default="info", description="Logging level")
    log_json: bool = Field(default=True, description="Emit structured JSON logs")

    # Server settings
    server_name: str = Field(default="RepoSearch", description="Name advertised by the MCP server")
    mcp_transport: Literal["stdio", "http"] = Field(default="stdio", description="MCP transport")
    mcp_host: str = Field(default="127.0.0.1", description="MCP server host (http transport)")
    mcp_port: int = Field(default=15010, ge=1, le=65535, description="MCP server port (http transport)")
    mask_error_details: bool = Field(
        default=True, description="Mask internal error details in responses (security best practice)"
    )

    observability: ObservabilityCollectorConfig = Field(default_factory=ObservabilityCollectorConfig)

    def is_skip_on_read_error(self) -> bool:
        """Check whether unreadable files are skipped instead of failing the search."""
        return self.on_read_error == "skip"
