"""Centralized configuration for content-index using Pydantic Settings."""

from pathlib import Path
from typing import Annotated, Literal

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from content_index.search.analyzers import available_analyzers


class ObservabilityCollectorConfig(BaseModel):
    """Configuration for OTLP trace and metric export."""

    model_config = {"extra": "forbid"}

    enabled: Annotated[bool, Field(description="Enable OTLP export to an external collector")] = False

    otlp_protocol: Annotated[Literal["http", "grpc"], Field(description="OTLP transport protocol")] = "grpc"

    collector_endpoint: Annotated[
        str,
        Field(
            description="OTLP collector endpoint (HTTP uses /v1/traces)",
            examples=["http://localhost:4317", "http://localhost:4318/v1/traces"],
        ),
    ] = "http://localhost:4317"

    headers: Annotated[
        dict[str, str], Field(description="Optional headers to include with OTLP requests")
    ] = Field(default_factory=dict)

    timeout_seconds: Annotated[int, Field(ge=1, le=60, description="OTLP exporter timeout in seconds")] = 10

    grpc_insecure: Annotated[bool, Field(description="Allow insecure gRPC (plaintext) connections")] = True

    resource_attributes: Annotated[
        dict[str, str], Field(description="Additional OpenTelemetry resource attributes")
    ] = Field(default_factory=dict)


class Settings(BaseSettings):
    """Strictly typed configuration loaded from environment variables and ``.env``."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        validate_default=True,
        extra="ignore",
    )

    # Storage
    index_data_dir: Path | None = Field(
        default=None, description="Directory holding the mutation log and snapshot; unset keeps the index in memory"
    )
    index_name: str = Field(default="default", min_length=1, description="Name used in logs and metric labels")
    index_analyzer: str = Field(default="simple", description="Analyzer used for documents and queries")
    index_fsync: bool = Field(default=True, description="fsync the mutation log after every append")
    index_checkpoint_interval: int = Field(
        default=1000, ge=0, description="Write a snapshot after this many mutations (0 disables)"
    )
    index_lock_timeout_seconds: float | None = Field(
        default=None, gt=0, description="Maximum wait for the index lock; unset waits forever"
    )

    # Logging
    log_level: str = Field(default="info", description="Logging level")
    log_json: bool = Field(default=True, description="Emit structured JSON logs")

    # Observability
    service_name: str = Field(default="content-index", description="OpenTelemetry service name")
    observability: ObservabilityCollectorConfig = Field(default_factory=ObservabilityCollectorConfig)

    @field_validator("index_analyzer")
    @classmethod
    def _check_analyzer(cls, value: str) -> str:
        normalized = value.lower()
        if normalized not in available_analyzers():
            raise ValueError(f"Unknown analyzer '{value}'. Available: {available_analyzers()}")
        return normalized

    @field_validator("log_level")
    @classmethod
    def _check_log_level(cls, value: str) -> str:
        if value.upper() not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Invalid log level '{value}'")
        return value.lower()

    def is_persistent(self) -> bool:
        """True when the index writes a mutation log and snapshots to disk."""
        return self.index_data_dir is not None
