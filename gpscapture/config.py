"""
Configuration management for the GPS capture service.

Settings are loaded with pydantic-settings from ``GPS_``-prefixed environment
variables or a ``.env`` file. Nested sink settings use ``__`` as delimiter::

    GPS_PORT_NAME=/dev/ttyUSB0
    GPS_AUTO_DETECT_PORT=false
    GPS_SINKS=file,api
    GPS_API__ENDPOINT=https://example.com/api/gps
    GPS_API__API_KEY=secret
    GPS_DATABASE__DSN=postgresql://gps@localhost/gps

A sink that is enabled must have its endpoint or credentials configured;
otherwise loading fails with a :class:`ConfigurationError` that lists every
problem at once.
"""

import socket
from typing import Annotated, Any

from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

from gpscapture.dispatch.records import FailurePolicy, SinkKind
from gpscapture.dispatch.sinks.file import FILE_FORMATS

__all__ = [
    "ApiSinkSettings",
    "BlobSinkSettings",
    "ConfigurationError",
    "DatabaseSinkSettings",
    "FileSinkSettings",
    "Settings",
    "clear_settings_cache",
    "get_settings",
    "load_settings",
]


def _split_list(value: Any) -> Any:
    """Accept ``"a,b"`` as well as a JSON list or a real list."""
    if isinstance(value, str):
        stripped = value.strip()
        if stripped.startswith("["):
            return value
        return [item.strip() for item in stripped.split(",") if item.strip()]
    return value


# --- per-sink settings ----------------------------------------------------------


class SinkSettings(BaseModel):
    """Batching and retry knobs shared by every sink."""

    batch_size: int = Field(default=10, ge=1, description="Records per delivery")
    retry_attempts: int = Field(default=3, ge=1, description="Attempts per batch")
    retry_base_delay_seconds: float = Field(
        default=1.0, ge=0, description="Delay before the first retry; doubles each time"
    )
    retry_max_delay_seconds: float | None = Field(default=60.0, description="Cap on a single retry delay")
    flush_interval_seconds: float = Field(default=5.0, gt=0, description="Timer flush period")
    max_queue_size: int = Field(default=10_000, ge=1, description="Queue bound, oldest dropped first")
    failure_policy: FailurePolicy = Field(
        default=FailurePolicy.DROP, description="What to do with a batch once retries run out"
    )

    @model_validator(mode="after")
    def validate_queue_holds_a_batch(self) -> "SinkSettings":
        if self.max_queue_size < self.batch_size:
            raise ValueError("max_queue_size must be at least batch_size")
        return self


class FileSinkSettings(SinkSettings):
    failure_policy: FailurePolicy = FailurePolicy.REQUEUE
    data_directory: str = Field(default="gps_data", description="Directory for dated files")
    formats: Annotated[list[str], NoDecode] = Field(
        default=["ndjson"], description="Any of ndjson, csv, json"
    )

    @field_validator("formats", mode="before")
    @classmethod
    def split_formats(cls, v: Any) -> Any:
        return _split_list(v)

    @field_validator("formats")
    @classmethod
    def validate_formats(cls, v: list[str]) -> list[str]:
        formats = [item.lower() for item in v]
        unknown = sorted(set(formats) - set(FILE_FORMATS))
        if unknown:
            raise ValueError(f"unsupported format(s): {', '.join(unknown)}")
        if not formats:
            raise ValueError("at least one format is required")
        return list(dict.fromkeys(formats))


class ApiSinkSettings(SinkSettings):
    retry_base_delay_seconds: float = 2.0
    endpoint: str | None = Field(default=None, description="URL batches are POSTed to")
    api_key: str | None = Field(default=None, description="Sent as X-API-Key and Bearer token")
    timeout_seconds: float = Field(default=30.0, gt=0, description="Total request timeout")

    @field_validator("endpoint")
    @classmethod
    def validate_endpoint(cls, v: str | None) -> str | None:
        if v is None or not v.strip():
            return None
        v = v.strip()
        if not (v.startswith("http://") or v.startswith("https://")):
            raise ValueError("endpoint must be a valid HTTP/HTTPS URL")
        return v


class BlobSinkSettings(SinkSettings):
    retry_base_delay_seconds: float = 2.0
    flush_interval_seconds: float = 10.0
    connection_string: str | None = Field(default=None, description="Azure Storage connection string")
    container_name: str = Field(default="gps-data", description="Blob container")
    pretty_json: bool = Field(default=False, description="Indent uploaded JSON")


class DatabaseSinkSettings(SinkSettings):
    batch_size: int = Field(default=20, ge=1)
    flush_interval_seconds: float = 10.0
    failure_policy: FailurePolicy = FailurePolicy.REQUEUE
    dsn: str | None = Field(default=None, description="PostgreSQL connection string")
    table: str = Field(default="gps_data", description="Target table, optionally schema-qualified")
    create_table: bool = Field(default=False, description="Create the table on startup if missing")


# --- top-level settings ---------------------------------------------------------


class Settings(BaseSettings):
    """Service settings loaded from the environment."""

    # Receiver
    baud_rate: int = Field(default=4800, gt=0, description="Serial line speed")
    port_name: str | None = Field(default=None, description="Serial port to use")
    auto_detect_port: bool = Field(default=True, description="Scan ports instead of trusting port_name")
    device_id: str = Field(default_factory=socket.gethostname, description="Stamped on every record")
    connect_attempts: int = Field(default=5, ge=1)
    connect_retry_delay_seconds: float = Field(default=10.0, ge=0)
    read_timeout_seconds: float = Field(default=5.0, gt=0)
    read_error_pause_seconds: float = Field(default=1.0, ge=0)
    detect_window_seconds: float = Field(default=5.0, gt=0)

    # Capture and screening
    capture_interval_seconds: float = Field(default=5.0, ge=0)
    minimum_movement_distance_meters: float = Field(default=10.0, ge=0)

    # Dispatch
    sinks: Annotated[set[SinkKind], NoDecode] = Field(
        default={SinkKind.FILE}, description="Enabled sinks: file, api, blob, database"
    )
    store_raw_data: bool = Field(default=True, description="Keep full snapshot JSON where supported")
    shutdown_grace_seconds: float = Field(default=30.0, ge=0)
    file: FileSinkSettings = Field(default_factory=FileSinkSettings)
    api: ApiSinkSettings = Field(default_factory=ApiSinkSettings)
    blob: BlobSinkSettings = Field(default_factory=BlobSinkSettings)
    database: DatabaseSinkSettings = Field(default_factory=DatabaseSinkSettings)

    # Logging and status server
    log_level: str = Field(default="INFO")
    log_format: str = Field(default="text", description="'text' or 'json'")
    status_host: str = Field(default="0.0.0.0")
    status_port: int = Field(default=8000, gt=0, lt=65536)

    model_config = SettingsConfigDict(
        env_prefix="GPS_",
        env_nested_delimiter="__",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("sinks", mode="before")
    @classmethod
    def split_sinks(cls, v: Any) -> Any:
        return _split_list(v)

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        v = v.strip().upper()
        if v not in valid_levels:
            raise ValueError(f"log_level must be one of: {', '.join(sorted(valid_levels))}")
        return v

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        v = v.strip().lower()
        if v not in {"text", "json"}:
            raise ValueError("log_format must be 'text' or 'json'")
        return v

    @model_validator(mode="after")
    def validate_enabled_sinks(self) -> "Settings":
        """Every enabled sink must have somewhere to deliver to."""
        missing = self.missing_sink_fields()
        if missing:
            raise ValueError(f"required for enabled sinks: {', '.join(missing)}")
        return self

    def missing_sink_fields(self) -> list[str]:
        missing: list[str] = []
        if SinkKind.API in self.sinks and not self.api.endpoint:
            missing.append("api.endpoint")
        if SinkKind.BLOB in self.sinks and not self.blob.connection_string:
            missing.append("blob.connection_string")
        if SinkKind.DATABASE in self.sinks and not self.database.dsn:
            missing.append("database.dsn")
        return missing

    def sink_settings(self, kind: SinkKind) -> SinkSettings:
        return getattr(self, kind.value)


class ConfigurationError(Exception):
    """Exception raised when configuration validation fails."""

    def __init__(
        self,
        message: str,
        missing_fields: list[str] | None = None,
        invalid_fields: dict[str, str] | None = None,
    ):
        self.message = message
        self.missing_fields = missing_fields or []
        self.invalid_fields = invalid_fields or {}
        super().__init__(self.format_error_message())

    def format_error_message(self) -> str:
        parts = [self.message]
        if self.missing_fields:
            parts.append(f"\nMissing required fields: {', '.join(self.missing_fields)}")
        if self.invalid_fields:
            invalid_parts = [f"  - {field}: {error}" for field, error in self.invalid_fields.items()]
            parts.append("\nInvalid field values:\n" + "\n".join(invalid_parts))
        return "".join(parts)


def load_settings(**overrides: Any) -> Settings:
    """Build and validate settings, converting pydantic errors.

    Raises:
        ConfigurationError: Listing missing and invalid fields.
    """
    try:
        return Settings(**overrides)
    except ValidationError as e:
        missing_fields: list[str] = []
        invalid_fields: dict[str, str] = {}
        for error in e.errors():
            field_name = ".".join(str(loc) for loc in error.get("loc", ())) or "settings"
            if error.get("type") == "missing":
                missing_fields.append(field_name)
            else:
                invalid_fields[field_name] = error.get("msg", str(error))
        raise ConfigurationError(
            "Failed to load GPS capture configuration",
            missing_fields=missing_fields,
            invalid_fields=invalid_fields,
        ) from e


_settings_cache: Settings | None = None


def get_settings() -> Settings:
    """Return the process-wide settings, loading them on first use."""
    global _settings_cache
    if _settings_cache is None:
        _settings_cache = load_settings()
    return _settings_cache


def clear_settings_cache() -> None:
    """Forget cached settings so the next call re-reads the environment."""
    global _settings_cache
    _settings_cache = None
