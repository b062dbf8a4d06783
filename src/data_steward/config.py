"""Server and database settings, read from the environment and ``.env``."""

from typing import Annotated, Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


class DataStewardSettings(BaseSettings):
    """Data Steward server settings.

    All settings can be configured via environment variables with the prefix
    DATA_STEWARD_. For example, DATA_STEWARD_PORT=8080 sets port=8080.
    """

    model_config = SettingsConfigDict(
        env_prefix="DATA_STEWARD_",
        env_file=".env",
        extra="ignore",
    )

    # Server settings
    debug: bool = False
    log_level: LogLevel = "INFO"

    # HTTP settings
    host: str = "127.0.0.1"
    port: int = 3000
    path: str = "/mcp"
    max_body_bytes: Annotated[int, Field(gt=0)] = 4 * 1024 * 1024

    # Session settings
    max_sessions: Annotated[int | None, Field(gt=0)] = None
    """Upper bound on concurrently open sessions; None means unbounded."""
    outbound_buffer_size: Annotated[int, Field(gt=0)] = 64

    # Tool catalog settings
    catalog_refresh_interval: Annotated[float, Field(gt=0)] = 5.0
    """Seconds between catalog rebuilds (each one is broadcast to every session)."""

    # Notification stream settings
    stream_interval: Annotated[float, Field(ge=0)] = 1.0
    stream_message_count: Annotated[int, Field(ge=0)] = 2


class PostgresSettings(BaseSettings):
    """Fallback PostgreSQL credentials (PGHOST, PGPORT, PGUSER, PGPASSWORD, PGDATABASE)."""

    model_config = SettingsConfigDict(
        env_prefix="PG",
        env_file=".env",
        extra="ignore",
    )

    host: str | None = None
    port: int | None = None
    user: str | None = None
    password: str | None = None
    database: str | None = None
