# ==============================================================================
# Application Configuration
# ==============================================================================
"""
Tracker settings, read from the environment by pydantic-settings.

Each group has its own prefix (TRACKER_, DISPATCH_, STORAGE_, PG_, VALKEY_).
A .env file in the working directory is loaded first via python-dotenv.
"""

from functools import lru_cache
from typing import Literal, Optional

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

load_dotenv()


class TrackerSettings(BaseSettings):
    """Tracker identity and event shaping settings."""

    model_config = SettingsConfigDict(env_prefix="TRACKER_")

    base_url: str = Field(
        default="http://localhost",
        description="Base URL of the analytics server (without /piwik.php)",
    )
    site_id: str = Field(default="1", description="Site id generated by the analytics server")
    authentication_token: Optional[str] = Field(
        default=None,
        description="Authentication token (enables bulk requests and custom timestamps)",
    )
    is_prefixing_enabled: bool = Field(
        default=True, description="Prefix screen/event/exception/social names by type"
    )
    debug: bool = Field(default=False, description="Log events instead of sending them")
    sample_rate: int = Field(
        default=100, ge=0, le=100, description="Percentage of events that are queued"
    )
    include_location_information: bool = Field(
        default=False, description="Attach latitude/longitude to queued events"
    )
    session_timeout: float = Field(
        default=120.0, description="Inactivity (seconds) after which a new session starts"
    )
    session_start_on_launch: bool = Field(
        default=True, description="Force a new session when the tracker is created"
    )
    app_name: str = Field(default="eventrelay", description="Application name (custom variable 2)")
    app_version: str = Field(default="0.1.0", description="Application version (custom variable 3)")
    platform: Optional[str] = Field(default=None, description="Platform (custom variable 1)")
    screen_resolution: Optional[str] = Field(
        default=None, description="Screen resolution sent as res, e.g. 1920x1080"
    )
    bulk_encoding: Literal["current", "legacy"] = Field(
        default="current",
        description="Bulk request encoding (current = Piwik 2.x, legacy = Piwik 1.x)",
    )

    @property
    def tracking_url(self) -> str:
        """Full URL of the tracking endpoint."""
        return f"{self.base_url.rstrip('/')}/piwik.php"


class DispatchSettings(BaseSettings):
    """Dispatch timer and batching settings."""

    model_config = SettingsConfigDict(env_prefix="DISPATCH_")

    interval: float = Field(
        default=120.0,
        description="Seconds between dispatch cycles (negative = manual only, 0 = immediate)",
    )
    max_queued_events: int = Field(
        default=500, ge=0, description="Maximum number of events held in the queue"
    )
    events_per_request: int = Field(
        default=20, ge=1, description="Maximum number of events sent in one request"
    )
    drain_policy: Literal["drain", "single"] = Field(
        default="drain",
        description="Keep sending batches until the queue is empty, or send one per cycle",
    )
    max_batches_per_cycle: Optional[int] = Field(
        default=None, ge=1, description="Upper bound on batches sent in one cycle"
    )
    request_timeout: float = Field(default=30.0, description="HTTP request timeout in seconds")


class StorageSettings(BaseSettings):
    """Durable storage backend selection."""

    model_config = SettingsConfigDict(env_prefix="STORAGE_")

    backend: Literal["valkey", "postgresql"] = Field(
        default="valkey", description="Queue store backend (valkey, postgresql)"
    )
    key_prefix: str = Field(
        default="eventrelay", description="Key prefix for Valkey keys (one per tracked app)"
    )


class PostgresSettings(BaseSettings):
    """Connection to the optional PostgreSQL queue store."""

    model_config = SettingsConfigDict(env_prefix="PG_")

    host: str = Field(default="localhost", description="Server host")
    port: int = Field(default=5432, description="Server port")
    user: str = Field(default="postgres", description="Login role")
    password: str = Field(default="", description="Login password")
    database: str = Field(default="eventrelay", description="Database holding the queue table")
    schema_name: str = Field(default="eventrelay", description="Schema holding the queue table")
    sslmode: str = Field(default="prefer", description="libpq sslmode")

    @property
    def connection_string(self) -> str:
        return (
            f"postgresql://{self.user}:{self.password}@"
            f"{self.host}:{self.port}/{self.database}?sslmode={self.sslmode}"
        )


class ValkeySettings(BaseSettings):
    """Connection to Valkey, home of the preferences and the default queue."""

    model_config = SettingsConfigDict(env_prefix="VALKEY_")

    host: str = Field(default="localhost", description="Server host")
    port: int = Field(default=6379, description="Server port")
    password: Optional[str] = Field(default=None, description="AUTH password")
    db: int = Field(default=0, description="Logical database index")
    ssl: bool = Field(default=False, description="Connect with TLS (rediss://)")

    @property
    def url(self) -> str:
        scheme = "rediss" if self.ssl else "redis"
        auth = f":{self.password}@" if self.password else ""
        return f"{scheme}://{auth}{self.host}:{self.port}/{self.db}"


class Settings(BaseSettings):
    """All settings groups plus the log level."""

    model_config = SettingsConfigDict(extra="ignore")

    tracker: TrackerSettings = Field(default_factory=TrackerSettings)
    dispatch: DispatchSettings = Field(default_factory=DispatchSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)
    postgres: PostgresSettings = Field(default_factory=PostgresSettings)
    valkey: ValkeySettings = Field(default_factory=ValkeySettings)

    log_level: str = Field(default="INFO", description="Root log level for CLI commands")


@lru_cache
def get_settings() -> Settings:
    """Settings are read once per process; call `get_settings.cache_clear()` to reload."""
    return Settings()
