# ==============================================================================
# Application Configuration
# ==============================================================================
"""
Configuration management using pydantic-settings.

All configuration is loaded from environment variables, with support for
.env files via python-dotenv.
"""

from functools import lru_cache
from typing import Literal, Optional

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Load .env file before any settings are instantiated
load_dotenv()


class ValkeySettings(BaseSettings):
    """Valkey (Redis-compatible) connection settings for visitor state and the event log."""

    model_config = SettingsConfigDict(env_prefix="VALKEY_")

    host: str = Field(default="localhost", description="Valkey host")
    port: int = Field(default=6379, description="Valkey port")
    password: Optional[str] = Field(default=None, description="Valkey password")
    db: int = Field(default=0, description="Valkey database number")
    ssl: bool = Field(default=False, description="Use SSL/TLS connection")

    # Visitor state configuration
    visitor_state_ttl_days: int = Field(
        default=30, description="TTL for persisted visitor frequency/timer state in days"
    )

    @property
    def url(self) -> str:
        """Build Valkey connection URL."""
        # Use rediss:// scheme for SSL connections
        scheme = "rediss" if self.ssl else "redis"
        if self.password:
            return f"{scheme}://:{self.password}@{self.host}:{self.port}/{self.db}"
        return f"{scheme}://{self.host}:{self.port}/{self.db}"


class PostgresSettings(BaseSettings):
    """PostgreSQL connection settings for the analytics event log."""

    model_config = SettingsConfigDict(env_prefix="PG_")

    host: str = Field(default="localhost", description="PostgreSQL host")
    port: int = Field(default=5432, description="PostgreSQL port")
    user: str = Field(default="postgres", description="PostgreSQL username")
    password: str = Field(default="postgres", description="PostgreSQL password")
    database: str = Field(default="promopopup", description="Database name")
    schema_name: str = Field(default="promopopup", description="Schema name")
    sslmode: str = Field(default="prefer", description="SSL mode")

    @property
    def connection_string(self) -> str:
        """Build PostgreSQL connection string."""
        return (
            f"postgresql://{self.user}:{self.password}@"
            f"{self.host}:{self.port}/{self.database}?sslmode={self.sslmode}"
        )


class PopupSettings(BaseSettings):
    """Storefront popup runtime settings (config fetch and event emission)."""

    model_config = SettingsConfigDict(env_prefix="POPUP_")

    app_url: str = Field(
        default="http://localhost:3000", description="Base URL of the popup application API"
    )
    emit_timeout_seconds: float = Field(
        default=5.0, description="Hard timeout for a single analytics event send"
    )
    config_timeout_seconds: float = Field(
        default=5.0, description="Timeout for a single popup config request"
    )
    emit_workers: int = Field(
        default=4, description="Worker threads used for fire-and-forget event sends"
    )

    @property
    def analytics_endpoint(self) -> str:
        """Event ingestion endpoint."""
        return f"{self.app_url.rstrip('/')}/api/public/analytics"

    @property
    def config_endpoint(self) -> str:
        """Popup config endpoint."""
        return f"{self.app_url.rstrip('/')}/api/public/popup-config"


class AnalyticsSettings(BaseSettings):
    """Analytics reporting settings."""

    model_config = SettingsConfigDict(env_prefix="ANALYTICS_")

    event_store: Literal["postgresql", "valkey"] = Field(
        default="postgresql",
        description="Event log backend used for reporting (postgresql, valkey)",
    )
    recent_limit: int = Field(
        default=10, description="Number of events shown in the recent activity feed (10-15)"
    )
    timezone: str = Field(
        default="UTC", description="IANA timezone used for hour-of-day labels"
    )


class Settings(BaseSettings):
    """Main application settings."""

    model_config = SettingsConfigDict(
        extra="ignore",
    )

    # Nested settings
    valkey: ValkeySettings = Field(default_factory=ValkeySettings)
    postgres: PostgresSettings = Field(default_factory=PostgresSettings)
    popup: PopupSettings = Field(default_factory=PopupSettings)
    analytics: AnalyticsSettings = Field(default_factory=AnalyticsSettings)

    # General settings
    debug: bool = Field(default=False, description="Enable debug mode")
    log_level: str = Field(default="INFO", description="Logging level")


@lru_cache
def get_settings() -> Settings:
    """
    Get cached application settings.

    Settings are loaded once and cached for subsequent calls.
    """
    return Settings()
