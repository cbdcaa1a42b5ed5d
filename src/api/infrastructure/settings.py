"""Application settings using pydantic-settings.

Settings are loaded from environment variables with sensible defaults
for development. Production deployments should set all values explicitly.
"""

from functools import lru_cache
from typing import Literal

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

EvictionFallback = Literal["exceed_capacity", "evict_oldest"]


class DatabaseSettings(BaseSettings):
    """Database connection settings for the main and tenant databases.

    Environment variables:
        AUTOERP_DB_HOST: Database host (default: localhost)
        AUTOERP_DB_PORT: Database port (default: 5432)
        AUTOERP_DB_DATABASE: Main database name (default: vehicle_platform)
        AUTOERP_DB_USERNAME: Database user (default: autoerp)
        AUTOERP_DB_PASSWORD: Database password (required in production)
        AUTOERP_DB_MAIN_POOL_SIZE: Pool size of the main engine (default: 20)
        AUTOERP_DB_TENANT_POOL_SIZE: Pool size of each tenant engine (default: 10)
        AUTOERP_DB_MAX_TENANT_CONNECTIONS: Cached tenant engines before eviction (default: 50)
        AUTOERP_DB_SERVER_SELECTION_TIMEOUT_MS: Budget to reach a server (default: 5000)
        AUTOERP_DB_SOCKET_TIMEOUT_MS: Per-command socket budget (default: 45000)
        AUTOERP_DB_TENANT_DATABASE_PREFIX: Prefix of tenant database names (default: company_)
        AUTOERP_DB_EVICTION_FALLBACK: What to do when no idle tenant can be
            evicted: exceed_capacity or evict_oldest (default: exceed_capacity)
    """

    model_config = SettingsConfigDict(
        env_prefix="AUTOERP_DB_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    host: str = Field(default="localhost", description="Database host")
    port: int = Field(default=5432, description="Database port")
    database: str = Field(default="vehicle_platform", description="Main database name")
    username: str = Field(default="autoerp", description="Database username")
    password: SecretStr = Field(
        default=SecretStr(""),
        description="Database password",
    )
    main_pool_size: int = Field(
        default=20,
        description="Connection pool size of the main database engine",
        ge=1,
        le=100,
    )
    tenant_pool_size: int = Field(
        default=10,
        description="Connection pool size of each tenant database engine",
        ge=1,
        le=100,
    )
    max_tenant_connections: int = Field(
        default=50,
        description="Number of cached tenant engines before eviction triggers",
        ge=1,
    )
    server_selection_timeout_ms: int = Field(
        default=5000,
        description="Milliseconds allowed to reach a database server",
        gt=0,
    )
    socket_timeout_ms: int = Field(
        default=45000,
        description="Milliseconds allowed for a single command on a socket",
        gt=0,
    )
    tenant_database_prefix: str = Field(
        default="company_",
        description="Prefix prepended to the tenant id to name its database",
        min_length=1,
    )
    eviction_fallback: EvictionFallback = Field(
        default="exceed_capacity",
        description=(
            "Behaviour when the tenant cache is full and every entry is busy: "
            "exceed_capacity admits the tenant anyway, evict_oldest closes the "
            "least recently used entry even if it is in use"
        ),
    )

    @property
    def server_selection_timeout(self) -> float:
        """Server selection budget in seconds."""
        return self.server_selection_timeout_ms / 1000

    @property
    def socket_timeout(self) -> float:
        """Socket budget in seconds."""
        return self.socket_timeout_ms / 1000

    def tenant_database_name(self, tenant_id: str) -> str:
        """Name of the database holding *tenant_id*'s data."""
        return f"{self.tenant_database_prefix}{tenant_id}"


class Settings(BaseSettings):
    """Main application settings aggregating all configuration sections."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Application metadata
    app_name: str = Field(default="AutoERP API", description="Application name")
    debug: bool = Field(default=False, description="Debug mode")


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings.

    Uses lru_cache to ensure settings are only loaded once.
    """
    return Settings()


@lru_cache
def get_database_settings() -> DatabaseSettings:
    """Get cached database settings.

    Uses lru_cache to ensure settings are only loaded once.
    """
    return DatabaseSettings()
