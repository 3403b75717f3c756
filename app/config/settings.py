"""Environment-based application settings. Read-only; no business logic."""

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    app_name: str = Field(default="tenant-search-service", description="Service name")
    environment: Literal["development", "staging", "production"] = Field(
        default="development", description="Runtime environment"
    )
    debug: bool = Field(default=False, description="Enable debug mode")
    log_level: str = Field(default="INFO", description="Log level name")
    log_format: Literal["text", "json"] = Field(default="text", description="Log line format")

    # Server
    host: str = Field(default="0.0.0.0", description="Listen host")
    port: int = Field(default=8000, ge=1, le=65535, description="Listen port")

    # OpenSearch (index engine, source of truth)
    opensearch_host: str = Field(default="http://localhost:9200", description="OpenSearch base URL")
    opensearch_username: str = Field(default="admin", description="OpenSearch username")
    opensearch_password: str = Field(default="admin", description="OpenSearch password")
    opensearch_use_ssl: bool = Field(default=False, description="Use HTTPS to OpenSearch")
    opensearch_verify_certs: bool = Field(default=False, description="Verify TLS certificates")
    opensearch_timeout: int = Field(default=30, ge=1, description="Client request timeout (seconds)")
    opensearch_index: str = Field(default="documents", min_length=1, description="Documents index name")
    opensearch_refresh_on_write: bool = Field(
        default=True, description="Refresh the index on writes so reads observe them immediately"
    )

    # Key-value store for cache and rate limit counters
    cache_backend: Literal["redis", "mongo", "memory"] = Field(
        default="redis", description="Backend for cached blobs and rate limit counters"
    )
    redis_url: str = Field(default="redis://localhost:6379/0", description="Redis connection URL")
    redis_max_connections: int = Field(default=50, ge=1, le=1000, description="Redis connection pool size")
    redis_socket_timeout: float = Field(default=2.0, gt=0, description="Redis socket timeout (seconds)")

    # MongoDB (see config/storage/mongo for connection semantics)
    mongo_uri: str = Field(
        default="mongodb://localhost:27017",
        description="MongoDB connection URI",
    )
    mongo_database: str = Field(default="search_cache", description="Default database name")
    mongo_connect_timeout_ms: int = Field(default=5000, ge=100, description="Connection timeout (ms)")
    mongo_server_selection_timeout_ms: int = Field(
        default=5000, ge=100, description="Server selection timeout (ms)"
    )
    mongo_max_pool_size: int = Field(default=50, ge=1, le=500, description="Max connection pool size")

    # Cache
    cache_ttl_seconds: int = Field(default=60, ge=1, description="Document cache TTL (seconds)")
    search_cache_ttl_seconds: int = Field(default=120, ge=1, description="Search result cache TTL (seconds)")
    store_timeout_seconds: float = Field(
        default=1.0, gt=0, description="Deadline for a single cache or counter store call (seconds)"
    )
    index_timeout_seconds: float = Field(
        default=10.0, gt=0, description="Deadline for a single index engine call (seconds)"
    )

    # Rate limiting
    rate_limit_enabled: bool = Field(default=True, description="Enable per-tenant rate limiting")
    rate_limit_window_ms: int = Field(default=60000, ge=1, description="Fixed window size (ms)")
    rate_limit_max_requests: int = Field(default=100, ge=1, description="Requests admitted per tenant per window")


@lru_cache
def get_settings() -> Settings:
    """Return cached settings instance. Use for app lifetime."""
    return Settings()
