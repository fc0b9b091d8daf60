"""Application settings using Pydantic Settings."""

import json
from functools import lru_cache
from typing import Annotated, Any, Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


class Settings(BaseSettings):
    """Progress API and playback tracker settings, read from the environment."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = Field(default="watchprogress", description="Service name in logs")
    app_version: str = Field(default="0.1.0", description="Reported by /health")
    environment: Literal["development", "staging", "production", "testing"] = Field(
        default="development", description="Deployment environment"
    )
    debug: bool = Field(default=True, description="Debug mode")

    # Progress records
    storage_backend: Literal["cassandra", "memory"] = Field(
        default="cassandra", description="Where progress records are persisted"
    )
    default_user_id: str = Field(
        default="default_user", description="Owner of requests without userId"
    )
    progress_locks: Literal["local", "redis"] = Field(
        default="local",
        description="Save serialization backend (redis with more than one worker)",
    )
    progress_lock_timeout: float = Field(
        default=10.0, gt=0, description="Seconds before a held redis lock expires"
    )
    progress_lock_blocking_timeout: float = Field(
        default=5.0, gt=0, description="Seconds a save waits for its redis lock"
    )

    # Playback tracker
    checkpoint_interval: float = Field(
        default=10, gt=0, description="Segment length in seconds"
    )
    completion_threshold: float = Field(
        default=0.8, gt=0, le=1, description="Completed ratio that completes a video"
    )
    save_debounce_ms: float = Field(
        default=5000, ge=0, description="Minimum milliseconds between tracker saves"
    )
    progress_api_url: str = Field(
        default="http://localhost:3001", description="Progress API base URL"
    )
    progress_api_timeout: float = Field(
        default=10.0, gt=0, description="Progress API request timeout in seconds"
    )

    # Redis (only with PROGRESS_LOCKS=redis)
    redis_url: str = Field(default="redis://localhost:6379/0")
    redis_max_connections: int = Field(default=10)
    redis_socket_timeout: float = Field(default=5.0)
    redis_socket_connect_timeout: float = Field(default=5.0)
    redis_retry_on_timeout: bool = Field(default=True)

    # Cassandra (only with STORAGE_BACKEND=cassandra)
    cassandra_hosts: Annotated[list[str], NoDecode] = Field(
        default=["localhost"], description="Contact points (JSON list or a,b,c)"
    )
    cassandra_port: int = Field(default=9042)
    cassandra_keyspace: str = Field(default="watchprogress")
    cassandra_username: str | None = Field(default=None)
    cassandra_password: str | None = Field(default=None)
    cassandra_datacenter: str = Field(default="datacenter1")
    cassandra_replication_factor: int = Field(default=3, ge=1)
    cassandra_protocol_version: int = Field(default=4)
    cassandra_connect_timeout: float = Field(default=10.0)

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="DEBUG", description="Root log level"
    )
    log_format: Literal["json", "console"] = Field(
        default="console", description="Console renderer; files are always JSON"
    )
    log_include_caller_info: bool = Field(
        default=True, description="Add filename, line and function to events"
    )
    log_to_file: bool = Field(default=True, description="Write rotating log files")
    log_dir: str = Field(default="logs", description="Directory for log files")
    log_file_max_bytes: int = Field(default=10 * 1024 * 1024)
    log_file_backup_count: int = Field(default=5)
    log_requests: bool = Field(
        default=True, description="Log request_started/request_completed"
    )
    log_exclude_paths: list[str] = Field(
        default=["/health"], description="Path prefixes without request logs"
    )
    log_slow_request_ms: float = Field(
        default=1000.0, description="Requests slower than this are logged as warnings"
    )

    # CORS (the player usually runs on another origin)
    cors_origins: Annotated[list[str], NoDecode] = Field(default=["*"])
    cors_allow_credentials: bool = Field(default=True)
    cors_allow_methods: list[str] = Field(default=["GET", "POST", "DELETE"])
    cors_allow_headers: list[str] = Field(default=["*"])
    cors_max_age: int = Field(default=600)

    @field_validator("cassandra_hosts", "cors_origins", mode="before")
    @classmethod
    def split_comma_list(cls, value: Any) -> Any:
        """Accept ``a,b,c`` as well as a JSON list."""
        if not isinstance(value, str):
            return value
        if value.lstrip().startswith("["):
            return json.loads(value)
        return [item.strip() for item in value.split(",") if item.strip()]

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.environment == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.environment == "production"

    @property
    def is_testing(self) -> bool:
        """Check if running in testing mode."""
        return self.environment == "testing"

    @property
    def uses_cassandra(self) -> bool:
        """Check if progress is persisted in Cassandra."""
        return self.storage_backend == "cassandra"

    @property
    def tracker_options(self) -> dict[str, float]:
        """Keyword arguments for ``PlaybackTracker``."""
        return {
            "checkpoint_interval": self.checkpoint_interval,
            "completion_threshold": self.completion_threshold,
            "save_debounce_ms": self.save_debounce_ms,
        }


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
