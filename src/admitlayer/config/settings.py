"""
Application settings using Pydantic.

Provides environment-based configuration loading with ADMITLAYER_ prefix.
"""

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="ADMITLAYER_",
    )

    # Logging
    log_level: str = "INFO"
    log_json: bool = True

    # Admission API
    api_prefix: str = "/api/v1"

    # Controllers
    gen_workers: int = 10
    policy_controller_workers: int = 2
    cache_sync_timeout: float = 60.0

    # Events
    event_workers: int = 3
    max_queued_events: int = 1000
    event_sink_max_retries: int = 3
    event_sink_url: str | None = None

    # Leader election
    leader_election_id: str = "admitlayer-background-controller"
    leader_election_namespace: str = "admitlayer"
    pod_name: str | None = None
    leader_election_lease_duration: float = 15.0
    leader_election_retry_period: float = 2.0

    # Redis (leader election lock store)
    redis_url: str = "redis://localhost:6379/0"

    # Event collector HTTP client
    http_timeout: float = 30.0


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
