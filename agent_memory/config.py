"""Configuration for the memory engine, loaded from the environment."""

from functools import lru_cache
from pathlib import Path
from typing import Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Fixed policy constants. These are part of the retention policy, not tunables.
POST_CONSOLIDATION_RETENTION = 2
PILLAR_CAP = 15
CHANGELOG_CAP = 10
PILLAR_PRUNE_FLOOR = 3
IMPORTANCE_MIN = 1
IMPORTANCE_MAX = 10

ONE_WEEK_SECONDS = 7 * 24 * 60 * 60
ONE_HOUR_SECONDS = 60 * 60


class MemorySettings(BaseSettings):
    """Memory engine settings with environment variable support"""

    model_config = SettingsConfigDict(
        env_prefix="AGENT_MEMORY_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Retention limits
    interactions_limit: int = Field(default=21, ge=1)
    summaries_limit: int = Field(default=3, ge=1)
    consolidation_threshold: int = Field(default=5, ge=1)

    # Collaborator calls
    collaborator_timeout_seconds: float = Field(default=60.0, gt=0)
    collaborator_max_attempts: int = Field(default=3, ge=1)
    collaborator_backoff_seconds: float = Field(default=0.5, ge=0)
    collaborator_backoff_multiplier: float = Field(default=2.0, ge=1)

    # Models
    model_name: str = "gpt-4o-mini"
    consolidation_model_name: str = "gpt-4o"  # stronger model for pillar synthesis
    temperature: float = 1.0
    openai_api_key: Optional[str] = None

    # Session storage
    session_backend: Literal["file", "memory"] = "file"
    session_dir: Path = Path("sessions")
    session_ttl_seconds: int = ONE_WEEK_SECONDS
    cleanup_interval_seconds: float = Field(default=ONE_HOUR_SECONDS, gt=0)

    # Observability
    log_level: str = "INFO"
    log_format: str = "json"
    service_name: str = "agent-memory"
    langfuse_enabled: bool = False


@lru_cache
def get_settings() -> MemorySettings:
    """Get cached settings instance."""
    return MemorySettings()
