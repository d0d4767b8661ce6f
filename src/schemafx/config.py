"""Data service configuration loaded from the environment."""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class DataServiceSettings(BaseSettings):
    """Settings for the data service, read from ``SCHEMAFX_*`` variables."""

    encryption_key: str | None = None
    max_recursive_depth: int = Field(default=100, ge=0)

    # Cache sizes are entry counts, TTLs are seconds.
    schema_cache_max: int = Field(default=100, gt=0)
    schema_cache_ttl: float = Field(default=300.0, gt=0)
    connections_cache_max: int = Field(default=100, gt=0)
    connections_cache_ttl: float = Field(default=300.0, gt=0)
    validator_cache_max: int = Field(default=500, gt=0)
    validator_cache_ttl: float = Field(default=3600.0, gt=0)
    permissions_cache_max: int = Field(default=500, gt=0)
    permissions_cache_ttl: float = Field(default=300.0, gt=0)

    model_config = SettingsConfigDict(
        env_prefix="SCHEMAFX_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


@lru_cache
def get_settings() -> DataServiceSettings:
    """Get cached settings instance."""
    return DataServiceSettings()
