"""
Settings for the booking-commons RBAC engine and its infrastructure.

Values are read from the environment (and an optional ``.env`` file) using
pydantic-settings, so each service can tune cache sizing and thresholds
without code changes.
"""
from functools import lru_cache
from typing import Optional

from pydantic import Field, SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .constants import CacheLimits, CacheTTL, RoleLevels


class RBACSettings(BaseSettings):
    """Permission engine settings."""
    
    model_config = SettingsConfigDict(
        env_prefix="BOOKING_RBAC_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )
    
    # Cache sizing and lifetime
    cache_ttl_seconds: float = Field(default=CacheTTL.PERMISSIONS, gt=0)
    failure_cache_ttl_seconds: float = Field(default=CacheTTL.FAILED_LOAD, gt=0)
    cache_max_size: int = Field(default=CacheLimits.MAX_SIZE, ge=1)
    cache_high_water_ratio: float = Field(default=CacheLimits.HIGH_WATER_RATIO, gt=0, le=1)
    cache_low_water_ratio: float = Field(default=CacheLimits.LOW_WATER_RATIO, ge=0, lt=1)
    cleanup_interval_seconds: float = Field(default=CacheTTL.CLEANUP_INTERVAL, gt=0)
    
    # Authorization
    admin_level_threshold: int = Field(default=RoleLevels.ADMIN_THRESHOLD, ge=0)
    time_restrictions_fail_closed: bool = Field(default=False)
    
    # Backing store
    load_timeout_seconds: Optional[float] = Field(default=10.0, gt=0)
    
    # Cross-instance invalidation
    redis_url: Optional[str] = Field(default=None)
    invalidation_channel: str = Field(default="booking:rbac:invalidate")
    
    @model_validator(mode="after")
    def validate_water_marks(self) -> "RBACSettings":
        """Ensure the low-water mark sits below the high-water mark."""
        if self.cache_low_water_ratio >= self.cache_high_water_ratio:
            raise ValueError(
                "cache_low_water_ratio must be lower than cache_high_water_ratio"
            )
        return self


class DatabaseSettings(BaseSettings):
    """asyncpg connection pool settings."""
    
    model_config = SettingsConfigDict(
        env_prefix="BOOKING_DB_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )
    
    host: str = Field(default="localhost")
    port: int = Field(default=5432, ge=1, le=65535)
    database: str = Field(default="booking")
    username: str = Field(default="postgres")
    password: SecretStr = Field(default=SecretStr("postgres"))
    schema_name: str = Field(default="public")
    
    pool_min_size: int = Field(default=5, ge=0)
    pool_max_size: int = Field(default=20, ge=1)
    command_timeout_seconds: float = Field(default=60, gt=0)
    
    @model_validator(mode="after")
    def validate_pool_size(self) -> "DatabaseSettings":
        """Ensure max pool size is greater than min pool size."""
        if self.pool_max_size < self.pool_min_size:
            raise ValueError("pool_max_size must be greater than or equal to pool_min_size")
        return self
    
    @property
    def dsn(self) -> str:
        """PostgreSQL DSN understood by asyncpg."""
        return (
            f"postgresql://{self.username}:{self.password.get_secret_value()}"
            f"@{self.host}:{self.port}/{self.database}"
        )


@lru_cache()
def get_rbac_settings() -> RBACSettings:
    """Get cached RBAC settings instance."""
    return RBACSettings()


@lru_cache()
def get_database_settings() -> DatabaseSettings:
    """Get cached database settings instance."""
    return DatabaseSettings()
