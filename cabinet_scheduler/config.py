"""Application configuration."""

from datetime import time
from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        env_parse_none_str="null",
    )

    # Application
    app_name: str = Field(default="Cabinet Scheduling API", alias="APP_NAME")
    app_version: str = Field(default="0.1.0", alias="APP_VERSION")
    environment: str = Field(default="development", alias="ENVIRONMENT")
    debug: bool = Field(default=False, alias="DEBUG")
    api_v1_prefix: str = Field(default="/api/v1", alias="API_V1_PREFIX")

    # Server
    host: str = Field(default="0.0.0.0", alias="HOST")
    port: int = Field(default=8000, alias="PORT")
    reload: bool = Field(default=False, alias="RELOAD")

    # Database
    database_url: str = Field(..., alias="DATABASE_URL")

    # Redis
    redis_host: str = Field(default="localhost", alias="REDIS_HOST")
    redis_port: int = Field(default=6379, alias="REDIS_PORT")
    redis_username: str = Field(default="default", alias="REDIS_USERNAME")
    redis_password: str = Field(default="", alias="REDIS_PASSWORD")
    redis_decode_responses: bool = Field(default=True, alias="REDIS_DECODE_RESPONSES")

    # JWT
    jwt_secret_key: str = Field(..., alias="JWT_SECRET_KEY")
    jwt_algorithm: str = Field(default="HS256", alias="JWT_ALGORITHM")
    access_token_expire_minutes: int = Field(default=30, alias="ACCESS_TOKEN_EXPIRE_MINUTES")

    # CORS
    cors_origins_str: str = Field(
        default="http://localhost:3000",
        alias="CORS_ORIGINS",
    )
    cors_allow_credentials: bool = Field(default=True, alias="CORS_ALLOW_CREDENTIALS")

    @property
    def cors_origins(self) -> list[str]:
        """Get CORS origins as a list."""
        if isinstance(self.cors_origins_str, str):
            return [origin.strip() for origin in self.cors_origins_str.split(",") if origin.strip()]
        return [self.cors_origins_str]

    # Logging
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    log_format: str = Field(default="json", alias="LOG_FORMAT")

    # Scheduling policy
    clinic_timezone: str = Field(default="UTC", alias="CLINIC_TIMEZONE")
    business_days_str: str = Field(
        default="0,1,2,3,4,5",
        alias="BUSINESS_DAYS",
        description="Comma separated weekdays, 0 is Monday",
    )
    business_opens_at: time = Field(default=time(8, 0), alias="BUSINESS_OPENS_AT")
    business_closes_at: time = Field(default=time(18, 0), alias="BUSINESS_CLOSES_AT")
    initial_status: str = Field(
        default="confirmed",
        alias="INITIAL_STATUS",
        pattern="^(confirmed|pending)$",
    )
    reschedule_requires_confirmation: bool = Field(
        default=True,
        alias="RESCHEDULE_REQUIRES_CONFIRMATION",
    )
    default_slot_minutes: int = Field(default=30, ge=5, le=480, alias="DEFAULT_SLOT_MINUTES")
    alternatives_limit: int = Field(default=5, ge=1, alias="ALTERNATIVES_LIMIT")
    alternatives_search_days: int = Field(default=14, ge=1, alias="ALTERNATIVES_SEARCH_DAYS")
    popular_hours_limit: int = Field(default=5, ge=1, alias="POPULAR_HOURS_LIMIT")
    working_hours_cache_ttl: int = Field(default=900, alias="WORKING_HOURS_CACHE_TTL")
    retention_days: int = Field(default=365, ge=1, alias="RETENTION_DAYS")

    @property
    def business_days(self) -> frozenset[int]:
        """Get business weekdays as a set of integers (0 = Monday)."""
        return frozenset(int(day) for day in self.business_days_str.split(",") if day.strip())


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()  # type: ignore[call-arg]


# Global settings instance
settings = get_settings()
