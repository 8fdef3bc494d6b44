from __future__ import annotations

from urllib.parse import quote

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="LISTINGS_", env_file=".env", extra="ignore", validate_assignment=True
    )

    app_name: str = "listings-api"
    env: str = "dev"
    host: str = "0.0.0.0"  # nosec B104 - intentional for container deployments
    port: int = 3000

    # Redis
    redis_url: str = Field(default="redis://localhost:6379/0", validation_alias="REDIS_URL")
    redis_host: str | None = Field(default=None, validation_alias="REDIS_HOST")
    redis_port: int = Field(default=6379, validation_alias="REDIS_PORT")
    redis_username: str | None = Field(default=None, validation_alias="REDIS_USERNAME")
    redis_password: str | None = Field(default=None, validation_alias="REDIS_PASSWORD")
    redis_db: int = Field(default=0, validation_alias="REDIS_DB")

    # Cache behaviour
    cache_enabled: bool = Field(default=True, validation_alias="CACHE_ENABLED")
    cache_operation_timeout: float = Field(default=0.5, validation_alias="CACHE_OPERATION_TIMEOUT")
    cache_connect_timeout: float = Field(default=1.0, validation_alias="CACHE_CONNECT_TIMEOUT")
    cache_reconnect_backoff: float = Field(
        default=5.0, validation_alias="CACHE_RECONNECT_BACKOFF"
    )
    cache_scan_count: int = Field(default=500, validation_alias="CACHE_SCAN_COUNT")

    # Cache TTLs (seconds, positive)
    cache_ttl_filter_options: int = Field(
        default=3600, gt=0, validation_alias="CACHE_TTL_FILTER_OPTIONS"
    )
    cache_ttl_search_results: int = Field(
        default=300, gt=0, validation_alias="CACHE_TTL_SEARCH_RESULTS"
    )
    cache_ttl_all_properties: int = Field(
        default=600, gt=0, validation_alias="CACHE_TTL_ALL_PROPERTIES"
    )
    cache_ttl_user_properties: int = Field(
        default=300, gt=0, validation_alias="CACHE_TTL_USER_PROPERTIES"
    )
    cache_ttl_property_detail: int = Field(
        default=1800, gt=0, validation_alias="CACHE_TTL_PROPERTY_DETAIL"
    )

    # Observability
    enable_metrics: bool = Field(default=True, validation_alias="ENABLE_METRICS")
    log_level: str = "INFO"

    @property
    def redis_dsn(self) -> str:
        """Connection URL, composed from host parts when REDIS_HOST is set."""
        if not self.redis_host:
            return self.redis_url
        auth = ""
        if self.redis_password:
            username = quote(self.redis_username or "default", safe="")
            auth = f"{username}:{quote(self.redis_password, safe='')}@"
        return f"redis://{auth}{self.redis_host}:{self.redis_port}/{self.redis_db}"


settings = Settings()
