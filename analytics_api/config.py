"""
Fyrk Analytics — Configuration via environment variables.
"""

from pydantic_settings import BaseSettings
from pydantic import Field


class Settings(BaseSettings):
    """All settings read from env / .env file."""

    # Counter store; blank means tracking is not configured
    analytics_store_url: str = Field(
        default="",
        description="memory://, redis://host:6379/0 or an async SQLAlchemy URL",
    )
    store_key_prefix: str = Field(
        default="", description="Prefix applied to every key written to the store"
    )

    # Retention / caps
    retention_days: int = Field(
        default=400, description="Expiry for hourly/daily counters and visitor sets"
    )
    max_unique_visitors_per_day: int = Field(
        default=10_000, description="Visitor hashes kept per page per day"
    )
    atomic_increments: bool = Field(
        default=False,
        description="Use the store's native increment when it has one",
    )

    # Request signing (shared with the browser snippet)
    signing_key: str = Field(default="fyrk-2024-analytics")
    max_request_age_ms: int = Field(default=5 * 60 * 1000)

    # Traffic exclusion
    exclude_bots: bool = Field(
        default=True, description="Skip crawler user agents as well as automated browsers"
    )

    # HTTP
    cors_origins: str = Field(default="*", description="Comma separated origins")

    @property
    def retention_seconds(self) -> int:
        return self.retention_days * 24 * 60 * 60

    @property
    def cors_origin_list(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}


settings = Settings()
