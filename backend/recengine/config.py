import logging
from pydantic_settings import BaseSettings
from pydantic import model_validator, ConfigDict
from functools import lru_cache

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    model_config = ConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Environment: "development" or "production"
    environment: str = "development"

    database_url: str = "postgresql+asyncpg://localhost/ads_recommendations"

    @model_validator(mode="before")
    @classmethod
    def _fix_database_url_for_asyncpg(cls, values: dict) -> dict:
        """Hosted Postgres gives postgresql:// — we need postgresql+asyncpg:// for asyncpg."""
        if not isinstance(values, dict):
            return values
        url = values.get("database_url") or ""
        if url.startswith("postgresql://") and "+asyncpg" not in url:
            values["database_url"] = url.replace("postgresql://", "postgresql+asyncpg://", 1)
        return values
    secret_key: str = "change-me-in-production"
    api_key: str = ""  # Required in production; in dev, empty = auth disabled
    cors_origins: str = "http://localhost:5173,http://localhost:3000"
    cron_secret: str = ""

    # Weekly recommendation generation
    disable_recommendation_scheduler: bool = False
    recommendation_scheduler_day: int = 0  # 0 = Sunday ... 6 = Saturday
    recommendation_scheduler_hour: int = 23
    recommendation_scheduler_tz: str = "America/New_York"
    recommendation_stagger_ms: int = 2000
    recommendation_lookback_days: int = 30
    # Run the weekly job inside the API process instead of relying on external cron
    recommendation_scheduler_in_process: bool = False

    @model_validator(mode="after")
    def _validate_scheduler_settings(self) -> "Settings":
        if not 0 <= self.recommendation_scheduler_day <= 6:
            raise ValueError("RECOMMENDATION_SCHEDULER_DAY must be between 0 (Sunday) and 6 (Saturday)")
        if not 0 <= self.recommendation_scheduler_hour <= 23:
            raise ValueError("RECOMMENDATION_SCHEDULER_HOUR must be between 0 and 23")
        if self.recommendation_stagger_ms < 0:
            raise ValueError("RECOMMENDATION_STAGGER_MS cannot be negative")
        if self.recommendation_lookback_days < 1:
            raise ValueError("RECOMMENDATION_LOOKBACK_DAYS must be at least 1")
        return self

    @model_validator(mode="after")
    def _validate_production_settings(self) -> "Settings":
        """Enforce that critical secrets are set when running in production."""
        if self.is_production:
            if self.secret_key == "change-me-in-production":
                raise ValueError(
                    "SECRET_KEY must be set to a secure value in production. "
                    "Generate one with: python -c \"import secrets; print(secrets.token_hex(32))\""
                )
            if not self.api_key:
                raise ValueError(
                    "API_KEY must be set in production. "
                    "Generate one with: python -c \"import secrets; print(secrets.token_hex(32))\""
                )
            if self.cron_secret and len(self.cron_secret) < 16:
                raise ValueError("CRON_SECRET must be at least 16 characters in production.")
            if not self.database_url or "localhost" in self.database_url:
                logger.warning("DATABASE_URL appears to point at localhost in production.")
        return self

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"

    @property
    def cors_origin_list(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    @property
    def stagger_seconds(self) -> float:
        return self.recommendation_stagger_ms / 1000


@lru_cache
def get_settings() -> Settings:
    return Settings()
