"""Application configuration with environment variables."""

from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Environment
    ENV: str = "dev"
    VERSION: str = "0.01.00"
    LOG_LEVEL: str = "INFO"

    # Database
    DATABASE_URL: str

    # CORS
    CORS_ORIGINS: str = "http://localhost:3000"

    # Error Tracking (optional, set in production)
    SENTRY_DSN: str = ""

    # Lifecycle trigger auth: either value is accepted as the bearer token
    SERVICE_ROLE_KEY: str = ""
    CRON_SECRET: str = ""

    # Account lifecycle thresholds
    TRIAL_GRACE_PERIOD_DAYS: int = 14
    PAYMENT_FAILED_GRACE_DAYS: int = 14
    UNSUBSCRIBED_GRACE_DAYS: int = 30
    CARD_EXPIRY_HORIZON_DAYS: int = 30
    CARD_EXPIRY_DEDUP_DAYS: int = 7

    # Sequence scheduling: "independent" measures every step's delay from the
    # enrollment instant, "cumulative" chains each delay onto the previous step.
    SEQUENCE_DELAY_MODE: Literal["independent", "cumulative"] = "independent"

    # Queue status cancelled by an inbound reply. The legacy value "active"
    # is not a queue status and matches no rows.
    REPLY_CANCEL_STATUS: Literal["pending", "active"] = "pending"

    # Which profile wins when a reply address exists on both a buyer and a seller
    REPLY_PROFILE_PRECEDENCE: Literal["buyer", "seller"] = "buyer"

    # Inbound reply webhook
    WEBHOOK_MAX_PAYLOAD_BYTES: int = 100_000

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse CORS_ORIGINS into a list."""
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]

    @property
    def lifecycle_tokens(self) -> list[str]:
        """Bearer tokens accepted by the lifecycle trigger (empty values excluded)."""
        return [t for t in (self.SERVICE_ROLE_KEY, self.CRON_SECRET) if t]


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
