from decimal import Decimal
from functools import lru_cache
from typing import Literal, Optional

from pydantic import AnyHttpUrl, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Centralised application settings, sourced from environment variables or .env."""

    app_name: str = Field(default="Budgetly")
    environment: str = Field(default="development", alias="ENVIRONMENT")
    database_url: str = Field(alias="DATABASE_URL")
    direct_database_url: Optional[str] = Field(
        default=None,
        alias="DIRECT_DATABASE_URL",
        description="Optional direct Postgres connection string used for running migrations.",
    )
    auto_run_migrations: bool = Field(default=False, alias="AUTO_RUN_MIGRATIONS")
    app_timezone: str = Field(
        default="Europe/London",
        alias="APP_TIMEZONE",
        description="Timezone used to decide where the current day and month start.",
    )

    telegram_bot_token: Optional[str] = Field(default=None, alias="TELEGRAM_BOT_TOKEN")
    telegram_webhook_secret: Optional[str] = Field(
        default=None, alias="TELEGRAM_WEBHOOK_SECRET"
    )
    telegram_delivery_mode: Literal["webhook", "polling"] = Field(
        default="webhook",
        alias="TELEGRAM_DELIVERY_MODE",
        description="`webhook` receives pushed updates over HTTP, `polling` long-polls Telegram.",
    )
    telegram_register_webhook_on_start: bool = Field(
        default=False, alias="TELEGRAM_REGISTER_WEBHOOK_ON_START"
    )
    backend_base_url: Optional[AnyHttpUrl] = Field(
        default=None,
        alias="BACKEND_BASE_URL",
        description="The public URL where FastAPI is reachable (used by Telegram webhooks).",
    )

    wit_ai_token: Optional[str] = Field(
        default=None, alias="WIT_AI_TOKEN", description="Server token for the Wit.ai speech API"
    )
    wit_ai_api_version: str = Field(default="20230215", alias="WIT_AI_API_VERSION")
    ffmpeg_binary: str = Field(default="ffmpeg", alias="FFMPEG_BINARY")
    voice_timeout_seconds: float = Field(default=30.0, alias="VOICE_TIMEOUT_SECONDS", gt=0)

    linking_code_ttl_seconds: int = Field(
        default=10 * 60,
        alias="LINKING_CODE_TTL_SECONDS",
        description="How long a freshly issued linking code stays valid.",
        ge=60,
    )
    conversation_state_ttl_seconds: int = Field(
        default=5 * 60,
        alias="CONVERSATION_STATE_TTL_SECONDS",
        description="How long the bot waits for a linking code after /start.",
        ge=1,
    )
    max_expense_amount: Decimal = Field(
        default=Decimal("1000000"), alias="MAX_EXPENSE_AMOUNT", gt=0
    )
    default_currency: Literal["GBP", "USD", "EUR"] = Field(
        default="GBP", alias="DEFAULT_CURRENCY"
    )

    auth_secret_key: str = Field(
        default="change-me-to-a-safe-key",
        alias="AUTH_SECRET_KEY",
        description="Secret key used to sign API access tokens.",
        min_length=16,
    )
    auth_token_algorithm: str = Field(
        default="HS256",
        alias="AUTH_TOKEN_ALGORITHM",
        description="JWT signing algorithm used for access tokens.",
    )
    auth_access_token_ttl_seconds: int = Field(
        default=60 * 60 * 12,
        alias="AUTH_ACCESS_TOKEN_TTL_SECONDS",
        description="Lifetime of issued access tokens (in seconds).",
        ge=300,
    )

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Cached accessor so imports share a single settings instance."""
    return Settings()  # type: ignore[call-arg]
