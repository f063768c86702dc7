"""Application configuration using Pydantic BaseSettings."""

import logging

import structlog
from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Database
    database_url: str = Field(alias="DATABASE_URL")
    db_pool_size: int = Field(default=50, alias="DB_POOL_SIZE")

    # Application Environment
    app_env: str = Field(default="development", alias="APP_ENV")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # CORS Configuration
    cors_origins: str = Field(default="http://localhost:3000", alias="CORS_ORIGINS")

    # Server Configuration
    host: str = Field(default="0.0.0.0", alias="HOST")
    port: int = Field(default=8080, alias="PORT")

    # Replicate provider
    replicate_api_token: str = Field(default="", alias="REPLICATE_API_TOKEN")
    replicate_image_model: str = Field(
        default="black-forest-labs/flux-dev-lora", alias="REPLICATE_IMAGE_MODEL"
    )
    replicate_trainer_version: str = Field(
        default=(
            "ostris/flux-dev-lora-trainer:"
            "b6af14222e6bd9be257cbc1ea4afda3cd0503e1133083b9d1de0364d8568e6ef"
        ),
        alias="REPLICATE_TRAINER_VERSION",
    )
    replicate_training_destination: str = Field(
        default="", alias="REPLICATE_TRAINING_DESTINATION"
    )
    replicate_webhook_secret: str = Field(default="", alias="REPLICATE_WEBHOOK_SECRET")
    public_base_url: str = Field(default="http://localhost:8080", alias="PUBLIC_BASE_URL")
    provider_timeout_seconds: float = Field(default=30.0, alias="PROVIDER_TIMEOUT_SECONDS")

    # Billing
    image_generation_credits: int = Field(default=1, ge=1, alias="IMAGE_GENERATION_CREDITS")

    # Reconcile sweeper (missed webhook recovery)
    reconcile_enabled: bool = Field(default=True, alias="RECONCILE_ENABLED")
    reconcile_interval_seconds: int = Field(default=60, alias="RECONCILE_INTERVAL_SECONDS")
    reconcile_stale_after_seconds: int = Field(
        default=900, alias="RECONCILE_STALE_AFTER_SECONDS"
    )
    reconcile_batch_size: int = Field(default=50, alias="RECONCILE_BATCH_SIZE")

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse CORS origins from comma-separated string."""
        return [origin.strip() for origin in self.cors_origins.split(",")]

    @property
    def image_webhook_url(self) -> str:
        return f"{self.public_base_url.rstrip('/')}/webhooks/replicate/image"

    @property
    def training_webhook_url(self) -> str:
        return f"{self.public_base_url.rstrip('/')}/webhooks/replicate/training"

    @model_validator(mode="after")
    def validate_required_config(self) -> "Settings":
        """Validate required configuration on startup.

        Fails fast with clear error messages if provider configuration is incomplete.
        Validation is skipped in test environments to avoid breaking tests.
        """
        if self.app_env in ("test", "testing"):
            return self

        missing = []

        if not self.replicate_api_token:
            missing.append(
                "REPLICATE_API_TOKEN: Get your API token from https://replicate.com/account/api-tokens"
            )

        if not self.replicate_webhook_secret:
            missing.append(
                "REPLICATE_WEBHOOK_SECRET: GET https://api.replicate.com/v1/webhooks/default/secret"
            )

        if not self.replicate_training_destination:
            missing.append(
                "REPLICATE_TRAINING_DESTINATION: Create a destination model (owner/name) on Replicate"
            )

        if missing:
            error_msg = "CRITICAL: Missing required environment variables:\n\n" + "\n".join(
                f"  - {m}" for m in missing
            )
            error_msg += "\n\nThe application cannot start without these variables."
            raise ValueError(error_msg)

        return self


def configure_logging(settings: Settings) -> None:
    """Configure structlog based on application environment.

    - Production: JSON output for log aggregation
    - Development: Console output for human readability
    """
    level = getattr(logging, settings.log_level.upper(), logging.INFO)

    if settings.app_env == "production":
        renderer = [
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        renderer = [structlog.dev.ConsoleRenderer()]

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            *renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )
