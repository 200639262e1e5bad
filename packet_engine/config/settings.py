import os
from pathlib import Path

from loguru import logger
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def get_database_url() -> str:
    """Get database URL, using an absolute path for the local SQLite fallback.

    Set DATABASE_URL to a PostgreSQL connection string for anything beyond
    local development. The queue relies on conditional updates, which both
    backends support, but SQLite serializes all writers.
    """
    db_url = os.getenv("DATABASE_URL", "")
    if db_url:
        logger.info(f"Using DATABASE_URL from environment: {db_url}")
        return db_url

    db_path = Path(__file__).parent.parent.parent / "packets.db"
    db_url = f"sqlite:///{db_path.resolve()}"
    logger.warning(f"Using SQLite database (LOCAL DEV ONLY): {db_url}")
    return db_url


class Settings(BaseSettings):
    database_url: str = Field(
        default_factory=get_database_url,
        validation_alias="DATABASE_URL",
    )
    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")
    log_file: str = Field(default="", validation_alias="LOG_FILE")
    app_base_url: str = Field(default="http://localhost:8000", validation_alias="APP_BASE_URL")

    # Background queue
    worker_enabled: bool = Field(
        default=True,
        validation_alias="PACKET_WORKER_ENABLED",
        description="Start the packet queue poller inside the API process",
    )
    queue_poll_interval_seconds: int = Field(default=10, validation_alias="QUEUE_POLL_INTERVAL_SECONDS")
    queue_batch_size: int = Field(default=10, validation_alias="QUEUE_BATCH_SIZE")
    queue_max_attempts: int = Field(default=3, validation_alias="QUEUE_MAX_ATTEMPTS")
    queue_sweep_interval_seconds: int = Field(
        default=60,
        validation_alias="QUEUE_SWEEP_INTERVAL_SECONDS",
        description="Interval for the maintenance sweep (stale claims, missed retries, pending alerts)",
    )
    processing_timeout_seconds: float = Field(default=300.0, validation_alias="PROCESSING_TIMEOUT_SECONDS")

    # Retry backoff
    retry_max_retries: int = Field(default=3, validation_alias="RETRY_MAX_RETRIES")
    retry_base_delay_seconds: float = Field(default=5.0, validation_alias="RETRY_BASE_DELAY_SECONDS")
    retry_max_delay_seconds: float = Field(default=300.0, validation_alias="RETRY_MAX_DELAY_SECONDS")
    retry_exponential_base: float = Field(default=2.0, validation_alias="RETRY_EXPONENTIAL_BASE")

    error_message_max_length: int = Field(default=500, validation_alias="ERROR_MESSAGE_MAX_LENGTH")

    # Collaborators
    pdf_export_url: str = Field(
        default="",
        validation_alias="PDF_EXPORT_URL",
        description="PDF rendering service endpoint; exports are skipped when empty",
    )
    pdf_export_timeout_seconds: float = Field(default=30.0, validation_alias="PDF_EXPORT_TIMEOUT_SECONDS")
    pdf_author: str = Field(default="Afya Performance", validation_alias="PDF_AUTHOR")
    notification_webhook_url: str = Field(
        default="",
        validation_alias="NOTIFICATION_WEBHOOK_URL",
        description="Webhook receiving client and admin notifications; notifications are only logged when empty",
    )
    admin_emails: str = Field(default="", validation_alias="ADMIN_EMAILS")  # Comma-separated list

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, value: str) -> str:
        """Validate that log level is one of the standard logging levels."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        upper_value = value.upper()
        if upper_value not in valid_levels:
            logger.warning(f"Invalid LOG_LEVEL '{value}'. Valid levels are: {', '.join(valid_levels)}. Defaulting to INFO.")
            return "INFO"
        return upper_value

    @field_validator("queue_batch_size", "queue_max_attempts", "retry_max_retries")
    @classmethod
    def validate_positive(cls, value: int) -> int:
        if value < 1:
            raise ValueError("must be at least 1")
        return value

    @property
    def admin_email_list(self) -> list[str]:
        return [email.strip() for email in self.admin_emails.split(",") if email.strip()]


settings = Settings()
