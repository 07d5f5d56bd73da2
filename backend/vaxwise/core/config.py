"""Module: config."""

from pydantic_settings import BaseSettings

# Centralized runtime configuration loaded from environment variables.
class Settings(BaseSettings):
    # Primary SQLAlchemy connection string for the backend database.
    database_url: str
    log_level: str = "INFO"

    # Bearer tokens are issued by the auth service and verified here with a shared secret.
    jwt_secret: str = "change-me"
    jwt_algorithm: str = "HS256"

    # Messaging provider that accepts email/sms/push sends. Unset means log-only delivery.
    messaging_base_url: str | None = None
    channel_timeout_seconds: float = 10.0

    # How a finished dispatch maps onto the notification status:
    #   always_sent  - sent once every enabled channel was attempted
    #   any_channel  - sent if at least one channel delivered, otherwise failed
    #   all_channels - sent only if every attempted channel delivered
    dispatch_status_policy: str = "always_sent"

    # Refuse a second live reminder for the same animal, vaccine and due date.
    reminder_deduplication: bool = True

    cors_origins: list[str] = [
        "http://localhost:5173",
        "http://127.0.0.1:5173",
    ]

    # Configure pydantic-settings to also load values from local .env file.
    class Config:
        env_file = ".env"

# Global settings instance imported by app modules at runtime.
settings = Settings()
