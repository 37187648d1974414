from functools import lru_cache
from typing import Literal

from pydantic import BaseModel, Field, PostgresDsn, RedisDsn, SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class CustomSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )


class AppSettings(CustomSettings):
    ENVIRONMENT: Literal["local", "dev", "prod"] = Field(default="local")
    LOG_LEVEL: str = Field(default="INFO")
    JSON_LOGS: bool = Field(default=True)


class PgDbSettings(CustomSettings):
    POSTGRES_ENGINE: str = Field(default="postgresql+asyncpg")
    POSTGRES_USER: str = Field(default="postgres")
    POSTGRES_PASSWORD: SecretStr = Field(default="postgres")
    POSTGRES_DB: str = Field(default="timesheet")
    POSTGRES_HOST: str = Field(default="localhost")
    POSTGRES_PORT: int = Field(default=5432)
    DATABASE_URL: PostgresDsn | str = Field(default="")

    @model_validator(mode="before")
    def validate_postgres_dsn(cls, data: dict):
        if isinstance(data, dict) and not data.get("DATABASE_URL"):
            _built_uri = PostgresDsn.build(
                scheme=data.get("POSTGRES_ENGINE", "postgresql+asyncpg"),
                username=data.get("POSTGRES_USER", "postgres"),
                password=data.get("POSTGRES_PASSWORD", "postgres"),
                host=data.get("POSTGRES_HOST", "localhost"),
                port=int(data.get("POSTGRES_PORT", 5432)),
                path=data.get("POSTGRES_DB", "timesheet"),
            ).unicode_string()
            data["DATABASE_URL"] = _built_uri
        return data


class RedisSettings(CustomSettings):
    REDIS_HOST: str = Field(default="localhost")
    REDIS_PORT: int = Field(default=6379)
    REDIS_DB: int = Field(default=0)
    REDIS_PASSWORD: SecretStr = Field(default="")
    REDIS_URL: RedisDsn | str = Field(default="")
    CELERY_BROKER_URL: str = Field(default="")
    CELERY_RESULT_BACKEND: str = Field(default="")

    @model_validator(mode="before")
    def validate_redis_url(cls, data: dict):
        if isinstance(data, dict) and not data.get("REDIS_URL"):
            password = data.get("REDIS_PASSWORD", "")
            _built_uri = RedisDsn.build(
                scheme="redis",
                host=data.get("REDIS_HOST", "localhost"),
                port=int(data.get("REDIS_PORT", 6379)),
                path=f"/{data.get('REDIS_DB', 0)}",
                password=password if password else None,
            ).unicode_string()
            data["REDIS_URL"] = _built_uri
        # Set Celery URLs if not provided
        redis_url = data.get("REDIS_URL", "redis://localhost:6379/0")
        if not data.get("CELERY_BROKER_URL"):
            data["CELERY_BROKER_URL"] = redis_url
        if not data.get("CELERY_RESULT_BACKEND"):
            data["CELERY_RESULT_BACKEND"] = redis_url
        return data


class BotSettings(CustomSettings):
    """Bot identity and Teams app metadata.

    Set via env vars:
    - MICROSOFT_APP_ID
    - MICROSOFT_APP_PASSWORD
    - APP_BASE_URI (public base URL of the tab app, used for card images)
    - MANIFEST_ID (Teams app manifest id, used for deep links)
    """

    MICROSOFT_APP_ID: str = Field(default="")
    MICROSOFT_APP_PASSWORD: SecretStr = Field(default="")
    APP_BASE_URI: str = Field(default="http://localhost:8000")
    MANIFEST_ID: str = Field(default="")
    CARD_CACHE_SIZE: int = Field(default=16)


class NotificationSettings(CustomSettings):
    """Proactive notification delivery.

    Delays are in milliseconds. With the defaults a send is attempted at most
    three times and each backoff sleep stays within [1500, 4500] ms.
    """

    NOTIFICATION_MAX_RETRIES: int = Field(default=2, ge=0)
    NOTIFICATION_BASE_DELAY_MS: int = Field(default=1500, gt=0)
    NOTIFICATION_MAX_DELAY_MS: int = Field(default=4500, gt=0)
    BROADCAST_BATCH_SIZE: int = Field(default=40, ge=1)


class ReminderSettings(CustomSettings):
    REMINDER_IDEMPOTENCY_TTL_SECONDS: int = Field(default=6 * 3600)


class Settings(BaseModel):
    APP: AppSettings = Field(default_factory=AppSettings)
    DATABASE: PgDbSettings = Field(default_factory=PgDbSettings)
    REDIS: RedisSettings = Field(default_factory=RedisSettings)
    BOT: BotSettings = Field(default_factory=BotSettings)
    NOTIFICATIONS: NotificationSettings = Field(default_factory=NotificationSettings)
    REMINDERS: ReminderSettings = Field(default_factory=ReminderSettings)


@lru_cache
def get_settings() -> Settings:
    return Settings()


SETTINGS = get_settings()
