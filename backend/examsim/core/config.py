from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    app_env: str = Field(default="development", validation_alias="APP_ENV")

    redis_url: str = Field(
        default="redis://localhost:6379/0",
        validation_alias="REDIS_URL",
    )
    redis_socket_timeout: float = Field(default=0.5, validation_alias="REDIS_SOCKET_TIMEOUT")

    cors_allow_origins: str = Field(default="http://localhost:3000", validation_alias="CORS_ALLOW_ORIGINS")

    # Comma-joined list of keys; blank entries are dropped when the pool is built.
    gemini_api_keys: str = Field(default="", validation_alias=AliasChoices("GEMINI_API_KEYS", "API_KEY"))
    gemini_base_url: str = Field(
        default="https://generativelanguage.googleapis.com/v1beta",
        validation_alias="GEMINI_BASE_URL",
    )
    gemini_model: str = Field(default="gemini-2.5-flash", validation_alias="GEMINI_MODEL")
    gemini_temperature: float = Field(default=0.5, validation_alias="GEMINI_TEMPERATURE")

    gemini_timeout_connect: float = Field(default=3.0, validation_alias="GEMINI_TIMEOUT_CONNECT")
    gemini_timeout_read: float = Field(default=12.0, validation_alias="GEMINI_TIMEOUT_READ")
    gemini_timeout_write: float = Field(default=12.0, validation_alias="GEMINI_TIMEOUT_WRITE")
    gemini_request_timeout_seconds: float = Field(default=15.0, validation_alias="GEMINI_REQUEST_TIMEOUT_SECONDS")

    # None means "pool size + 1" so every key gets a turn.
    gemini_max_retries: int | None = Field(default=None, validation_alias="GEMINI_MAX_RETRIES")
    gemini_backoff_seconds: float = Field(default=0.4, validation_alias="GEMINI_BACKOFF_SECONDS")
    gemini_backoff_jitter_seconds: float = Field(default=0.25, validation_alias="GEMINI_BACKOFF_JITTER_SECONDS")

    supply_batch_size: int = Field(default=4, validation_alias="SUPPLY_BATCH_SIZE")
    supply_max_batches: int = Field(default=5, validation_alias="SUPPLY_MAX_BATCHES")
    supply_stagger_seconds: float = Field(default=0.25, validation_alias="SUPPLY_STAGGER_SECONDS")
    supply_default_target: int = Field(default=10, validation_alias="SUPPLY_DEFAULT_TARGET")
    supply_warn_on_partial: bool = Field(default=True, validation_alias="SUPPLY_WARN_ON_PARTIAL")

    exam_tick_seconds: float = Field(default=1.0, validation_alias="EXAM_TICK_SECONDS")
    exam_reset_timer_on_previous: bool = Field(default=False, validation_alias="EXAM_RESET_TIMER_ON_PREVIOUS")
    exam_max_sessions: int = Field(default=500, validation_alias="EXAM_MAX_SESSIONS")

    quota_enabled: bool = Field(default=True, validation_alias="QUOTA_ENABLED")
    daily_quota: int = Field(default=500, validation_alias="DAILY_QUOTA")


settings = Settings()


def _is_prod() -> bool:
    return (settings.app_env or "").strip().lower() in {"prod", "production"}


if _is_prod():
    if settings.redis_url.strip() == "redis://localhost:6379/0":
        raise RuntimeError("REDIS_URL must be set in production")
    if "*" in [o.strip() for o in str(settings.cors_allow_origins or "").split(",")]:
        raise RuntimeError("CORS_ALLOW_ORIGINS must not include '*' in production")
