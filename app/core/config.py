from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    app_env: str = Field(default="dev", alias="APP_ENV")
    app_host: str = Field(default="0.0.0.0", alias="APP_HOST")
    app_port: int = Field(default=8000, alias="APP_PORT")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    log_json: bool = Field(default=True, alias="LOG_JSON")

    database_url: str = Field(alias="DATABASE_URL")
    redis_url: str = Field(alias="REDIS_URL")

    celery_broker_url: str = Field(alias="CELERY_BROKER_URL")
    celery_result_backend: str = Field(alias="CELERY_RESULT_BACKEND")

    blockchain_gateway_url: str = Field(default="http://localhost:8080", alias="BLOCKCHAIN_GATEWAY_URL")
    blockchain_gateway_token: str = Field(default="", alias="BLOCKCHAIN_GATEWAY_TOKEN")
    pinning_service_url: str = Field(default="http://localhost:8081", alias="PINNING_SERVICE_URL")
    pinning_service_token: str = Field(default="", alias="PINNING_SERVICE_TOKEN")
    nft_policy_id: str = Field(default="dev_policy", alias="NFT_POLICY_ID")
    external_http_timeout_seconds: float = Field(default=10.0, alias="EXTERNAL_HTTP_TIMEOUT_SECONDS")

    ops_alert_webhook_url: str = Field(default="", alias="OPS_ALERT_WEBHOOK_URL")
    ops_alert_slack_webhook_url: str = Field(default="", alias="OPS_ALERT_SLACK_WEBHOOK_URL")

    questions_per_session: int = Field(default=10, alias="QUESTIONS_PER_SESSION")
    question_timer_seconds: int = Field(default=10, alias="QUESTION_TIMER_SECONDS")
    answer_grace_ms: int = Field(default=1500, alias="ANSWER_GRACE_MS")
    win_threshold: int = Field(default=6, alias="WIN_THRESHOLD")
    session_cooldown_seconds: int = Field(default=60, alias="SESSION_COOLDOWN_SECONDS")
    daily_sessions_connected: int = Field(default=10, alias="DAILY_SESSIONS_CONNECTED")
    daily_sessions_guest: int = Field(default=5, alias="DAILY_SESSIONS_GUEST")
    daily_reset_timezone: str = Field(default="America/New_York", alias="DAILY_RESET_TIMEZONE")
    daily_reset_hour: int = Field(default=0, alias="DAILY_RESET_HOUR")

    eligibility_window_connected_minutes: int = Field(
        default=60,
        alias="ELIGIBILITY_WINDOW_CONNECTED_MINUTES",
    )
    eligibility_window_guest_minutes: int = Field(default=25, alias="ELIGIBILITY_WINDOW_GUEST_MINUTES")
    guest_transfer_window_minutes: int = Field(default=25, alias="GUEST_TRANSFER_WINDOW_MINUTES")

    forge_category_count: int = Field(default=10, alias="FORGE_CATEGORY_COUNT")
    forge_master_category_count: int = Field(default=10, alias="FORGE_MASTER_CATEGORY_COUNT")
    forge_seasonal_per_category: int = Field(default=2, alias="FORGE_SEASONAL_PER_CATEGORY")

    points_per_correct: int = Field(default=1, alias="POINTS_PER_CORRECT")
    perfect_bonus_points: int = Field(default=10, alias="PERFECT_BONUS_POINTS")
    season_length_days: int = Field(default=90, alias="SEASON_LENGTH_DAYS")
    season_grace_days: int = Field(default=7, alias="SEASON_GRACE_DAYS")
    season_carryover_percent: int = Field(default=0, alias="SEASON_CARRYOVER_PERCENT")

    workflow_max_attempts: int = Field(default=3, alias="WORKFLOW_MAX_ATTEMPTS")
    workflow_retry_base_seconds: float = Field(default=1.0, alias="WORKFLOW_RETRY_BASE_SECONDS")
    workflow_retry_max_seconds: float = Field(default=8.0, alias="WORKFLOW_RETRY_MAX_SECONDS")
    workflow_retry_jitter_seconds: float = Field(default=0.5, alias="WORKFLOW_RETRY_JITTER_SECONDS")
    confirmation_poll_interval_seconds: float = Field(
        default=20.0,
        alias="CONFIRMATION_POLL_INTERVAL_SECONDS",
    )
    confirmation_max_polls: int = Field(default=30, alias="CONFIRMATION_MAX_POLLS")
    workflow_stale_after_seconds: int = Field(default=900, alias="WORKFLOW_STALE_AFTER_SECONDS")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
