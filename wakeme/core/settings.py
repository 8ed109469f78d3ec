"""Application settings and configuration."""

from functools import lru_cache
from typing import Literal

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _is_testing() -> bool:
    """Check if we're running in a test environment."""
    import sys
    return "pytest" in sys.modules or any("test" in arg for arg in sys.argv)


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(
        env_file=".env" if not _is_testing() else None,  # Don't load .env in tests
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_env: Literal["local", "staging", "prod", "test"] = Field(
        default="local", description="Application environment"
    )
    log_level: str = Field(default="INFO", description="Logging level")
    public_base_url: str = Field(
        default="http://localhost:8000",
        description="Public URL used for vendor callbacks",
    )

    # Database URLs
    app_database_url: str | None = Field(
        default=None, description="Async database connection URL"
    )
    app_database_url_sync: str | None = Field(
        default=None, description="Sync database connection URL"
    )
    alembic_database_url: str | None = Field(
        default=None, description="Alembic database URL override"
    )

    # Metrics
    metrics_enabled: bool = Field(default=True, description="Enable Prometheus metrics")

    # Scheduler
    scheduler_enabled: bool = Field(default=False, description="Enable APScheduler")
    scheduler_jobstore_table_name: str = Field(
        default="apscheduler_jobs", description="Scheduler jobstore table name"
    )
    startup_heartbeat_job_cron: str | None = Field(
        default="*/1 * * * *", description="Heartbeat job cron schedule"
    )
    bus_tracking_interval_sec: int = Field(
        default=120, description="Interval between bus proximity cycles"
    )
    train_tracking_interval_sec: int = Field(
        default=300, description="Interval between train progress cycles"
    )
    readiness_db_timeout_sec: int = Field(
        default=3, description="Database connection timeout for readiness checks"
    )

    # Telegram
    telegram_bot_token: str | None = Field(default=None, description="Telegram bot token")
    telegram_webhook_secret: str | None = Field(
        default=None, description="Telegram webhook secret token"
    )
    telegram_api_base: str = Field(
        default="https://api.telegram.org", description="Telegram API base URL"
    )

    # Voice calls (VAPI)
    calls_enabled: bool = Field(
        default=False, description="Place real calls; simulate them otherwise"
    )
    vapi_api_key: str | None = Field(default=None, description="VAPI API key")
    vapi_api_base: str = Field(default="https://api.vapi.ai", description="VAPI API base URL")
    vapi_phone_number_id: str | None = Field(
        default=None, description="VAPI phone number used as caller ID"
    )
    vapi_webhook_secret: str | None = Field(
        default=None, description="Shared secret expected in X-Vapi-Secret"
    )
    vapi_voice_id: str = Field(default="en-IN-NeerjaNeural", description="Azure voice id")
    vapi_webhook_test_mode: bool = Field(
        default=False, description="Accept voice webhooks marked X-Simulated: 1"
    )

    # Geo / schedule providers
    google_maps_api_key: str | None = Field(
        default=None, description="Google Geocoding API key"
    )
    railway_api_base: str = Field(
        default="https://rail-api.example.invalid", description="Railway status API base URL"
    )
    railway_api_key: str | None = Field(default=None, description="Railway status API key")
    provider_timeout_sec: float = Field(
        default=30.0, description="Timeout for outbound provider requests"
    )
    default_country_code: str = Field(
        default="+91", description="Country code applied to local phone numbers"
    )

    # Alert policy
    bus_alert_radius_km: float = Field(default=7.0, description="Wake-up call radius")
    bus_warning_radius_km: float = Field(default=15.0, description="Warning notice radius")
    bus_info_radius_km: float = Field(default=30.0, description="Info notice radius")
    bus_average_speed_kmh: float = Field(default=40.0, description="Speed used for bus ETA")
    train_alert_stations: int = Field(
        default=2, description="Alert when this many stations or fewer remain"
    )
    train_alert_distance_km: float = Field(
        default=50.0, description="Alert when this many km or fewer remain"
    )

    # Call escalation
    call_max_attempts: int = Field(default=5, description="Wake-up calls per trip")
    call_retry_delay_sec: int = Field(default=120, description="Delay between calls")
    call_placement_failure_limit: int = Field(
        default=5, description="Failed placements tolerated before giving up"
    )
    call_stall_timeout_sec: int = Field(
        default=300, description="Quiet time after which the tracking cycle re-drives a call loop"
    )
    call_result_timeout_sec: int = Field(
        default=900, description="Time a placed call may go without a result"
    )

    @model_validator(mode="after")
    def validate_scheduler_config(self) -> "Settings":
        """Validate scheduler configuration."""
        if self.scheduler_enabled and not self.app_database_url_sync:
            raise ValueError("APP_DATABASE_URL_SYNC is required when scheduler is enabled")
        return self

    @model_validator(mode="after")
    def validate_alert_radii(self) -> "Settings":
        """Bus zones must nest: alert inside warning inside info."""
        if not (
            0 < self.bus_alert_radius_km
            <= self.bus_warning_radius_km
            <= self.bus_info_radius_km
        ):
            raise ValueError(
                "Bus radii must satisfy 0 < alert <= warning <= info "
                f"(got {self.bus_alert_radius_km}/{self.bus_warning_radius_km}/"
                f"{self.bus_info_radius_km})"
            )
        if self.call_max_attempts < 1:
            raise ValueError("CALL_MAX_ATTEMPTS must be at least 1")
        if self.call_stall_timeout_sec <= self.call_retry_delay_sec:
            raise ValueError("CALL_STALL_TIMEOUT_SEC must exceed CALL_RETRY_DELAY_SEC")
        return self

    @property
    def voice_webhook_url(self) -> str:
        """Callback address handed to the voice gateway."""
        return f"{self.public_base_url.rstrip('/')}/webhooks/voice"

    @classmethod
    def from_env(cls) -> "Settings":
        """Create settings from environment variables."""
        return cls()


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings.from_env()
