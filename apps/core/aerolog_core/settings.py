"""Application settings and configuration."""

from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Settings loaded from environment variables, shared by core and worker."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Database
    database_url: Optional[str] = None
    postgres_user: str = "aerolog"
    postgres_password: str = "aerolog_dev_password"
    postgres_db: str = "aerolog"
    postgres_host: str = "localhost"
    postgres_port: int = 5432
    db_pool_recycle_seconds: int = 1800
    worker_db_pool_size: int = 2
    worker_db_max_overflow: int = 2

    # Redis (Celery broker/backend and compliance window cache)
    redis_url: str = "redis://localhost:6379/0"
    cache_redis_url: Optional[str] = None

    # Environment
    environment: str = "development"
    secret_key: str = "dev-secret-key-change-in-production"

    # Logging
    log_level: str = "INFO"
    log_format: str = "json"

    # Signing key
    signing_key_path: str = "./secrets/aerolog_signing_key.pem"
    signing_key_provider: str = "local"

    # Regulator integration
    regulator_submission_mode: str = "database"  # database, ledger
    regulator_base_url: str = "http://localhost:9100"
    regulator_api_token: Optional[str] = None
    regulator_timeout_seconds: float = 10.0
    regulator_connect_timeout_seconds: float = 5.0

    # Sync policy
    sync_max_attempts: int = 8  # per record, durable in sync_attempts
    sync_job_max_retries: int = 5
    sync_retry_delays: list[int] = [300, 600, 1800, 3600]
    sync_failure_alert_threshold: int = 10
    sync_stale_after_hours: int = 24

    # Scheduler
    scheduler_timezone: str = "America/Sao_Paulo"
    job_max_retries: int = 3
    job_time_budget_seconds: int = 20 * 60
    task_time_limit_seconds: int = 30 * 60
    task_soft_time_limit_seconds: int = 25 * 60

    # Deadlines
    near_deadline_days: int = 2

    # Compliance window cache
    compliance_window_days: int = 30
    cache_entry_ttl_seconds: int = 24 * 3600
    cache_integrity_sample_size: int = 50
    cache_evict_scan_limit: int = 10000
    cache_report_ttl_seconds: int = 7 * 24 * 3600

    # Conformance audit
    conformance_sample_size: int = 500
    conformance_critical_threshold: float = 95.0

    # Notifications
    notification_provider: str = "log"  # log, webhook
    notification_webhook_url: Optional[str] = None
    notification_webhook_secret: Optional[str] = None
    notification_timeout_seconds: int = 10
    regulator_liaison_group: str = "regulator-liaison"
    administrators_group: str = "administrators"
    management_group: str = "management"

    @property
    def database_url_computed(self) -> str:
        """Compute database URL if not explicitly set."""
        if self.database_url:
            return self.database_url
        return (
            f"postgresql://{self.postgres_user}:{self.postgres_password}"
            f"@{self.postgres_host}:{self.postgres_port}/{self.postgres_db}"
        )

    @property
    def cache_redis_url_computed(self) -> str:
        return self.cache_redis_url or self.redis_url

    @property
    def is_production(self) -> bool:
        """Check if running in production."""
        return self.environment.lower() == "production"

    def validate_production_settings(self):
        """Validate settings for production environment."""
        env = self.environment.lower()
        if env not in ("development", "test", "dev"):
            if self.signing_key_provider == "local" and self.signing_key_path.startswith("./"):
                raise ValueError(
                    "SIGNING_KEY_PATH must point to a managed key outside the working "
                    "directory in production."
                )
            if self.notification_provider == "log":
                raise ValueError(
                    "NOTIFICATION_PROVIDER=log is not allowed in production. "
                    "Use NOTIFICATION_PROVIDER=webhook."
                )
            if self.notification_provider == "webhook" and not self.notification_webhook_secret:
                raise ValueError("NOTIFICATION_WEBHOOK_SECRET is required in production.")
            if not self.regulator_api_token:
                raise ValueError("REGULATOR_API_TOKEN is required in production.")
        if self.regulator_submission_mode.lower() not in ("database", "ledger"):
            raise ValueError(
                f"Unknown REGULATOR_SUBMISSION_MODE: {self.regulator_submission_mode}"
            )


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
