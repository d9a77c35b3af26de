from dataclasses import dataclass

from pydantic_settings import BaseSettings, SettingsConfigDict

STRIPE_ENVIRONMENTS = ("production", "test")


@dataclass(frozen=True)
class WebhookSecret:
    """One candidate signing secret, tagged with the environment it belongs to."""

    environment: str
    secret: str


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    app_env: str = "dev"
    log_level: str = "INFO"
    api_host: str = "0.0.0.0"
    api_port: int = 8000

    db_host: str = "host.docker.internal"
    db_port: int = 5432
    db_database: str = "translations"
    db_username: str = "translations"
    db_password: str = "secret"
    db_pool_max_size: int = 10

    stripe_environment: str = "test"
    stripe_secret_key_test: str = ""
    stripe_secret_key_production: str = ""
    stripe_webhook_secret_test: str = ""
    stripe_webhook_secret_production: str = ""

    storage_bucket: str = "documents"
    storage_region: str = "us-east-1"
    storage_endpoint_url: str | None = None
    signed_url_ttl_seconds: int = 86400

    automation_webhook_url: str = ""
    notification_webhook_url: str = ""
    outbound_timeout_seconds: int = 30

    pdf_engine: str = "pdfplumber"
    max_upload_bytes: int = 10 * 1024 * 1024
    upload_max_attempts: int = 3
    upload_backoff_seconds: float = 1.0

    delivery_dedup_seconds: int = 120
    delivery_cache_ttl_seconds: int = 300
    expired_log_dedup_seconds: int = 300

    sweeper_min_draft_age_minutes: int = 30
    sweeper_max_draft_age_days: int = 7
    sweeper_stale_session_minutes: int = 30
    sweeper_abandoned_session_hours: int = 1
    sweeper_batch_limit: int = 50
    sweeper_request_delay_seconds: float = 0.2
    sweep_interval_seconds: int = 900

    def webhook_secrets(self) -> list[WebhookSecret]:
        """Candidate signing secrets, configured environment first, blanks skipped."""
        configured = {
            "production": self.stripe_webhook_secret_production,
            "test": self.stripe_webhook_secret_test,
        }
        current = self.stripe_environment.lower()
        order = [current] + [env for env in STRIPE_ENVIRONMENTS if env != current]
        return [
            WebhookSecret(environment=env, secret=configured[env])
            for env in order
            if configured.get(env)
        ]

    def stripe_api_key(self, environment: str | None = None) -> str:
        """Secret API key for the given (or configured) Stripe environment."""
        env = (environment or self.stripe_environment).lower()
        if env == "production":
            return self.stripe_secret_key_production
        if env == "test":
            return self.stripe_secret_key_test
        raise ValueError(
            f"Unknown Stripe environment '{env}'. Choose from: {list(STRIPE_ENVIRONMENTS)}"
        )
