"""Configuration system using pydantic-settings with environment variable loading."""

from pydantic import SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class ExchangeSettings(BaseSettings):
    """Mercado Bitcoin candle source settings."""

    model_config = SettingsConfigDict(env_prefix="EXCHANGE_")

    timeout_ms: int = 30_000
    page_limit: int = 1000
    fetch_batch_delay: float = 0.1  # seconds between paginated calls


class DatabaseSettings(BaseSettings):
    """SQLite storage location."""

    model_config = SettingsConfigDict(env_prefix="DATABASE_")

    path: str = "data/sma.db"


class BackfillSettings(BaseSettings):
    """Daily backfill worker configuration.

    Controls which pairs are processed, the retry budget of the
    fetch/compute/persist unit, and the schedule of the worker loop.
    All fields configurable via BACKFILL_ environment variable prefix.
    """

    model_config = SettingsConfigDict(env_prefix="BACKFILL_")

    enabled: bool = True  # run the worker inside the API process
    pairs: list[str] = ["BRLBTC", "BRLETH"]
    max_attempts: int = 5
    retry_interval: float = 3600.0  # seconds between attempts
    test_mode: bool = False
    test_retry_interval: float = 0.1
    run_interval: float = 86_400.0  # seconds between runs
    lookback_days: int = 200  # seeds the largest window
    completeness_days: int = 365

    @property
    def effective_retry_interval(self) -> float:
        """Retry delay actually used by the worker (short in test mode)."""
        return self.test_retry_interval if self.test_mode else self.retry_interval


class AlertSettings(BaseSettings):
    """Alert delivery configuration (log always, e-mail optionally)."""

    model_config = SettingsConfigDict(env_prefix="ALERT_")

    enabled: bool = True
    email_enabled: bool = False
    smtp_host: str = ""
    smtp_port: int = 587
    smtp_username: str = ""
    smtp_password: SecretStr = SecretStr("")
    from_email: str = ""
    to_emails: list[str] = []


class ApiSettings(BaseSettings):
    """HTTP query surface configuration."""

    model_config = SettingsConfigDict(env_prefix="API_")

    host: str = "0.0.0.0"
    port: int = 8080
    max_query_age_days: int = 365


class AppSettings(BaseSettings):
    """Root application settings, composing all sub-settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
    )

    log_level: str = "INFO"
    exchange: ExchangeSettings = ExchangeSettings()
    database: DatabaseSettings = DatabaseSettings()
    backfill: BackfillSettings = BackfillSettings()
    alert: AlertSettings = AlertSettings()
    api: ApiSettings = ApiSettings()
