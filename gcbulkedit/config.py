"""API configuration using Pydantic Settings."""

from enum import Enum
from functools import lru_cache
from pathlib import Path

from pydantic import Field, RedisDsn, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class Environment(str, Enum):
    """Application environment."""

    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"


class LogLevel(str, Enum):
    """Logging levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"


class Settings(BaseSettings):
    """API configuration settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ============ Environment ============
    environment: Environment = Environment.DEVELOPMENT
    log_level: LogLevel = LogLevel.INFO
    debug: bool = False
    api_host: str = "0.0.0.0"
    api_port: int = 3000

    # Absolute base used for checkout redirect targets
    public_base_url: str = "https://gcbulkedit.dev"

    # CORS (the extension calls from its own origin)
    cors_origins: list[str] = Field(default_factory=lambda: ["*"])

    # Icons and images served under /static
    static_dir: Path = Path("public")

    # ============ Document store ============
    redis_url: RedisDsn = Field(
        default="redis://localhost:6379/0",
        description="Redis connection URL",
    )
    redis_key_prefix: str = "gcbe"
    redis_timeout_seconds: float = 5.0

    # ============ Payment gateway ============
    stripe_secret_key: SecretStr | None = None
    stripe_webhook_secret: SecretStr | None = None
    stripe_price_id: str = Field(
        default="price_1Sf6FOJguShk9RUdUS5e2XyS",
        description="Subscription price used for hosted checkout",
    )
    stripe_timeout_seconds: float = 10.0

    # ============ Quota ============
    free_actions_limit: int = Field(
        default=100,
        ge=0,
        description="Free actions granted to a new customer",
    )

    # ============ Monitoring ============
    sentry_dsn: str | None = None
    prometheus_enabled: bool = True

    @property
    def is_production(self) -> bool:
        """Check if running in production."""
        return self.environment == Environment.PRODUCTION


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
