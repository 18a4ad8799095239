"""
Configuration management with environment variable support and validation.

Design principles:
- Environment-specific configs (dev, staging, prod)
- Validation at startup (fail fast)
- Type safety with Pydantic
- Secure defaults
"""

import os
from functools import lru_cache
from typing import Literal, cast

from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator, model_validator

# Load environment variables from .env file
load_dotenv()

KNOWN_CHANNELS = ("chat", "broadAlert")


class MonitoringConfig(BaseModel):
    """Reading pipeline configuration."""

    history_limit: int = Field(
        default=1000, gt=0, description="Readings kept per user; oldest evicted first"
    )
    recent_readings_pool: int = Field(
        default=10, gt=0, description="Prior same-type readings used for rapid-change checks"
    )
    default_cooldown_ms: int = Field(
        default=15 * 60 * 1000, ge=0, description="Minimum gap between device-triggered alerts"
    )
    default_contact_name: str = Field(
        default="Dr. Smith", min_length=1, description="Contact seeded for users with none"
    )
    default_contact_phone: str | None = Field(
        default="+1234567890", description="Seeded contact number; None disables seeding"
    )


class NotificationConfig(BaseModel):
    """Emergency fan-out configuration."""

    channel_timeout_seconds: float = Field(
        default=10.0, gt=0.0, description="Timeout for a single channel delivery"
    )
    enabled_channels: list[str] = Field(
        default_factory=lambda: list(KNOWN_CHANNELS), description="Channels that may deliver"
    )
    maps_url_template: str = Field(
        default="https://maps.google.com/?q={lat},{long}",
        description="Map link embedded in alert messages",
    )
    chat_sender: str = Field(default="system", description="Sender id for chat alerts")

    @field_validator("enabled_channels")
    @classmethod
    def validate_channels(cls, v: list[str]) -> list[str]:
        unknown = [name for name in v if name not in KNOWN_CHANNELS]
        if unknown:
            raise ValueError(f"Unknown notification channels: {', '.join(unknown)}")
        return v


class DatabaseConfig(BaseModel):
    """Storage backend configuration."""

    backend: Literal["memory", "sql"] = Field(default="memory", description="Storage backend")
    url: str = Field(default="sqlite:///./healthbridge.db", description="Database URL")
    echo: bool = Field(default=False, description="Log SQL statements")


class APIConfig(BaseModel):
    """API server configuration."""

    host: str = Field(default="0.0.0.0", description="API server host")
    port: int = Field(default=8000, gt=0, lt=65536, description="API server port")
    reload: bool = Field(default=False, description="Enable auto-reload for development")

    allowed_origins: list[str] = Field(
        default_factory=lambda: ["http://localhost:3000"], description="Allowed origins for CORS"
    )
    worker_count: int = Field(default=1, gt=0, description="Number of worker processes")


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO", description="Logging level"
    )
    format: Literal["json", "console"] = Field(default="json", description="Logging format")


class AppConfig(BaseModel):
    """Main application configuration combining all subsystems."""

    environment: Literal["development", "staging", "production"] = Field(
        default="development", description="Environment"
    )
    debug: bool = Field(default=False, description="Enable debug mode")

    monitoring: MonitoringConfig = Field(default_factory=MonitoringConfig)
    notifications: NotificationConfig = Field(default_factory=NotificationConfig)
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    api: APIConfig = Field(default_factory=APIConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @model_validator(mode="after")
    def debug_only_in_dev(self) -> "AppConfig":
        """Ensure debug mode is only allowed in development environment."""
        if self.debug and self.environment != "development":
            raise ValueError("debug mode is only allowed in development environment")
        return self


def load_config_from_env() -> AppConfig:
    """Load configuration from environment variables with validation."""

    def _env_to_literal(val: str) -> Literal["development", "staging", "production"]:
        v = val.strip().lower()
        if v in {"dev", "development"}:
            return "development"
        if v in {"stage", "staging"}:
            return "staging"
        return "production"

    def _level_to_literal(val: str) -> Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]:
        v = val.strip().upper()
        return cast(
            Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
            v if v in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"} else "INFO",
        )

    def _backend_to_literal(val: str) -> Literal["memory", "sql"]:
        return "sql" if val.strip().lower() in {"sql", "sqlite", "database"} else "memory"

    def _parse_bool(val: str | None, default: bool) -> bool:
        if val is None:
            return default
        return val.strip().lower() in {"1", "true", "yes", "on"}

    def _parse_list(val: str) -> list[str]:
        return [item.strip() for item in val.split(",") if item.strip()]

    environment = _env_to_literal(os.getenv("ENVIRONMENT", "development"))
    debug = environment == "development"

    monitoring_config = MonitoringConfig(
        history_limit=int(os.getenv("HISTORY_LIMIT", "1000")),
        recent_readings_pool=int(os.getenv("RECENT_READINGS_POOL", "10")),
        default_cooldown_ms=int(os.getenv("NOTIFICATION_COOLDOWN_MS", str(15 * 60 * 1000))),
        default_contact_name=os.getenv("DEFAULT_CONTACT_NAME", "Dr. Smith"),
        default_contact_phone=os.getenv("DEFAULT_CONTACT_PHONE", "+1234567890").strip() or None,
    )

    notification_config = NotificationConfig(
        channel_timeout_seconds=float(os.getenv("CHANNEL_TIMEOUT_SECONDS", "10.0")),
        enabled_channels=_parse_list(os.getenv("NOTIFICATION_CHANNELS", ",".join(KNOWN_CHANNELS))),
        chat_sender=os.getenv("CHAT_SENDER", "system"),
    )

    database_config = DatabaseConfig(
        backend=_backend_to_literal(os.getenv("STORAGE_BACKEND", "memory")),
        url=os.getenv("DATABASE_URL", "sqlite:///./healthbridge.db"),
        echo=_parse_bool(os.getenv("DATABASE_ECHO"), False),
    )

    api_config = APIConfig(
        host=os.getenv("API_HOST", "0.0.0.0"),
        port=int(os.getenv("API_PORT", "8000")),
        reload=_parse_bool(os.getenv("API_RELOAD"), debug),
        allowed_origins=_parse_list(os.getenv("API_ALLOWED_ORIGINS", "http://localhost:3000")),
        worker_count=int(os.getenv("API_WORKER_COUNT", "1")),
    )

    logging_config = LoggingConfig(
        level=_level_to_literal(os.getenv("LOG_LEVEL", "INFO")),
        format="console" if debug else "json",
    )

    return AppConfig(
        environment=environment,
        debug=debug,
        monitoring=monitoring_config,
        notifications=notification_config,
        database=database_config,
        api=api_config,
        logging=logging_config,
    )


@lru_cache
def get_config() -> AppConfig:
    """Get cached application configuration."""
    return load_config_from_env()


def validate_config() -> None:
    """Validate configuration at startup."""
    try:
        config = get_config()
        print(f"✅ Configuration loaded for {config.environment} environment")
        print(f"✅ Storage backend: {config.database.backend}")
    except Exception as e:
        print(f"❌ Configuration validation failed: {e}")
        raise


def print_config_summary() -> None:
    """Print configuration summary for debugging."""
    config = get_config()

    print("\n🔧 CONFIGURATION SUMMARY")
    print(f"Environment: {config.environment}")
    print(f"Debug Mode: {config.debug}")
    print(f"Log Level: {config.logging.level}")

    print("\n📈 MONITORING CONFIGURATION")
    print(f"History Limit: {config.monitoring.history_limit} readings")
    print(f"Rapid-change Pool: {config.monitoring.recent_readings_pool} readings")
    print(f"Default Cooldown: {config.monitoring.default_cooldown_ms / 60000:.0f}m")
    print(f"Default Contact: {config.monitoring.default_contact_phone or 'disabled'}")

    print("\n🚨 NOTIFICATIONS")
    print(f"Channels: {', '.join(config.notifications.enabled_channels)}")
    print(f"Channel Timeout: {config.notifications.channel_timeout_seconds}s")

    print("\n🌐 API CONFIGURATION")
    print(f"Host: {config.api.host}:{config.api.port}")
    print(f"Reload: {config.api.reload}")


if __name__ == "__main__":
    validate_config()
    print_config_summary()
