"""
Configuration for the Reservoir Monitor.

Uses Pydantic settings for validation and environment variable support.
Each group reads its own MONITOR_* prefix.
"""
from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class DatabaseSettings(BaseSettings):
    """PostgreSQL configuration for alerts and settings."""

    model_config = SettingsConfigDict(
        env_prefix="MONITOR_DATABASE_",
        env_file=".env",
        extra="ignore",
    )

    host: str = Field(default="localhost", description="Database host")
    port: int = Field(default=5432, description="Database port")
    name: str = Field(default="reservoir_monitor", description="Database name")
    user: str = Field(default="postgres", description="Database user")
    password: str = Field(default="postgres", description="Database password")
    dsn: Optional[str] = Field(default=None, description="Full SQLAlchemy URL, overrides the parts above")
    pool_size: int = Field(default=5, description="Connection pool size")
    max_overflow: int = Field(default=10, description="Max overflow connections")
    echo_sql: bool = Field(default=False, description="Echo SQL queries")
    create_tables: bool = Field(default=True, description="Create missing tables on startup")

    @property
    def url(self) -> str:
        """Build database URL."""
        if self.dsn:
            return self.dsn
        return f"postgresql+asyncpg://{self.user}:{self.password}@{self.host}:{self.port}/{self.name}"


class RedisSettings(BaseSettings):
    """Redis configuration for the telemetry stream."""

    model_config = SettingsConfigDict(
        env_prefix="MONITOR_REDIS_",
        env_file=".env",
        extra="ignore",
    )

    host: str = Field(default="localhost", description="Redis host")
    port: int = Field(default=6379, description="Redis port")
    db: int = Field(default=0, description="Redis database number")
    password: Optional[str] = Field(default=None, description="Redis password")
    ssl: bool = Field(default=False, description="Use SSL connection")

    telemetry_stream: str = Field(default="telemetry:readings", description="Stream the gateway writes to")
    block_ms: int = Field(default=5000, description="XREAD block time in milliseconds")
    read_count: int = Field(default=100, description="Entries per XREAD")

    @property
    def url(self) -> str:
        """Build Redis URL."""
        auth = f":{self.password}@" if self.password else ""
        protocol = "rediss" if self.ssl else "redis"
        return f"{protocol}://{auth}{self.host}:{self.port}/{self.db}"


class TelemetrySettings(BaseSettings):
    """Telemetry link configuration."""

    model_config = SettingsConfigDict(
        env_prefix="MONITOR_TELEMETRY_",
        env_file=".env",
        extra="ignore",
    )

    reconnect_base_delay: float = Field(default=5.0, description="Seconds multiplied by the attempt number")
    max_reconnect_attempts: int = Field(default=5, description="Consecutive failures before the link goes down")
    history_size: int = Field(default=500, description="Readings kept per site")
    snapshot_interval: float = Field(default=300.0, description="Seconds between sensor status checks")


class EscalationSettings(BaseSettings):
    """Escalation scheduler configuration."""

    model_config = SettingsConfigDict(
        env_prefix="MONITOR_ESCALATION_",
        env_file=".env",
        extra="ignore",
    )

    tick_interval: float = Field(default=60.0, description="Seconds between escalation ticks")


class DispatchSettings(BaseSettings):
    """Notification dispatch configuration."""

    model_config = SettingsConfigDict(
        env_prefix="MONITOR_DISPATCH_",
        env_file=".env",
        extra="ignore",
    )

    send_timeout: float = Field(default=10.0, description="Seconds allowed per send")
    shutdown_timeout: float = Field(default=15.0, description="Seconds to wait for in-flight sends on stop")
    push_topic: str = Field(default="site-{site_id}", description="Push topic per site")


class SMTPSettings(BaseSettings):
    """SMTP configuration for email notifications."""

    model_config = SettingsConfigDict(
        env_prefix="MONITOR_SMTP_",
        env_file=".env",
        extra="ignore",
    )

    enabled: bool = Field(default=False, description="Send email at all")
    host: str = Field(default="localhost")
    port: int = Field(default=587)
    user: Optional[str] = Field(default=None)
    password: Optional[str] = Field(default=None)
    use_tls: bool = Field(default=False, description="Implicit TLS")
    start_tls: bool = Field(default=True, description="Upgrade with STARTTLS")
    timeout: float = Field(default=10.0)
    from_email: str = Field(default="alerts@reservoir-monitor.local")
    from_name: str = Field(default="Reservoir Monitor")


class SMSSettings(BaseSettings):
    """SMS gateway configuration."""

    model_config = SettingsConfigDict(
        env_prefix="MONITOR_SMS_",
        env_file=".env",
        extra="ignore",
    )

    enabled: bool = Field(default=False)
    base_url: str = Field(default="http://localhost:9100")
    send_path: str = Field(default="/messages")
    api_key: Optional[str] = Field(default=None)
    sender_id: str = Field(default="RESERVOIR")
    timeout: float = Field(default=10.0)


class PushSettings(BaseSettings):
    """Push service configuration."""

    model_config = SettingsConfigDict(
        env_prefix="MONITOR_PUSH_",
        env_file=".env",
        extra="ignore",
    )

    enabled: bool = Field(default=False)
    base_url: str = Field(default="http://localhost:9200")
    publish_path: str = Field(default="/publish")
    api_key: Optional[str] = Field(default=None)
    timeout: float = Field(default=10.0)


class SiteApiSettings(BaseSettings):
    """Site and sensor REST API configuration."""

    model_config = SettingsConfigDict(
        env_prefix="MONITOR_SITE_API_",
        env_file=".env",
        extra="ignore",
    )

    base_url: str = Field(default="http://localhost:5000/api", description="Site API URL")
    api_key: Optional[str] = Field(default=None, description="API key for authentication")
    timeout: float = Field(default=10.0, description="Request timeout")
    cache_ttl: float = Field(default=300.0, description="Seconds to cache site and sensor documents")


class MonitorSettings(BaseSettings):
    """Main configuration for the Reservoir Monitor."""

    model_config = SettingsConfigDict(
        env_prefix="MONITOR_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Application
    app_name: str = Field(default="Reservoir Monitor")
    debug: bool = Field(default=False)
    log_level: str = Field(default="INFO")

    # Sub-settings
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    redis: RedisSettings = Field(default_factory=RedisSettings)
    telemetry: TelemetrySettings = Field(default_factory=TelemetrySettings)
    escalation: EscalationSettings = Field(default_factory=EscalationSettings)
    dispatch: DispatchSettings = Field(default_factory=DispatchSettings)
    smtp: SMTPSettings = Field(default_factory=SMTPSettings)
    sms: SMSSettings = Field(default_factory=SMSSettings)
    push: PushSettings = Field(default_factory=PushSettings)
    site_api: SiteApiSettings = Field(default_factory=SiteApiSettings)


@lru_cache()
def get_settings() -> MonitorSettings:
    """
    Get cached monitor settings.

    Uses LRU cache to avoid re-reading environment variables on every access.
    """
    return MonitorSettings()
