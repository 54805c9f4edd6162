"""Configuration management for the match-tracker service."""

from dataclasses import dataclass
from enum import Enum
from typing import List, NamedTuple

from decouple import Choices
from decouple import config


class Environment(Enum):
    """Supported deployment environments."""

    DEVELOPMENT = "development"
    CI = "CI"
    PRODUCTION = "production"


class RateLimitTier(NamedTuple):
    """One rate limiting window: at most ``max_calls`` per ``window_seconds``."""

    max_calls: int
    window_seconds: float


def parse_rate_limit_tiers(value: str) -> List[RateLimitTier]:
    """Parse tiers written in Riot header notation, e.g. ``"20:1,100:120"``.

    Raises:
        ValueError: If the string is empty or a tier is malformed
    """
    tiers = []
    for chunk in value.split(","):
        chunk = chunk.strip()
        if not chunk:
            continue
        calls, sep, window = chunk.partition(":")
        if not sep:
            raise ValueError(f"Invalid rate limit tier {chunk!r}, expected 'calls:seconds'")
        tier = RateLimitTier(max_calls=int(calls), window_seconds=float(window))
        if tier.max_calls <= 0 or tier.window_seconds <= 0:
            raise ValueError(f"Rate limit tier {chunk!r} must be positive")
        tiers.append(tier)
    if not tiers:
        raise ValueError("At least one rate limit tier must be configured")
    return tiers


LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


@dataclass
class Config:
    """Configuration for the match-tracker service."""

    # Required fields
    database_url: str
    riot_api_key: str

    # Optional TFT key; TFT polling is disabled when empty
    tft_riot_api_key: str = ""
    database_name: str = "match_tracker_db"

    # Environment configuration
    environment: Environment = Environment.DEVELOPMENT

    # Riot API configuration. An empty URL routes each call to the regional
    # cluster of the account; a non-empty URL (mock server) overrides it.
    riot_api_url: str = ""
    riot_api_timeout_seconds: int = 10
    riot_rate_limits: str = "20:1,100:120"
    match_history_count: int = 20
    match_cache_capacity: int = 512

    # Retry policy
    riot_api_max_rate_limit_retries: int = 3
    riot_api_max_transient_attempts: int = 3
    riot_api_backoff_base_seconds: float = 0.5
    riot_api_backoff_max_seconds: float = 8.0
    riot_api_default_retry_after_seconds: float = 10.0

    # Polling configuration
    poll_interval_seconds: int = 60
    shutdown_grace_seconds: int = 30

    # Message bus configuration (NATS)
    message_bus_url: str = "nats://localhost:4222"
    message_bus_timeout_seconds: int = 10
    message_bus_max_reconnect_attempts: int = 10
    message_bus_reconnect_delay_seconds: int = 2
    match_events_subject: str = "riot.match"

    # JetStream configuration
    match_events_stream: str = "match_events"
    jetstream_max_age_hours: int = 24
    jetstream_max_msgs: int = 1000000
    jetstream_storage: str = "file"

    # Logging configuration
    log_level: str = "INFO"
    log_format: str = "json"

    # OpenTelemetry configuration
    otel_enabled: bool = False
    otel_service_name: str = "match-tracker"
    otel_exporter_type: str = "console"
    otel_otlp_endpoint: str = "http://localhost:4317"
    otel_export_interval_millis: int = 60000
    otel_export_timeout_millis: int = 30000

    @classmethod
    def from_env(cls) -> "Config":
        """Create configuration from environment variables."""
        env = Environment(
            config("ENVIRONMENT", default="development", cast=Choices(["development", "CI", "production"]))
        )

        # Environment-specific defaults
        default_message_bus = "nats://nats:4222" if env == Environment.PRODUCTION else "nats://localhost:4222"

        instance = cls(
            # Required
            database_url=config("DATABASE_URL"),
            riot_api_key=config("RIOT_API_KEY"),
            tft_riot_api_key=config("TFT_RIOT_API_KEY", default=""),
            database_name=config("DATABASE_NAME", default="match_tracker_db"),
            # Environment
            environment=env,
            # Riot API
            riot_api_url=config("RIOT_API_URL", default=""),
            riot_api_timeout_seconds=config("RIOT_API_TIMEOUT_SECONDS", default=10, cast=int),
            riot_rate_limits=config("RIOT_RATE_LIMITS", default="20:1,100:120"),
            match_history_count=config("MATCH_HISTORY_COUNT", default=20, cast=int),
            match_cache_capacity=config("MATCH_CACHE_CAPACITY", default=512, cast=int),
            # Retry policy
            riot_api_max_rate_limit_retries=config("RIOT_API_MAX_RATE_LIMIT_RETRIES", default=3, cast=int),
            riot_api_max_transient_attempts=config("RIOT_API_MAX_TRANSIENT_ATTEMPTS", default=3, cast=int),
            riot_api_backoff_base_seconds=config("RIOT_API_BACKOFF_BASE_SECONDS", default=0.5, cast=float),
            riot_api_backoff_max_seconds=config("RIOT_API_BACKOFF_MAX_SECONDS", default=8.0, cast=float),
            riot_api_default_retry_after_seconds=config(
                "RIOT_API_DEFAULT_RETRY_AFTER_SECONDS", default=10.0, cast=float
            ),
            # Polling
            poll_interval_seconds=config("POLL_INTERVAL_SECONDS", default=60, cast=int),
            shutdown_grace_seconds=config("SHUTDOWN_GRACE_SECONDS", default=30, cast=int),
            # Message bus
            message_bus_url=config("MESSAGE_BUS_URL", default=default_message_bus),
            message_bus_timeout_seconds=config("MESSAGE_BUS_TIMEOUT_SECONDS", default=10, cast=int),
            message_bus_max_reconnect_attempts=config("MESSAGE_BUS_MAX_RECONNECT_ATTEMPTS", default=10, cast=int),
            message_bus_reconnect_delay_seconds=config("MESSAGE_BUS_RECONNECT_DELAY_SECONDS", default=2, cast=int),
            match_events_subject=config("MATCH_EVENTS_SUBJECT", default="riot.match"),
            # JetStream
            match_events_stream=config("MATCH_EVENTS_STREAM", default="match_events"),
            jetstream_max_age_hours=config("JETSTREAM_MAX_AGE_HOURS", default=24, cast=int),
            jetstream_max_msgs=config("JETSTREAM_MAX_MSGS", default=1000000, cast=int),
            jetstream_storage=config("JETSTREAM_STORAGE", default="file", cast=Choices(["file", "memory"])),
            # Logging
            log_level=config("LOG_LEVEL", default="INFO", cast=Choices(LOG_LEVELS)),
            log_format=config("LOG_FORMAT", default="json", cast=Choices(["json", "text"])),
            # OpenTelemetry
            otel_enabled=config("OTEL_ENABLED", default=False, cast=bool),
            otel_service_name=config("OTEL_SERVICE_NAME", default="match-tracker"),
            otel_exporter_type=config(
                "OTEL_EXPORTER_TYPE", default="console", cast=Choices(["console", "otlp", "none"])
            ),
            otel_otlp_endpoint=config("OTEL_OTLP_ENDPOINT", default="http://localhost:4317"),
            otel_export_interval_millis=config("OTEL_EXPORT_INTERVAL_MILLIS", default=60000, cast=int),
            otel_export_timeout_millis=config("OTEL_EXPORT_TIMEOUT_MILLIS", default=30000, cast=int),
        )

        # Fail fast on malformed tiers
        instance.get_rate_limit_tiers()
        return instance

    def is_development(self) -> bool:
        """Check if running in development environment."""
        return self.environment == Environment.DEVELOPMENT

    def is_test(self) -> bool:
        """Check if running in test environment."""
        return self.environment == Environment.CI

    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment == Environment.PRODUCTION

    def is_tft_enabled(self) -> bool:
        """Check if a TFT API key was provided."""
        return bool(self.tft_riot_api_key.strip())

    def get_rate_limit_tiers(self) -> List[RateLimitTier]:
        """Get the configured rate limit windows."""
        return parse_rate_limit_tiers(self.riot_rate_limits)

    def get_database_url(self) -> str:
        """Construct the full database URL by combining base URL and database name."""
        from urllib.parse import urlparse, urlunparse

        parsed = urlparse(self.database_url)

        # Ensure we have the asyncpg driver specified
        scheme = parsed.scheme
        if scheme in ("postgres", "postgresql", "postgresql+psycopg2"):
            scheme = "postgresql+asyncpg"

        # The path includes the leading '/', so we prepend it to database_name
        path = f"/{self.database_name}"

        return urlunparse(
            (scheme, parsed.netloc, path, parsed.params, parsed.query, parsed.fragment)
        )
