"""OpenTelemetry metrics provider for match-tracker."""

import logging
from typing import Optional

from opentelemetry import metrics
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import (
    ConsoleMetricExporter,
    PeriodicExportingMetricReader,
)
from opentelemetry.exporter.otlp.proto.grpc.metric_exporter import OTLPMetricExporter
from opentelemetry.sdk.resources import Resource, SERVICE_NAME

from ...config import Config
from .constants import *

logger = logging.getLogger(__name__)


class MetricsProvider:
    """Manages OpenTelemetry metrics for the match-tracker service.

    A provider that is disabled (``OTEL_ENABLED=false``) or not yet
    initialized accepts every ``record_*`` call and does nothing.
    """

    def __init__(self, config: Config):
        """Initialize the metrics provider.

        Args:
            config: Application configuration
        """
        self.config = config
        self._meter_provider: Optional[MeterProvider] = None
        self._meter: Optional[metrics.Meter] = None
        self._initialized = False

        # Metric instruments - initialized in initialize()
        self._riot_api_calls_counter = None
        self._riot_api_duration_histogram = None
        self._riot_api_rate_limits_counter = None
        self._limiter_wait_histogram = None

        self._match_events_counter = None
        self._accounts_seeded_counter = None

        self._messages_published_counter = None
        self._message_publish_failures_counter = None

        self._polling_iterations_counter = None
        self._polling_errors_counter = None

    @property
    def enabled(self) -> bool:
        return self._initialized and self._meter is not None

    def initialize(self) -> None:
        """Initialize the OpenTelemetry metrics provider."""
        if self._initialized:
            logger.warning("Metrics provider already initialized")
            return

        if not self.config.otel_enabled:
            logger.info("OpenTelemetry metrics disabled")
            self._initialized = True
            return

        try:
            # Create resource with service information
            resource = Resource.create({
                SERVICE_NAME: self.config.otel_service_name,
                "environment": self.config.environment.value,
            })

            # Create appropriate exporter based on config
            if self.config.otel_exporter_type == "console":
                exporter = ConsoleMetricExporter()
                logger.info("Using console metric exporter")
            elif self.config.otel_exporter_type == "otlp":
                exporter = OTLPMetricExporter(
                    endpoint=self.config.otel_otlp_endpoint,
                    insecure=True,
                )
                logger.info(f"Using OTLP metric exporter: {self.config.otel_otlp_endpoint}")
            else:
                logger.info("Metrics export disabled (exporter_type='none')")
                self._initialized = True
                return

            reader = PeriodicExportingMetricReader(
                exporter=exporter,
                export_interval_millis=self.config.otel_export_interval_millis,
                export_timeout_millis=self.config.otel_export_timeout_millis,
            )

            # The provider is owned by this instance rather than installed globally
            self._meter_provider = MeterProvider(
                resource=resource,
                metric_readers=[reader],
            )
            self._meter = self._meter_provider.get_meter(__name__)

            self._create_instruments()

            self._initialized = True
            logger.info("Metrics provider initialized successfully")

        except Exception as e:
            logger.error(f"Failed to initialize metrics provider: {e}")
            self._initialized = False
            raise

    def _create_instruments(self) -> None:
        """Create all metric instruments."""
        if not self._meter:
            return

        # Riot API metrics
        self._riot_api_calls_counter = self._meter.create_counter(
            name=RIOT_API_CALLS_TOTAL,
            description="Total number of Riot API calls",
            unit="1",
        )

        self._riot_api_duration_histogram = self._meter.create_histogram(
            name=RIOT_API_CALL_DURATION,
            description="Duration of Riot API calls in seconds",
            unit="s",
        )

        self._riot_api_rate_limits_counter = self._meter.create_counter(
            name=RIOT_API_RATE_LIMITS,
            description="Total number of rate limit responses from Riot API",
            unit="1",
        )

        self._limiter_wait_histogram = self._meter.create_histogram(
            name=RATE_LIMITER_WAIT,
            description="Time spent waiting for rate limit budget",
            unit="s",
        )

        # Match metrics
        self._match_events_counter = self._meter.create_counter(
            name=MATCH_EVENTS_EMITTED,
            description="Total number of match completed events emitted",
            unit="1",
        )

        self._accounts_seeded_counter = self._meter.create_counter(
            name=ACCOUNTS_SEEDED,
            description="Total number of accounts seeded on their first poll",
            unit="1",
        )

        # Message bus metrics
        self._messages_published_counter = self._meter.create_counter(
            name=MESSAGES_PUBLISHED,
            description="Total number of messages published to NATS",
            unit="1",
        )

        self._message_publish_failures_counter = self._meter.create_counter(
            name=MESSAGE_PUBLISH_FAILURES,
            description="Total number of failed message publishes",
            unit="1",
        )

        # Polling metrics
        self._polling_iterations_counter = self._meter.create_counter(
            name=POLLING_ITERATIONS,
            description="Total number of polling iterations",
            unit="1",
        )

        self._polling_errors_counter = self._meter.create_counter(
            name=POLLING_ERRORS,
            description="Total number of polling errors",
            unit="1",
        )

    def shutdown(self) -> None:
        """Shutdown the metrics provider and flush any pending metrics."""
        if self._meter_provider:
            try:
                self._meter_provider.shutdown()
                logger.info("Metrics provider shut down")
            except Exception as e:
                logger.error(f"Error shutting down metrics provider: {e}")
            self._meter_provider = None
            self._meter = None

    # Riot API metrics

    def record_riot_api_call(
        self,
        endpoint_type: str,
        game_type: str,
        status_code: int,
        duration: float,
        error_type: Optional[str] = None
    ) -> None:
        """Record a Riot API call."""
        if not self.enabled:
            return

        labels = {
            LABEL_ENDPOINT_TYPE: endpoint_type,
            LABEL_GAME_TYPE: game_type,
            LABEL_STATUS_CODE: str(status_code),
        }

        if error_type:
            labels[LABEL_ERROR_TYPE] = error_type

        self._riot_api_calls_counter.add(1, labels)
        self._riot_api_duration_histogram.record(duration, labels)

        # Track rate limits specifically
        if status_code == 429:
            self._riot_api_rate_limits_counter.add(1, {
                LABEL_ENDPOINT_TYPE: endpoint_type,
                LABEL_GAME_TYPE: game_type,
            })

    def record_limiter_wait(self, limiter_name: str, seconds: float) -> None:
        """Record time a caller spent waiting for rate limit budget."""
        if not self.enabled:
            return

        self._limiter_wait_histogram.record(seconds, {LABEL_LIMITER: limiter_name})

    # Match metrics

    def record_match_event(self, game_type: str, queue_type: Optional[str]) -> None:
        """Record an emitted match completed event."""
        if not self.enabled:
            return

        labels = {
            LABEL_GAME_TYPE: game_type,
        }

        if queue_type:
            labels[LABEL_QUEUE_TYPE] = queue_type

        self._match_events_counter.add(1, labels)

    def record_account_seeded(self, game_type: str) -> None:
        """Record an account seeded on its first poll."""
        if not self.enabled:
            return

        self._accounts_seeded_counter.add(1, {LABEL_GAME_TYPE: game_type})

    # Message bus metrics

    def record_message_published(
        self,
        event_type: str,
        subject: str,
        stream: str,
        success: bool = True
    ) -> None:
        """Record a message publish attempt."""
        if not self.enabled:
            return

        labels = {
            LABEL_EVENT_TYPE: event_type,
            LABEL_MESSAGE_SUBJECT: subject,
            LABEL_MESSAGE_STREAM: stream,
        }

        if success:
            self._messages_published_counter.add(1, labels)
        else:
            self._message_publish_failures_counter.add(1, labels)

    # Polling metrics

    def record_polling_iteration(self, game_type: str) -> None:
        """Record a polling cycle."""
        if not self.enabled:
            return

        self._polling_iterations_counter.add(1, {
            LABEL_GAME_TYPE: game_type,
        })

    def record_polling_error(self, game_type: str, error_type: str) -> None:
        """Record a failed account poll or cycle."""
        if not self.enabled:
            return

        self._polling_errors_counter.add(1, {
            LABEL_GAME_TYPE: game_type,
            LABEL_ERROR_TYPE: error_type,
        })
