"""NATS event publishing infrastructure layer."""

import json
import logging
from typing import Any, Dict, List, Optional

from ...config import Config
from ...core.events import MatchCompletedEvent
from ..observability import MetricsProvider
from .nats_client import MessageBusClient, NATSMessageBusClient

logger = logging.getLogger(__name__)

# JetStream drops a message whose id it already stored within the duplicate window
MSG_ID_HEADER = "Nats-Msg-Id"


class EventPublisher:
    """Publishes match completed events as JSON on NATS JetStream.

    Events go to ``<MATCH_EVENTS_SUBJECT>.<lol|tft>.completed``. ``emit``
    raises when the message could not be published, so the polling engine
    keeps the account's last-seen state and retries on the next cycle.
    """

    def __init__(
        self,
        config: Config,
        bus: Optional[MessageBusClient] = None,
        metrics: Optional[MetricsProvider] = None,
    ):
        """Initialize the event publisher.

        Args:
            config: Application configuration
            bus: Message bus client; a NATS client is built from config when None
            metrics: Optional metrics provider
        """
        self.config = config
        self.metrics = metrics
        self._bus = bus or NATSMessageBusClient(
            servers=config.message_bus_url,
            timeout=config.message_bus_timeout_seconds,
            max_reconnect_attempts=config.message_bus_max_reconnect_attempts,
            reconnect_delay=config.message_bus_reconnect_delay_seconds,
            match_events_stream=config.match_events_stream,
            match_events_subject=config.match_events_subject,
            max_age_hours=config.jetstream_max_age_hours,
            max_msgs=config.jetstream_max_msgs,
            storage=config.jetstream_storage,
        )

    async def initialize(self) -> None:
        """Connect to NATS and make sure the match events stream exists."""
        try:
            await self._bus.connect()
            await self._bus.create_streams()
            logger.info("Event publisher initialized successfully")
        except Exception as e:
            logger.error(f"Failed to initialize event publisher: {e}")
            raise

    async def close(self) -> None:
        """Close connection to NATS."""
        logger.info("Closing event publisher")
        await self._bus.disconnect()

    async def is_healthy(self) -> bool:
        """Check if the event publisher is healthy and can publish events."""
        return await self._bus.is_connected()

    def subject_for(self, event: MatchCompletedEvent) -> str:
        """Get the NATS subject an event is published on."""
        return f"{self.config.match_events_subject}.{event.account.game_type.subject_token}.completed"

    @staticmethod
    def serialize(event: MatchCompletedEvent) -> bytes:
        """Serialize an event to its JSON wire form."""
        return json.dumps(event.to_dict(), separators=(",", ":")).encode("utf-8")

    async def emit(self, event: MatchCompletedEvent) -> None:
        """Publish a match completed event.

        Raises:
            Exception: Whatever the message bus raised; nothing is swallowed
        """
        subject = self.subject_for(event)
        data = self.serialize(event)
        headers = {MSG_ID_HEADER: event.dedup_key}

        logger.info(
            f"Publishing match completed event - Player: {event.account.display_name}, "
            f"Match: {event.match.match_id}, Queue: {event.match.queue_name}"
        )

        try:
            await self._publish_message(subject, data, headers)
        except Exception:
            if self.metrics:
                self.metrics.record_message_published(
                    event.get_event_type(), subject, self.config.match_events_stream, success=False
                )
            raise

        if self.metrics:
            self.metrics.record_message_published(
                event.get_event_type(), subject, self.config.match_events_stream
            )

    async def _publish_message(self, subject: str, data: bytes, headers: Dict[str, str]) -> None:
        await self._bus.publish(subject, data, headers=headers)


class MockEventPublisher(EventPublisher):
    """Mock event publisher for testing that reuses the real serialization."""

    def __init__(self, config: Config, metrics: Optional[MetricsProvider] = None):
        super().__init__(config, metrics=metrics)
        self.published_messages: List[Dict[str, Any]] = []
        self.fail_next: int = 0
        self._healthy = False

    async def initialize(self) -> None:
        """Mock initialize operation - skip NATS connection."""
        self._healthy = True
        logger.info("Mock: Event publisher initialized")

    async def close(self) -> None:
        """Mock close operation - no NATS to close."""
        self._healthy = False
        logger.info("Mock: Event publisher closed")

    async def is_healthy(self) -> bool:
        return self._healthy

    async def _publish_message(self, subject: str, data: bytes, headers: Dict[str, str]) -> None:
        """Capture messages instead of publishing to NATS."""
        if self.fail_next > 0:
            self.fail_next -= 1
            raise ConnectionError(f"Mock: simulated publish failure on {subject}")

        self.published_messages.append({
            "subject": subject,
            "data": data,
            "headers": headers,
            "payload": json.loads(data),
        })
        logger.debug(f"Mock: Captured message to {subject}")

    def match_ids(self) -> List[str]:
        """Match ids of captured events in publish order."""
        return [m["payload"]["match"]["match_id"] for m in self.published_messages]
