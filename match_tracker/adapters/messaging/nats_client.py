"""Message bus client implementation using NATS with JetStream."""

import logging
from typing import Dict, Optional, Protocol

import nats
from nats.aio.client import Client as NATSClient
from nats.js import JetStreamContext
import nats.js.errors


logger = logging.getLogger(__name__)


class MessageBusClient(Protocol):
    """Protocol for message bus client implementations."""

    async def connect(self) -> None:
        """Connect to the message bus."""
        ...

    async def disconnect(self) -> None:
        """Disconnect from the message bus."""
        ...

    async def create_streams(self) -> None:
        """Create required JetStream streams."""
        ...

    async def is_connected(self) -> bool:
        """Check if client is connected to the message bus."""
        ...

    async def publish(self, subject: str, data: bytes, headers: Optional[Dict[str, str]] = None) -> None:
        """Publish a message to the specified subject."""
        ...


class NATSMessageBusClient:
    """NATS message bus client with JetStream support."""

    def __init__(
        self,
        servers: str,
        timeout: int = 10,
        max_reconnect_attempts: int = 10,
        reconnect_delay: int = 2,
        match_events_stream: str = "match_events",
        match_events_subject: str = "riot.match",
        max_age_hours: int = 24,
        max_msgs: int = 1000000,
        storage: str = "file",
    ):
        """Initialize NATS client.

        Args:
            servers: NATS server URLs (e.g., "nats://localhost:4222")
            timeout: Connection timeout in seconds
            max_reconnect_attempts: Maximum reconnection attempts
            reconnect_delay: Delay between reconnection attempts in seconds
            match_events_stream: Name of the match events JetStream stream
            match_events_subject: Subject prefix for match events
            max_age_hours: Retention of stream messages
            max_msgs: Maximum number of retained messages
            storage: JetStream storage backend ("file" or "memory")
        """
        self.servers = servers
        self.timeout = timeout
        self.max_reconnect_attempts = max_reconnect_attempts
        self.reconnect_delay = reconnect_delay
        self.match_events_stream = match_events_stream
        self.match_events_subject = match_events_subject
        self.max_age_hours = max_age_hours
        self.max_msgs = max_msgs
        self.storage = storage

        self._client: Optional[NATSClient] = None
        self._js: Optional[JetStreamContext] = None
        self._connected = False

    async def connect(self) -> None:
        """Connect to NATS server with JetStream."""
        if self._connected:
            logger.warning("Already connected to NATS")
            return

        try:
            logger.info(f"Connecting to NATS at {self.servers}")

            self._client = await nats.connect(
                servers=self.servers,
                connect_timeout=self.timeout,
                max_reconnect_attempts=self.max_reconnect_attempts,
                reconnect_time_wait=self.reconnect_delay,
                error_cb=self._error_callback,
                disconnected_cb=self._disconnected_callback,
                reconnected_cb=self._reconnected_callback,
            )

            # Enable JetStream
            self._js = self._client.jetstream()
            self._connected = True

            logger.info("Successfully connected to NATS with JetStream")

        except Exception as e:
            logger.error(f"Failed to connect to NATS: {e}")
            self._connected = False
            raise

    async def disconnect(self) -> None:
        """Disconnect from NATS server."""
        if not self._client:
            return

        try:
            logger.info("Disconnecting from NATS")
            await self._client.close()
            logger.info("Disconnected from NATS")
        except Exception as e:
            logger.error(f"Error during NATS disconnect: {e}")
        finally:
            self._connected = False
            self._client = None
            self._js = None

    async def create_streams(self) -> None:
        """Create the match events stream if it doesn't exist."""
        if not self._js:
            raise RuntimeError("Not connected to NATS JetStream")

        stream_name = self.match_events_stream
        try:
            await self._js.stream_info(stream_name)
            logger.info(f"JetStream stream '{stream_name}' already exists")
        except nats.js.errors.NotFoundError:
            logger.info(f"Creating JetStream stream '{stream_name}'")
            await self._js.add_stream(
                name=stream_name,
                # <prefix>.<lol|tft>.completed
                subjects=[f"{self.match_events_subject}.*.completed"],
                description="Completed match events for tracked accounts",
                retention="limits",
                max_age=self.max_age_hours * 60 * 60,
                max_msgs=self.max_msgs,
                storage=self.storage,
            )
            logger.info(f"Successfully created JetStream stream '{stream_name}'")
        except Exception as e:
            logger.error(f"Failed to create/verify stream '{stream_name}': {e}")
            raise

    async def is_connected(self) -> bool:
        """Check if client is connected to NATS."""
        return (
            self._connected and self._client is not None and self._client.is_connected
        )

    async def publish(self, subject: str, data: bytes, headers: Optional[Dict[str, str]] = None) -> None:
        """Publish a message to the specified subject using JetStream.

        A ``Nats-Msg-Id`` header lets the stream drop a message it already
        stored within its duplicate window.
        """
        if not self._js:
            raise RuntimeError("Not connected to NATS JetStream")

        try:
            ack = await self._js.publish(subject, data, headers=headers)
            logger.info(
                f"NATS message published - Subject: {subject}, "
                f"Size: {len(data)} bytes, Stream: {ack.stream}, Seq: {ack.seq}"
            )
        except Exception as e:
            logger.error(f"Failed to publish message to {subject}: {e}")
            raise

    async def _error_callback(self, error):
        """Handle NATS connection errors."""
        logger.error(f"NATS error: {error}")

    async def _disconnected_callback(self):
        """Handle NATS disconnection."""
        logger.warning("Disconnected from NATS")
        self._connected = False

    async def _reconnected_callback(self):
        """Handle NATS reconnection."""
        logger.info("Reconnected to NATS")
        self._connected = True

    async def __aenter__(self):
        """Async context manager entry."""
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.disconnect()
