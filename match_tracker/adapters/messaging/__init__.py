"""Messaging infrastructure for the match-tracker service."""

from .nats_client import NATSMessageBusClient, MessageBusClient
from .events import EventPublisher, MockEventPublisher

__all__ = ["NATSMessageBusClient", "MessageBusClient", "EventPublisher", "MockEventPublisher"]
