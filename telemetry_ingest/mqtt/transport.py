"""Abstract interface for the publish/subscribe transport.

The engine never talks to paho directly; anything that can subscribe,
publish and deliver inbound messages (MQTT, an in-memory fake in tests)
implements this interface.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Callable, Union

Payload = Union[str, bytes]

# (topic, raw payload, received_at UTC naive)
MessageHandler = Callable[[str, bytes, datetime], None]


class MessageTransport(ABC):
    """Long-lived broker connection.

    Implementations:
    - MQTTTransport: paho-mqtt, reconnects on its own
    - FakeTransport (tests): records publishes in memory
    """

    @abstractmethod
    def connect(self, timeout: float = 5.0) -> bool:
        """Open the session; False if not up within ``timeout`` (retries continue)."""

    @abstractmethod
    def disconnect(self) -> None:
        """Close the session; no publish may start afterwards."""

    @abstractmethod
    def subscribe(self, topic_pattern: str, qos: int = 0) -> None:
        """Register a subscription; kept across reconnects."""

    @abstractmethod
    def publish(self, topic: str, payload: Payload, qos: int = 0, retain: bool = False) -> None:
        """Publish a message.

        Raises:
            TransportUnavailable: not connected, or the client rejected the publish.
        """

    @abstractmethod
    def set_message_handler(self, handler: MessageHandler) -> None:
        """Configure the inbound message callback."""

    @property
    @abstractmethod
    def is_connected(self) -> bool:
        """True while the broker session is up."""
