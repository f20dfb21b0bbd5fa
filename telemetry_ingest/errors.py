"""Errores del motor de ingesta y automatización."""

from __future__ import annotations


class IngestError(Exception):
    """Base error for the ingestion engine."""


class InvalidParameter(IngestError):
    """Contract violation: the request cannot be honoured as given."""


class NotFound(IngestError):
    """Referenced entity does not exist."""


class TransportUnavailable(IngestError):
    """Publish attempted while the broker connection is down, or rejected by the client."""

    def __init__(self, topic: str, reason: str = "not connected"):
        self.topic = topic
        self.reason = reason
        super().__init__(f"Cannot publish to {topic}: {reason}")
