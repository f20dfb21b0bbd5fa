"""MQTT para ingesta y comandos.

Estructura modular:
- transport.py: interfaz del transporte pub/sub
- client.py: implementación paho-mqtt
- registry.py / topics.py: token de topic ↔ identificador de catálogo
- backpressure.py, worker.py: cola FIFO y worker único
- validators.py: decodificación y validación de payloads
- publisher.py: comandos salientes
"""

from .client import MQTTTransport
from .publisher import CommandPublisher
from .registry import ComponentRegistry, get_default_registry
from .topics import MessageKind, TopicRoute, TopicRouter, build_command_topic
from .transport import MessageTransport
from .worker import InboundMessage, IngestionWorker

__all__ = [
    "MQTTTransport",
    "CommandPublisher",
    "ComponentRegistry",
    "get_default_registry",
    "MessageKind",
    "TopicRoute",
    "TopicRouter",
    "build_command_topic",
    "MessageTransport",
    "InboundMessage",
    "IngestionWorker",
]
