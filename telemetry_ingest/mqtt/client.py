"""Cliente MQTT (paho-mqtt) que implementa MessageTransport."""

from __future__ import annotations

import logging
import threading
import time
from typing import Optional

import paho.mqtt.client as mqtt

from common.models import utcnow

from ..errors import TransportUnavailable
from .transport import MessageHandler, MessageTransport, Payload

logger = logging.getLogger(__name__)


class MQTTTransport(MessageTransport):
    """Conexión MQTT de larga vida.

    Responsabilidades:
    - Conexión/desconexión al broker, reconexión automática (loop de paho)
    - Re-suscripción en cada (re)conexión
    - Delegación de mensajes al handler
    - Publicación fail-fast cuando no hay conexión
    """

    def __init__(
        self,
        broker_host: str = "localhost",
        broker_port: int = 1883,
        username: Optional[str] = None,
        password: Optional[str] = None,
        client_id: str = "telemetry-ingest",
        keepalive: int = 60,
    ):
        self.broker_host = broker_host
        self.broker_port = broker_port
        self.username = username
        self.password = password
        self.client_id = f"{client_id}-{int(time.time())}"
        self.keepalive = keepalive

        self._client: Optional[mqtt.Client] = None
        self._connected = threading.Event()
        self._message_handler: Optional[MessageHandler] = None
        self._subscriptions: dict[str, int] = {}
        self._reconnect_count = 0
        self._ever_connected = False

    def set_message_handler(self, handler: MessageHandler) -> None:
        self._message_handler = handler

    def subscribe(self, topic_pattern: str, qos: int = 0) -> None:
        self._subscriptions[topic_pattern] = qos
        if self._client is not None and self.is_connected:
            self._client.subscribe(topic_pattern, qos=qos)
            logger.info("[MQTT] Subscribed to %s (qos=%d)", topic_pattern, qos)

    def connect(self, timeout: float = 5.0) -> bool:
        """Starts the network loop and waits up to ``timeout`` for the session.

        Returns False on timeout; the loop keeps retrying in the background.
        """
        self._client = mqtt.Client(
            callback_api_version=mqtt.CallbackAPIVersion.VERSION2,
            client_id=self.client_id,
            protocol=mqtt.MQTTv311,
            clean_session=True,
        )

        self._client.on_connect = self._on_connect
        self._client.on_disconnect = self._on_disconnect
        self._client.on_connect_fail = self._on_connect_fail
        self._client.on_message = self._on_message
        self._client.reconnect_delay_set(min_delay=2, max_delay=30)

        if self.username and self.password:
            self._client.username_pw_set(self.username, self.password)

        logger.info("[MQTT] Connecting to %s:%d", self.broker_host, self.broker_port)
        self._client.connect_async(self.broker_host, self.broker_port, keepalive=self.keepalive)
        self._client.loop_start()

        if self._connected.wait(timeout):
            return True

        logger.error("[MQTT] Connection timeout after %.1fs, retrying in background", timeout)
        return False

    def disconnect(self) -> None:
        if self._client:
            try:
                self._client.disconnect()
                self._client.loop_stop()
            except Exception as e:
                logger.warning("[MQTT] Disconnect error: %s", e)
        self._connected.clear()

    def publish(self, topic: str, payload: Payload, qos: int = 0, retain: bool = False) -> None:
        if self._client is None or not self.is_connected:
            logger.error("[MQTT] Cannot publish to %s: client not connected", topic)
            raise TransportUnavailable(topic)

        info = self._client.publish(topic, payload, qos=qos, retain=retain)
        if info.rc != mqtt.MQTT_ERR_SUCCESS:
            reason = mqtt.error_string(info.rc)
            logger.error("[MQTT] Publish to %s rejected: %s", topic, reason)
            raise TransportUnavailable(topic, reason)

        logger.debug("[MQTT] Published to %s (qos=%d retain=%s)", topic, qos, retain)

    def _on_connect(self, client, userdata, flags, reason_code, properties=None):
        if reason_code.is_failure:
            self._connected.clear()
            logger.error("[MQTT] Connection refused: %s", reason_code)
            return

        if self._ever_connected:
            self._reconnect_count += 1
            logger.info("[MQTT] Reconnected to broker (count=%d)", self._reconnect_count)
        else:
            logger.info("[MQTT] Connected to broker %s:%d", self.broker_host, self.broker_port)
        self._ever_connected = True
        self._connected.set()

        for pattern, qos in self._subscriptions.items():
            client.subscribe(pattern, qos=qos)
            logger.info("[MQTT] Subscribed to %s (qos=%d)", pattern, qos)

    def _on_disconnect(self, client, userdata, flags, reason_code, properties=None):
        self._connected.clear()
        logger.warning("[MQTT] Disconnected (%s)", reason_code)

    def _on_connect_fail(self, client, userdata):
        logger.error("[MQTT] Connection attempt to %s:%d failed", self.broker_host, self.broker_port)

    def _on_message(self, client, userdata, msg):
        if self._message_handler is None:
            return
        try:
            self._message_handler(msg.topic, msg.payload, utcnow())
        except Exception:
            # Never let the paho network thread die on a handler bug
            logger.exception("[MQTT] Message handler failed (topic=%s)", msg.topic)

    @property
    def is_connected(self) -> bool:
        return self._connected.is_set()

    @property
    def stats(self) -> dict:
        return {
            "connected": self.is_connected,
            "broker": f"{self.broker_host}:{self.broker_port}",
            "client_id": self.client_id,
            "reconnect_count": self._reconnect_count,
            "subscriptions": sorted(self._subscriptions),
        }
