"""Fixtures compartidos: store SQLite en memoria, transporte falso, reloj fijo."""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, List, Optional

import pytest
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from common.db import build_session_factory, init_schema
from common.models import (
    ComponentDeployment,
    ComponentType,
    Device,
)
from telemetry_ingest.automation.engine import RuleEngine
from telemetry_ingest.errors import TransportUnavailable
from telemetry_ingest.ingest.processors import MessageProcessor
from telemetry_ingest.mqtt.publisher import CommandPublisher
from telemetry_ingest.mqtt.topics import TopicRouter
from telemetry_ingest.mqtt.transport import MessageTransport
from telemetry_ingest.mqtt.worker import InboundMessage


T0 = datetime(2026, 3, 1, 12, 0, 0)
DEVICE = "esp32-farm-001"


# =============================================================================
# FAKES
# =============================================================================

@dataclass
class Published:
    topic: str
    payload: object
    qos: int
    retain: bool


class FakeTransport(MessageTransport):
    """In-memory transport: records publishes, delivers inbound on demand."""

    def __init__(self, connected: bool = True):
        self.connected = connected
        self.published: List[Published] = []
        self.subscriptions: dict = {}
        self.handler: Optional[Callable] = None
        self.disconnect_calls = 0

    def connect(self, timeout: float = 5.0) -> bool:
        self.connected = True
        return True

    def disconnect(self) -> None:
        self.disconnect_calls += 1
        self.connected = False

    def subscribe(self, topic_pattern: str, qos: int = 0) -> None:
        self.subscriptions[topic_pattern] = qos

    def publish(self, topic, payload, qos=0, retain=False) -> None:
        if not self.connected:
            raise TransportUnavailable(topic)
        self.published.append(Published(topic, payload, qos, retain))

    def set_message_handler(self, handler) -> None:
        self.handler = handler

    def deliver(self, topic: str, payload: bytes, received_at: datetime = T0) -> None:
        self.handler(topic, payload, received_at)

    @property
    def is_connected(self) -> bool:
        return self.connected


class FixedClock:
    def __init__(self, now: datetime = T0):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


def _message(topic: str, payload, received_at: datetime = T0) -> InboundMessage:
    if isinstance(payload, str):
        payload = payload.encode("utf-8")
    return InboundMessage(topic=topic, payload=payload, received_at=received_at)


# =============================================================================
# STORE
# =============================================================================

@pytest.fixture
def engine():
    eng = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )
    init_schema(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@dataclass
class Fleet:
    device_id: int
    temperature: int
    water_level: int
    fan: int
    servo: int
    light: int
    inactive_sensor: int


@pytest.fixture
def fleet(session_factory) -> Fleet:
    """One device with sensors and actuators deployed (ids returned)."""
    with session_factory() as db:
        device = Device(identifier=DEVICE, device_type="esp32", active=True)
        db.add(device)

        types = {
            "temperature": ComponentType(
                identifier="dht11_sensor_temperature", name="Temperature", category="sensor", unit="°C"
            ),
            "water_level": ComponentType(
                identifier="water_level_sensor", name="Water level", category="sensor", unit="%"
            ),
            "ldr": ComponentType(identifier="ldr_sensor", name="Light", category="sensor", unit="lx"),
            "fan": ComponentType(identifier="ventilation_fan_1", name="Fan 1", category="actuator"),
            "servo": ComponentType(identifier="gate_servo", name="Gate", category="actuator", unit="deg"),
            "light": ComponentType(identifier="lighting_system", name="Lights", category="actuator"),
        }
        db.add_all(types.values())
        db.flush()

        def deploy(key: str, active: bool = True) -> ComponentDeployment:
            d = ComponentDeployment(device_id=device.id, component_type_id=types[key].id, active=active)
            db.add(d)
            return d

        deployments = {k: deploy(k) for k in ("temperature", "water_level", "fan", "servo", "light")}
        inactive = deploy("ldr", active=False)
        db.commit()

        return Fleet(
            device_id=device.id,
            temperature=deployments["temperature"].id,
            water_level=deployments["water_level"].id,
            fan=deployments["fan"].id,
            servo=deployments["servo"].id,
            light=deployments["light"].id,
            inactive_sensor=inactive.id,
        )


# =============================================================================
# PIPELINE
# =============================================================================

@pytest.fixture
def clock() -> FixedClock:
    return FixedClock()


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def publisher(transport) -> CommandPublisher:
    return CommandPublisher(transport, namespace="farm")


@pytest.fixture
def make_message():
    return _message


@pytest.fixture
def device_identifier() -> str:
    return DEVICE


@pytest.fixture
def rule_engine(publisher, clock) -> RuleEngine:
    return RuleEngine(publisher, clock=clock)


@pytest.fixture
def processor(session_factory, rule_engine) -> MessageProcessor:
    return MessageProcessor(session_factory, TopicRouter("farm"), rule_engine)
