"""Modelos de persistencia (SQLAlchemy).

El store es el dueño de todas las entidades. Timestamps se guardan como
UTC naive para que SQL Server, PostgreSQL y SQLite se comporten igual.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import declarative_base, relationship


Base = declarative_base()


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class ComponentCategory(str, Enum):
    SENSOR = "sensor"
    ACTUATOR = "actuator"


class ConnectionStatus(str, Enum):
    UNKNOWN = "unknown"
    ONLINE = "online"
    OFFLINE = "offline"
    ERROR = "error"


class ComparisonOperator(str, Enum):
    GT = "gt"
    LT = "lt"
    GTE = "gte"
    LTE = "lte"
    EQ = "eq"
    NEQ = "neq"


class AutomationActionType(str, Enum):
    TRIGGER_ACTUATOR = "trigger_actuator"
    CREATE_ALERT = "create_alert"


class Device(Base):
    __tablename__ = "devices"

    id = Column(Integer, primary_key=True)
    identifier = Column(String(100), unique=True, nullable=False, index=True)
    device_type = Column(String(50), nullable=False, default="esp32")
    ip_address = Column(String(45), nullable=True)
    device_metadata = Column("metadata", JSON, nullable=True)
    active = Column(Boolean, nullable=False, default=True)
    last_seen = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    deployments = relationship("ComponentDeployment", back_populates="device")


class ComponentType(Base):
    __tablename__ = "component_types"

    id = Column(Integer, primary_key=True)
    identifier = Column(String(100), unique=True, nullable=False, index=True)
    name = Column(String(100), nullable=False)
    category = Column(String(20), nullable=False)
    unit = Column(String(20), nullable=True)


class ComponentDeployment(Base):
    __tablename__ = "component_deployments"

    id = Column(Integer, primary_key=True)
    device_id = Column(Integer, ForeignKey("devices.id"), nullable=False)
    component_type_id = Column(Integer, ForeignKey("component_types.id"), nullable=False)
    active = Column(Boolean, nullable=False, default=True)
    connection_status = Column(String(20), nullable=False, default=ConnectionStatus.UNKNOWN.value)
    last_value = Column(Float, nullable=True)
    last_value_ts = Column(DateTime, nullable=True)
    last_interaction = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    device = relationship("Device", back_populates="deployments")
    component_type = relationship("ComponentType")

    __table_args__ = (
        Index("ix_deployments_status_interaction", "connection_status", "last_interaction"),
    )

    @property
    def category(self) -> str:
        return self.component_type.category


class SensorReading(Base):
    __tablename__ = "sensor_readings"

    id = Column(Integer, primary_key=True)
    deployment_id = Column(Integer, ForeignKey("component_deployments.id"), nullable=False)
    value = Column(Float, nullable=False)
    unit = Column(String(20), nullable=True)
    timestamp = Column(DateTime, nullable=False, default=utcnow)

    __table_args__ = (
        Index("ix_sensor_readings_deployment_ts", "deployment_id", "timestamp"),
    )


class ActuatorCommand(Base):
    __tablename__ = "actuator_commands"

    id = Column(Integer, primary_key=True)
    deployment_id = Column(Integer, ForeignKey("component_deployments.id"), nullable=False)
    command = Column(String(100), nullable=False)
    parameters = Column(JSON, nullable=True)
    # NULL = automation or device echo
    issued_by = Column(Integer, nullable=True)
    timestamp = Column(DateTime, nullable=False, default=utcnow)

    __table_args__ = (
        Index("ix_actuator_commands_deployment_ts", "deployment_id", "timestamp"),
    )


class AutomationRule(Base):
    __tablename__ = "automation_rules"

    id = Column(Integer, primary_key=True)
    name = Column(String(100), nullable=False)
    description = Column(Text, nullable=True)
    sensor_deployment_id = Column(Integer, ForeignKey("component_deployments.id"), nullable=False)
    operator = Column(String(10), nullable=False)
    threshold_value = Column(Float, nullable=False)
    action_type = Column(String(30), nullable=False)
    alert_title = Column(String(200), nullable=True)
    alert_message = Column(Text, nullable=True)
    alert_severity = Column(String(20), nullable=True)
    target_deployment_id = Column(Integer, ForeignKey("component_deployments.id"), nullable=True)
    actuator_command = Column(String(100), nullable=True)
    actuator_parameters = Column(JSON, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    cooldown_minutes = Column(Integer, nullable=False, default=5)
    last_triggered_at = Column(DateTime, nullable=True)
    created_by = Column(Integer, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    sensor_deployment = relationship("ComponentDeployment", foreign_keys=[sensor_deployment_id])
    target_deployment = relationship("ComponentDeployment", foreign_keys=[target_deployment_id])

    __table_args__ = (
        Index("ix_automation_rules_sensor_active", "sensor_deployment_id", "is_active"),
    )


class Alert(Base):
    __tablename__ = "alerts"

    id = Column(Integer, primary_key=True)
    title = Column(String(200), nullable=False)
    message = Column(Text, nullable=False)
    severity = Column(String(20), nullable=False, default="warning")
    created_by = Column(Integer, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
