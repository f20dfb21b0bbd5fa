"""Métricas Prometheus del pipeline de ingesta."""

from __future__ import annotations

from prometheus_client import Counter, Gauge

MESSAGES_RECEIVED = Counter(
    "telemetry_messages_received_total",
    "Inbound MQTT messages accepted by the receiver",
)
MESSAGES_PROCESSED = Counter(
    "telemetry_messages_processed_total",
    "Inbound messages handled by the ingestion worker",
    ["kind", "outcome"],  # processed, malformed, unresolved, failed
)
QUEUE_DROPPED = Counter(
    "telemetry_queue_dropped_total",
    "Messages discarded by the ingestion queue overflow policy",
)
QUEUE_DEPTH = Gauge(
    "telemetry_queue_depth",
    "Messages waiting in the ingestion queue",
)
RULES_TRIGGERED = Counter(
    "automation_rules_triggered_total",
    "Automation rules whose condition matched",
    ["action", "outcome"],  # ok, failed
)
COMMANDS_PUBLISHED = Counter(
    "actuator_commands_published_total",
    "Outbound actuator commands",
    ["outcome"],  # published, rejected, unavailable
)
LIVENESS_OFFLINE = Counter(
    "liveness_offline_transitions_total",
    "Deployments demoted from online to offline by the liveness monitor",
)
