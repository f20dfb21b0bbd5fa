"""Tests del topic router y del registro token ↔ identificador."""

import pytest

from common.models import ComponentCategory
from telemetry_ingest.mqtt.registry import ComponentMapping, ComponentRegistry
from telemetry_ingest.mqtt.topics import (
    MessageKind,
    TopicRouter,
    build_command_topic,
    build_heartbeat_topic,
)


@pytest.fixture
def router() -> TopicRouter:
    return TopicRouter("farm")


# =============================================================================
# REGISTRY
# =============================================================================

class TestComponentRegistry:

    def test_maps_sensor_tokens_both_ways(self):
        registry = ComponentRegistry()
        assert registry.to_identifier("sensor", "temperature") == "dht11_sensor_temperature"
        assert registry.to_token("sensor", "dht11_sensor_temperature") == "temperature"
        assert registry.to_identifier("sensor", "water_temp") == "ds18b20_sensor"

    def test_maps_actuator_tokens_both_ways(self):
        registry = ComponentRegistry()
        assert registry.to_identifier(ComponentCategory.ACTUATOR, "fan2") == "ventilation_fan_2"
        assert registry.to_token(ComponentCategory.ACTUATOR, "gate_servo") == "servo"
        assert registry.to_token(ComponentCategory.ACTUATOR, "lighting_system") == "light"

    def test_unknown_values_pass_through(self):
        registry = ComponentRegistry()
        assert registry.to_identifier("sensor", "co2") == "co2"
        assert registry.to_token("actuator", "mister_valve") == "mister_valve"

    def test_category_scopes_lookup(self):
        registry = ComponentRegistry()
        # "light" is an actuator token; as a sensor token it is unknown
        assert registry.to_identifier("sensor", "light") == "light"

    def test_servo_is_angular(self):
        registry = ComponentRegistry()
        assert registry.is_angular("servo") is True
        assert registry.is_angular("fan1") is False
        assert registry.is_angular("unknown") is False

    def test_duplicate_token_rejected(self):
        with pytest.raises(ValueError):
            ComponentRegistry([
                ComponentMapping(ComponentCategory.SENSOR, "t", "a"),
                ComponentMapping(ComponentCategory.SENSOR, "t", "b"),
            ])


# =============================================================================
# ROUTER
# =============================================================================

class TestTopicRouter:

    def test_sensor_topic(self, router):
        result = router.parse("farm/esp32-farm-001/sensor/temperature")

        assert result.valid is True
        route = result.route
        assert route.device_identifier == "esp32-farm-001"
        assert route.kind is MessageKind.SENSOR
        assert route.token == "temperature"
        assert route.catalog_identifier == "dht11_sensor_temperature"

    def test_actuator_topic(self, router):
        route = router.parse("farm/esp32-farm-001/actuator/servo").route
        assert route.kind is MessageKind.ACTUATOR
        assert route.catalog_identifier == "gate_servo"

    @pytest.mark.parametrize("kind", ["status", "heartbeat"])
    def test_device_level_topics_have_no_token(self, router, kind):
        result = router.parse(f"farm/esp32-farm-001/{kind}")
        assert result.valid is True
        assert result.route.kind == MessageKind(kind)
        assert result.route.token is None
        assert result.route.catalog_identifier is None

    def test_unknown_token_passes_through(self, router):
        route = router.parse("farm/dev-9/sensor/co2").route
        assert route.catalog_identifier == "co2"

    @pytest.mark.parametrize(
        "topic",
        [
            "foo/bar",
            "iot/esp32-farm-001/sensor/temperature",
            "farm/esp32-farm-001/sensor",
            "farm/esp32-farm-001/status/extra",
            "farm/esp32-farm-001/actuator/servo/cmd",
            "farm/esp32-farm-001/telemetry/x",
            "farm//sensor/temperature",
            "farm/esp32-farm-001/sensor/",
        ],
    )
    def test_rejected_topics(self, router, topic):
        result = router.parse(topic)
        assert result.valid is False
        assert result.route is None
        assert result.error

    def test_subscription_patterns(self, router):
        patterns = dict(router.subscription_patterns())
        assert set(patterns) == {
            "farm/+/sensor/+",
            "farm/+/actuator/+",
            "farm/+/status",
            "farm/+/heartbeat",
        }
        assert patterns["farm/+/actuator/+"] == 1


class TestOutboundTopics:

    def test_command_topic(self):
        assert build_command_topic("farm", "esp32-farm-001", "fan1") == "farm/esp32-farm-001/actuator/fan1/cmd"

    def test_heartbeat_topic(self):
        assert build_heartbeat_topic("farm", "esp32-farm-001") == "farm/esp32-farm-001/heartbeat/cmd"
