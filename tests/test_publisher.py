"""Tests del command publisher."""

import pytest

from telemetry_ingest.errors import InvalidParameter, TransportUnavailable
from telemetry_ingest.mqtt.publisher import validate_angle


class TestAngleValidation:

    @pytest.mark.parametrize("command, angle", [("0", 0), ("90", 90), (" 180 ", 180), (45, 45)])
    def test_valid_angles(self, command, angle):
        assert validate_angle(command) == angle

    @pytest.mark.parametrize("command", ["200", "-1", "181", "90.5", "open", "", True])
    def test_invalid_angles(self, command):
        with pytest.raises(InvalidParameter):
            validate_angle(command)


class TestCommandPublisher:

    def test_actuator_command_qos1_retained(self, publisher, transport):
        topic = publisher.send("esp32-farm-001", "pump", "1")

        assert topic == "farm/esp32-farm-001/actuator/pump/cmd"
        assert len(transport.published) == 1
        sent = transport.published[0]
        assert (sent.topic, sent.payload, sent.qos, sent.retain) == (topic, "1", 1, True)

    def test_non_angular_command_published_as_is(self, publisher, transport):
        publisher.send("esp32-farm-001", "fan1", "ON")
        assert transport.published[0].payload == "ON"

    def test_servo_angle_out_of_range_not_published(self, publisher, transport):
        with pytest.raises(InvalidParameter):
            publisher.send("esp32-farm-001", "servo", "200")
        assert transport.published == []

    def test_servo_angle_normalized(self, publisher, transport):
        publisher.send("esp32-farm-001", "servo", " 90 ")
        assert transport.published[0].payload == "90"

    def test_disconnected_fails_fast(self, publisher, transport):
        transport.connected = False
        with pytest.raises(TransportUnavailable) as exc:
            publisher.send("esp32-farm-001", "pump", "1")
        assert exc.value.topic == "farm/esp32-farm-001/actuator/pump/cmd"

    def test_heartbeat_best_effort(self, publisher, transport):
        publisher.publish_heartbeat("esp32-farm-001", 1772366400)

        sent = transport.published[0]
        assert sent.topic == "farm/esp32-farm-001/heartbeat/cmd"
        assert sent.payload == "1772366400"
        assert sent.qos == 0
        assert sent.retain is False

    def test_device_status_json(self, publisher, transport):
        publisher.publish_device_status("esp32-farm-001", {"health": "healthy"})

        sent = transport.published[0]
        assert sent.topic == "farm/esp32-farm-001/status/cmd"
        assert sent.payload == b'{"health":"healthy"}'
