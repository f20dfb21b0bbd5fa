"""Tests de decodificación y validación de payloads."""

from datetime import datetime

import pytest

from telemetry_ingest.mqtt.validators import (
    RawEcho,
    StructuredEcho,
    canonicalize_echo,
    decode_echo,
    parse_numeric_state,
    validate_actuator_payload,
    validate_heartbeat_payload,
    validate_sensor_payload,
    validate_status_payload,
)


RECEIVED = datetime(2026, 3, 1, 12, 0, 0)


# =============================================================================
# SENSOR
# =============================================================================

class TestSensorPayload:

    def test_valid_payload(self):
        result = validate_sensor_payload(b'{"value": 23.5, "unit": "C"}')
        assert result.valid is True
        assert result.payload.value == 23.5
        assert result.payload.unit == "C"
        assert result.payload.reading_time(RECEIVED) == RECEIVED

    def test_integer_value_is_accepted(self):
        result = validate_sensor_payload(b'{"value": 40, "unit": "%"}')
        assert result.valid is True
        assert result.payload.value == 40.0

    def test_epoch_timestamp_becomes_naive_utc(self):
        result = validate_sensor_payload(b'{"value": 1, "unit": "C", "timestamp": 1772366400}')
        assert result.payload.reading_time(RECEIVED) == datetime(2026, 3, 1, 12, 0, 0)

    @pytest.mark.parametrize(
        "raw",
        [
            b"not json",
            b"[1, 2]",
            b'{"unit": "C"}',
            b'{"value": "23.5", "unit": "C"}',
            b'{"value": true, "unit": "C"}',
            b'{"value": 23.5}',
            b'{"value": 23.5, "unit": 5}',
            b'{"value": 23.5, "unit": "C", "timestamp": -1}',
            b'{"value": 23.5, "unit": "C", "timestamp": "yesterday"}',
        ],
    )
    def test_malformed_payloads(self, raw):
        result = validate_sensor_payload(raw)
        assert result.valid is False
        assert result.error

    def test_extra_fields_ignored(self):
        result = validate_sensor_payload(b'{"value": 1.5, "unit": "C", "rssi": -60}')
        assert result.valid is True


# =============================================================================
# ACTUATOR ECHO
# =============================================================================

class TestEchoDecoding:

    def test_json_object_is_structured(self):
        echo = decode_echo(b'{"command": "on"}')
        assert echo == StructuredEcho({"command": "on"})

    @pytest.mark.parametrize("raw, text", [(b"on", "on"), (b"90", "90"), (b'"OFF"', "OFF"), (b" 1 ", "1")])
    def test_bare_tokens_are_raw(self, raw, text):
        assert decode_echo(raw) == RawEcho(text)

    @pytest.mark.parametrize("raw", [b"", b"   ", b"[1]", b"true", b"null", b"\xff\xfe"])
    def test_undecodable(self, raw):
        assert decode_echo(raw) is None

    @pytest.mark.parametrize(
        "raw",
        [b'{"command": "on",}', b"[1, 2", b'"on', b"turn on", b"x" * 101, b'"' + b"x" * 101 + b'"'],
    )
    def test_broken_json_and_bad_tokens_rejected(self, raw):
        assert decode_echo(raw) is None
        assert validate_actuator_payload(raw).valid is False

    def test_token_at_column_width_accepted(self):
        assert decode_echo(b"x" * 100) == RawEcho("x" * 100)

    def test_oversized_structured_command_rejected(self):
        assert validate_actuator_payload(b'{"command": "' + b"x" * 101 + b'"}').valid is False


class TestNumericCoercion:

    @pytest.mark.parametrize(
        "text, expected",
        [("1", 1.0), ("0", 0.0), ("90", 90.0), ("12.5", 12.5), ("ON", 1.0), ("off", 0.0), ("open", None)],
    )
    def test_parse_numeric_state(self, text, expected):
        assert parse_numeric_state(text) == expected

    def test_value_field_wins_over_command(self):
        canonical = canonicalize_echo(StructuredEcho({"command": "on", "value": 0.5}))
        assert canonical.command == "on"
        assert canonical.state == 0.5

    def test_command_parsed_when_value_missing(self):
        canonical = canonicalize_echo(StructuredEcho({"command": "off"}))
        assert canonical.state == 0.0

    def test_numeric_command_is_stringified(self):
        canonical = canonicalize_echo(StructuredEcho({"command": 45, "parameters": {"speed": 2}}))
        assert canonical.command == "45"
        assert canonical.state == 45.0
        assert canonical.parameters == {"speed": 2}

    def test_non_numeric_state_left_unset(self):
        canonical = canonicalize_echo(RawEcho("auto"))
        assert canonical.command == "auto"
        assert canonical.state is None

    def test_structured_echo_requires_command(self):
        result = validate_actuator_payload(b'{"value": 1}')
        assert result.valid is False


# =============================================================================
# STATUS / HEARTBEAT
# =============================================================================

class TestStatusAndHeartbeat:

    def test_status_must_be_object(self):
        assert validate_status_payload(b'{"rssi": -50}').valid is True
        assert validate_status_payload(b'"online"').valid is False
        assert validate_status_payload(b"garbage").valid is False

    @pytest.mark.parametrize("raw", [b"", b"1772366400", b"1772366400.5", b'"1772366400"', b' " 1772366400 " '])
    def test_heartbeat_accepts_empty_or_timestamp(self, raw):
        assert validate_heartbeat_payload(raw).valid is True

    def test_heartbeat_rejects_text(self):
        assert validate_heartbeat_payload(b"alive").valid is False

    @pytest.mark.parametrize("raw", [b'"alive"', b"true", b"{}", b"[1]", b'"nan"'])
    def test_heartbeat_rejects_non_numeric_json(self, raw):
        assert validate_heartbeat_payload(raw).valid is False

    def test_quoted_timestamp_parsed(self):
        assert validate_heartbeat_payload(b'"1772366400"').payload == 1772366400.0
