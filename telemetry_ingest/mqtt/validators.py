"""Validadores de payloads MQTT para ingesta.

Cada payload se decodifica una sola vez (orjson) y se valida con pydantic.
Los validadores nunca lanzan: devuelven ``ValidationResult`` y el
processor decide (warning + drop) qué hacer con un payload inválido.

Formatos:
    sensor:    {"value": 23.5, "unit": "°C", "timestamp": 1767225600}
    actuator:  {"command": "on", "value": 1, "parameters": {...}}  |  "on"  |  90
    status:    {"rssi": -61, "uptime": 3600, "ip": "10.0.0.12", ...}
    heartbeat: "" | 1767225600 | "1767225600"
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Optional, Union

import orjson
from pydantic import BaseModel, ConfigDict, StrictFloat, StrictInt, StrictStr, ValidationError, field_validator

logger = logging.getLogger(__name__)

Number = Union[StrictInt, StrictFloat]

# Beyond this the device clock is not trusted; datetime cannot represent it anyway.
_MAX_EPOCH_SECONDS = 253402300799  # 9999-12-31T23:59:59Z

# actuator_commands.command column width
COMMAND_MAX_LENGTH = 100


@dataclass
class ValidationResult:
    """Resultado de validación."""

    valid: bool
    payload: Any = None
    error: Optional[str] = None


def _decode_json(raw: bytes) -> Any:
    return orjson.loads(raw)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


# =============================================================================
# Sensor
# =============================================================================

class SensorPayload(BaseModel):
    """Lectura de un sensor."""

    model_config = ConfigDict(extra="ignore")

    value: Number
    unit: StrictStr
    timestamp: Optional[Number] = None

    @field_validator("value")
    @classmethod
    def validate_value(cls, v):
        if not math.isfinite(v):
            raise ValueError("value must be finite")
        return float(v)

    @field_validator("timestamp")
    @classmethod
    def validate_timestamp(cls, v):
        if v is None:
            return v
        if not math.isfinite(v) or v < 0 or v > _MAX_EPOCH_SECONDS:
            raise ValueError(f"timestamp out of range: {v}")
        return v

    def reading_time(self, received_at: datetime) -> datetime:
        """Device timestamp as naive UTC, or ``received_at`` when absent."""
        if self.timestamp is None:
            return received_at
        return datetime.fromtimestamp(self.timestamp, tz=timezone.utc).replace(tzinfo=None)


def validate_sensor_payload(raw: bytes) -> ValidationResult:
    try:
        data = _decode_json(raw)
    except orjson.JSONDecodeError as e:
        return ValidationResult(valid=False, error=f"invalid JSON: {e}")

    if not isinstance(data, dict):
        return ValidationResult(valid=False, error=f"expected JSON object, got {type(data).__name__}")

    try:
        return ValidationResult(valid=True, payload=SensorPayload.model_validate(data))
    except ValidationError as e:
        return ValidationResult(valid=False, error=_summarize(e))


def _summarize(error: ValidationError) -> str:
    return "; ".join(
        f"{'.'.join(str(p) for p in err['loc']) or 'payload'}: {err['msg']}"
        for err in error.errors()
    )


# =============================================================================
# Actuator echo
# =============================================================================

@dataclass(frozen=True)
class StructuredEcho:
    data: dict


@dataclass(frozen=True)
class RawEcho:
    text: str


Echo = Union[StructuredEcho, RawEcho]


@dataclass(frozen=True)
class CanonicalCommand:
    command: str
    state: Optional[float] = None
    parameters: Optional[dict] = None


def _bare_token(text: str) -> Optional[RawEcho]:
    """Single word that fits the command log, or None."""
    if not text or len(text) > COMMAND_MAX_LENGTH or any(c.isspace() for c in text):
        return None
    return RawEcho(text)


def decode_echo(raw: bytes) -> Optional[Echo]:
    """JSON object → StructuredEcho; bare string/number → RawEcho; else None.

    Text starting like JSON (``{``, ``[``, ``"``) that does not parse is dropped.
    """
    try:
        text = raw.decode("utf-8").strip()
    except UnicodeDecodeError:
        return None
    if not text:
        return None

    try:
        data = _decode_json(text)
    except orjson.JSONDecodeError:
        if text[0] in "{[\"":
            return None
        return _bare_token(text)

    if isinstance(data, dict):
        return StructuredEcho(data)
    if isinstance(data, str):
        return _bare_token(data.strip())
    if _is_number(data):
        return _bare_token(text)
    return None


def parse_numeric_state(text: str) -> Optional[float]:
    """Numeric string → float; ``on``/``off`` → 1/0; anything else → None."""
    try:
        number = float(text)
    except ValueError:
        lowered = text.strip().lower()
        if lowered == "on":
            return 1.0
        if lowered == "off":
            return 0.0
        return None
    return number if math.isfinite(number) else None


def canonicalize_echo(echo: Echo) -> Optional[CanonicalCommand]:
    if isinstance(echo, RawEcho):
        return CanonicalCommand(command=echo.text, state=parse_numeric_state(echo.text))

    data = echo.data
    command = data.get("command")
    if command is None or isinstance(command, (dict, list, bool)):
        return None
    command = str(command).strip()
    if not command or len(command) > COMMAND_MAX_LENGTH:
        return None

    value = data.get("value")
    if _is_number(value) and math.isfinite(value):
        state = float(value)
    else:
        state = parse_numeric_state(command)

    parameters = data.get("parameters")
    return CanonicalCommand(
        command=command,
        state=state,
        parameters=parameters if isinstance(parameters, dict) else None,
    )


def validate_actuator_payload(raw: bytes) -> ValidationResult:
    echo = decode_echo(raw)
    if echo is None:
        return ValidationResult(valid=False, error="expected JSON object or bare string/number token")
    canonical = canonicalize_echo(echo)
    if canonical is None:
        return ValidationResult(valid=False, error="structured echo without usable 'command'")
    return ValidationResult(valid=True, payload=canonical)


# =============================================================================
# Status / heartbeat
# =============================================================================

def validate_status_payload(raw: bytes) -> ValidationResult:
    try:
        data = _decode_json(raw)
    except orjson.JSONDecodeError as e:
        return ValidationResult(valid=False, error=f"invalid JSON: {e}")
    if not isinstance(data, dict):
        return ValidationResult(valid=False, error=f"expected JSON object, got {type(data).__name__}")
    return ValidationResult(valid=True, payload=data)


def validate_heartbeat_payload(raw: bytes) -> ValidationResult:
    """Empty payload or an epoch timestamp (JSON number or quoted numeric string)."""
    if not raw.strip():
        return ValidationResult(valid=True, payload=None)
    try:
        data = _decode_json(raw)
    except orjson.JSONDecodeError as e:
        return ValidationResult(valid=False, error=f"invalid JSON: {e}")

    if isinstance(data, str):
        try:
            data = float(data.strip())
        except ValueError:
            return ValidationResult(valid=False, error=f"not a timestamp: {data[:64]!r}")
    if not _is_number(data) or not math.isfinite(data):
        return ValidationResult(valid=False, error=f"not a timestamp: {str(data)[:64]!r}")
    return ValidationResult(valid=True, payload=float(data))
