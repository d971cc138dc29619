import logging
import re
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from batteryhub.batteries import BatteryType
from batteryhub.errors import ConfigError
from batteryhub.modbus.protocols import Protocol
from batteryhub.transport.port import DeviceType

log = logging.getLogger(__name__)

_DURATION_RE = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|ms|s|m|h)")
_DURATION_UNITS = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}


def parse_duration(value: Union[str, int, float]) -> float:
    """
    Parse a duration into seconds.

    Accepts plain numbers (seconds) or duration strings such as "500ms",
    "1.5s" or "1m30s".
    """
    if isinstance(value, bool):
        raise ValueError(f"invalid duration: {value!r}")
    if isinstance(value, (int, float)):
        return float(value)
    text = str(value).strip()
    if not text:
        raise ValueError("empty duration")
    try:
        return float(text)
    except ValueError:
        pass
    pos = 0
    total = 0.0
    for m in _DURATION_RE.finditer(text):
        if m.start() != pos:
            break
        total += float(m.group(1)) * _DURATION_UNITS[m.group(2)]
        pos = m.end()
    if pos != len(text) or pos == 0:
        raise ValueError(f"invalid duration: {value!r}")
    return total


class PortConfig(BaseModel):
    address: str  # serial device path, or host[:port] for tcp
    device_type: DeviceType = DeviceType.SERIAL
    baudrate: int = Field(default=9600, gt=0)
    parity: str = "N"
    stopbits: int = 1
    bytesize: int = 8

    @field_validator("parity")
    @classmethod
    def _check_parity(cls, v: str) -> str:
        v = v.upper()
        if v not in ("N", "E", "O"):
            raise ValueError("parity must be one of N, E, O")
        return v


class BackoffConfig(BaseModel):
    initial_delay: float = Field(default=0.5, ge=0.0)
    max_delay: float = Field(default=10.0, ge=0.0)
    multiplier: float = Field(default=1.5, ge=1.0)
    max_attempts: int = Field(default=5, ge=1)


class LoggingConfig(BaseModel):
    level: str = "INFO"  # DEBUG, INFO, WARNING, ERROR, CRITICAL
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    @field_validator("level")
    @classmethod
    def _check_level(cls, v: str) -> str:
        v = v.upper()
        if v not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"unknown log level: {v}")
        return v


class BatteryInfoConfig(BaseModel):
    port: PortConfig
    battery_ids: List[int] = Field(min_length=1)
    read_timeout: float = 0.5  # seconds, per read call
    battery_type: BatteryType = BatteryType.EG4LLV2
    protocol: Protocol = Protocol.AUTO
    backoff: BackoffConfig = BackoffConfig()
    logging: LoggingConfig = LoggingConfig()

    @field_validator("battery_ids")
    @classmethod
    def _check_battery_ids(cls, v: List[int]) -> List[int]:
        for battery_id in v:
            if not 0 <= battery_id <= 255:
                raise ValueError(f"battery id {battery_id} out of range 0-255")
        return v

    @field_validator("read_timeout", mode="before")
    @classmethod
    def _parse_read_timeout(cls, v: Any) -> float:
        seconds = parse_duration(v)
        if not 0 < seconds < float("inf"):
            raise ValueError("read_timeout must be positive")
        return seconds


def load_config_file(path: Union[str, Path]) -> Dict[str, Any]:
    """Load a YAML config file into a plain dict."""
    path = Path(path).expanduser()
    if not path.exists():
        raise ConfigError(f"Configuration file not found: {path}")
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Configuration root in {path} must be a mapping, got {type(data).__name__}")
    log.debug("Loaded configuration from %s", path)
    return data


def _merge(base: Dict[str, Any], overrides: Dict[str, Any]) -> Dict[str, Any]:
    merged = dict(base)
    for key, value in overrides.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def build_config(file_data: Optional[Dict[str, Any]] = None,
                 overrides: Optional[Dict[str, Any]] = None) -> BatteryInfoConfig:
    """Merge file values with CLI overrides and validate the result."""
    data = _merge(file_data or {}, overrides or {})
    try:
        return BatteryInfoConfig(**data)
    except ValidationError as e:
        raise ConfigError(str(e)) from e
