from enum import Enum

from pymodbus import FramerType

from batteryhub.errors import ConfigError


class Protocol(str, Enum):
    AUTO = "auto"  # use the battery's default protocol
    MODBUS_RTU = "ModbusRTU"
    MODBUS_TCP = "ModbusTCP"


FRAMERS = {
    Protocol.MODBUS_RTU: FramerType.RTU,
    Protocol.MODBUS_TCP: FramerType.SOCKET,
}


def resolve_protocol(protocol: Protocol, battery) -> Protocol:
    """Replace the "auto" sentinel with the battery's default protocol."""
    protocol = Protocol(protocol)
    if protocol == Protocol.AUTO:
        return Protocol(battery.default_protocol())
    return protocol


def framer_for(protocol: Protocol) -> FramerType:
    try:
        return FRAMERS[Protocol(protocol)]
    except (KeyError, ValueError) as e:
        raise ConfigError(f"unsupported protocol: {protocol}") from e
