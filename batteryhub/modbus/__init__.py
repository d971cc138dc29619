from batteryhub.modbus.protocols import Protocol, framer_for, resolve_protocol
from batteryhub.modbus.reader import ModbusReader, reader_from_protocol

__all__ = ["Protocol", "framer_for", "resolve_protocol", "ModbusReader", "reader_from_protocol"]
