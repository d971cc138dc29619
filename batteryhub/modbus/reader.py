"""
Protocol reader bound to the shared port.

Batteries never touch the pymodbus client directly; they ask the reader for
register blocks and get either a list of words or a ReadError.
"""

import asyncio
import logging
from typing import List

from pymodbus.exceptions import ModbusException

from batteryhub.errors import ConfigError, ReadError
from batteryhub.modbus.protocols import Protocol, framer_for
from batteryhub.transport.port import Port

log = logging.getLogger(__name__)


class ModbusReader:
    def __init__(self, port: Port, protocol: Protocol):
        self.port = port
        self.protocol = protocol

    def __repr__(self) -> str:
        return f"ModbusReader(port={self.port}, protocol={self.protocol.value})"

    async def read_holding_registers(self, device_id: int, address: int, count: int,
                                     timeout: float) -> List[int]:
        return await self._read("read_holding_registers", device_id, address, count, timeout)

    async def read_input_registers(self, device_id: int, address: int, count: int,
                                   timeout: float) -> List[int]:
        return await self._read("read_input_registers", device_id, address, count, timeout)

    async def _read(self, method: str, device_id: int, address: int, count: int,
                    timeout: float) -> List[int]:
        if not self.port.usable:
            raise ReadError(f"{self.port} is not open")
        fn = getattr(self.port.client, method)
        try:
            rr = await asyncio.wait_for(
                fn(address=address, count=count, device_id=device_id),
                timeout=timeout,
            )
        except asyncio.TimeoutError as e:
            self.port.mark_broken(e)
            raise ReadError(
                f"timeout after {timeout}s reading {count} registers @{address} from ID#{device_id}"
            ) from e
        except ModbusException as e:
            self.port.mark_broken(e)
            raise ReadError(f"Modbus error reading @{address} from ID#{device_id}: {e}") from e
        if rr.isError():
            raise ReadError(f"Modbus read error @{address} from ID#{device_id}: {rr}")
        regs = list(rr.registers)
        if len(regs) < count:
            raise ReadError(
                f"short response from ID#{device_id}: expected {count} registers @{address}, got {len(regs)}"
            )
        log.debug("ID#%d %s @%d x%d -> %s", device_id, method, address, count, regs[:count])
        return regs[:count]


def reader_from_protocol(port: Port, protocol: Protocol) -> ModbusReader:
    """
    Build the reader for a resolved protocol.

    Raises:
        ConfigError: if the protocol is "auto", unknown, or does not match the
            framer the port was opened with
    """
    framer = framer_for(protocol)
    if port.framer != framer:
        raise ConfigError(
            f"protocol {Protocol(protocol).value} needs framer {framer}, but {port} uses {port.framer}"
        )
    return ModbusReader(port, Protocol(protocol))
