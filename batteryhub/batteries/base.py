from abc import ABC, abstractmethod
from typing import Optional

from batteryhub.models import TelemetryRecord
from batteryhub.modbus.protocols import Protocol
from batteryhub.modbus.reader import ModbusReader


class Battery(ABC):
    """
    Per-model knowledge of a battery BMS: its register layout, units and the
    protocol it speaks by default.
    """

    name: str = "battery"

    @abstractmethod
    def default_protocol(self) -> Protocol: ...

    @abstractmethod
    async def read_info(self, reader: ModbusReader, battery_id: int, timeout: float) -> TelemetryRecord:
        """
        Read the primary telemetry record.

        Raises:
            ReadError: if the battery did not answer or the answer could not be decoded
        """

    async def read_extra_info(self, reader: ModbusReader, battery_id: int,
                              timeout: float) -> Optional[TelemetryRecord]:
        """
        Read the extended record (model, firmware, serial, ...).

        Returns None when the battery model has no extended data; that is not
        an error.
        """
        return None

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"
