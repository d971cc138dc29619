"""
Pace BMS (PACE Modbus protocol, as shipped in many rack-mount LFP packs).

Everything the BMS exposes over Modbus fits in holding registers 0-36, so
there is no extended record.
"""

from typing import List

from batteryhub.batteries.base import Battery
from batteryhub.models import TelemetryRecord
from batteryhub.modbus.protocols import Protocol
from batteryhub.modbus.reader import ModbusReader
from batteryhub.modbus.registers import require_count, scaled, to_s16

INFO_START = 0
INFO_COUNT = 37
CELLS = 16
CELL_TEMPS = 4


class PaceBattery(Battery):
    name = "Pace"

    def default_protocol(self) -> Protocol:
        return Protocol.MODBUS_RTU

    async def read_info(self, reader: ModbusReader, battery_id: int, timeout: float) -> TelemetryRecord:
        regs = await reader.read_holding_registers(battery_id, INFO_START, INFO_COUNT, timeout)
        return self.decode_info(regs)

    @staticmethod
    def decode_info(regs: List[int]) -> TelemetryRecord:
        require_count(regs, INFO_COUNT, "info registers")
        rec = TelemetryRecord(kind="info")
        rec.add("current", scaled(to_s16(regs[0]), 100), "A")
        rec.add("voltage", scaled(regs[1], 100), "V")
        rec.add("soc", regs[2], "%")
        rec.add("soh", regs[3], "%")
        rec.add("remaining_capacity", scaled(regs[4], 100), "Ah")
        rec.add("full_capacity", scaled(regs[5], 100), "Ah")
        rec.add("design_capacity", scaled(regs[6], 100), "Ah")
        rec.add("cycle_count", regs[7])
        rec.add("warning_flag", regs[9])
        rec.add("protection_flag", regs[10])
        rec.add("status_flag", regs[11])
        rec.add("balance_status", regs[12])
        for i in range(CELLS):
            rec.add(f"cell_{i + 1}_voltage", regs[15 + i], "mV")
        for i in range(CELL_TEMPS):
            rec.add(f"cell_temp_{i + 1}", scaled(to_s16(regs[31 + i]), 10, 1), "°C")
        rec.add("mosfet_temp", scaled(to_s16(regs[35]), 10, 1), "°C")
        rec.add("environment_temp", scaled(to_s16(regs[36]), 10, 1), "°C")
        return rec
