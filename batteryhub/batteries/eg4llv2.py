"""
EG4 LL v2 (LifePower4 LL rev. 2) BMS over Modbus RTU.

Primary telemetry lives in holding registers 0-39; model, firmware and serial
strings live in holding registers 105-127.
"""

from typing import List, Optional

from batteryhub.batteries.base import Battery
from batteryhub.models import TelemetryRecord
from batteryhub.modbus.protocols import Protocol
from batteryhub.modbus.reader import ModbusReader
from batteryhub.modbus.registers import high_low_bytes, regs_to_ascii, require_count, scaled, to_s16, u32

INFO_START = 0
INFO_COUNT = 40
EXTRA_START = 105
EXTRA_COUNT = 23
CELLS = 16


class EG4LLv2Battery(Battery):
    name = "EG4LLv2"

    def default_protocol(self) -> Protocol:
        return Protocol.MODBUS_RTU

    async def read_info(self, reader: ModbusReader, battery_id: int, timeout: float) -> TelemetryRecord:
        regs = await reader.read_holding_registers(battery_id, INFO_START, INFO_COUNT, timeout)
        return self.decode_info(regs)

    async def read_extra_info(self, reader: ModbusReader, battery_id: int,
                              timeout: float) -> Optional[TelemetryRecord]:
        regs = await reader.read_holding_registers(battery_id, EXTRA_START, EXTRA_COUNT, timeout)
        return self.decode_extra_info(regs)

    @staticmethod
    def decode_info(regs: List[int]) -> TelemetryRecord:
        require_count(regs, INFO_COUNT, "info registers")
        rec = TelemetryRecord(kind="info")
        rec.add("voltage", scaled(regs[0], 100), "V")
        rec.add("current", scaled(to_s16(regs[1]), 100), "A")
        for i in range(CELLS):
            rec.add(f"cell_{i + 1}_voltage", regs[2 + i], "mV")
        rec.add("pcb_temp", to_s16(regs[18]), "°C")
        rec.add("max_temp", to_s16(regs[19]), "°C")
        rec.add("avg_temp", to_s16(regs[20]), "°C")
        rec.add("cap_remaining", regs[21], "%")
        rec.add("max_charging_current", regs[22], "A")
        rec.add("soh", regs[23], "%")
        rec.add("soc", regs[24], "%")
        rec.add("status", regs[25])
        rec.add("warning", regs[26])
        rec.add("protection", regs[27])
        rec.add("error_code", regs[28])
        rec.add("cycle_counts", u32(regs[29], regs[30]))
        rec.add("full_capacity", u32(regs[31], regs[32]), "mAh")
        # four signed 8-bit temperatures packed two per register
        temps = high_low_bytes(regs[33]) + high_low_bytes(regs[34])
        for i, t in enumerate(temps):
            rec.add(f"temp_{i + 1}", t - 0x100 if t >= 0x80 else t, "°C")
        rec.add("cell_num", regs[37])
        rec.add("designed_capacity", scaled(regs[38], 10, 1), "Ah")
        rec.add("cell_balance_status", regs[39])
        return rec

    @staticmethod
    def decode_extra_info(regs: List[int]) -> TelemetryRecord:
        require_count(regs, EXTRA_COUNT, "extra info registers")
        rec = TelemetryRecord(kind="extra info")
        rec.add("model", regs_to_ascii(regs[0:12]))
        rec.add("firmware_version", regs_to_ascii(regs[12:15]))
        rec.add("serial", regs_to_ascii(regs[15:23]))
        return rec
