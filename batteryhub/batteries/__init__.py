"""
Supported battery models.

BatteryType is the closed set of models the CLI accepts; battery_for_type
resolves it to a device profile once per run.
"""

from enum import Enum

from batteryhub.batteries.base import Battery
from batteryhub.batteries.eg4llv2 import EG4LLv2Battery
from batteryhub.batteries.pace import PaceBattery


class BatteryType(str, Enum):
    EG4LLV2 = "EG4LLv2"
    PACE = "Pace"


BATTERY_CLASSES = {
    BatteryType.EG4LLV2: EG4LLv2Battery,
    BatteryType.PACE: PaceBattery,
}


def battery_for_type(battery_type: BatteryType) -> Battery:
    return BATTERY_CLASSES[BatteryType(battery_type)]()


__all__ = ["Battery", "BatteryType", "EG4LLv2Battery", "PaceBattery", "battery_for_type"]
