"""
Telemetry records produced by the battery profiles and printed by the report.
"""

from typing import Any, List
from pydantic import BaseModel


class Reading(BaseModel):
    name: str
    value: Any = None
    unit: str = ""  # appended verbatim after the value, e.g. "V", "mV", "%"


class TelemetryRecord(BaseModel):
    """Ordered, unit-tagged readings decoded from one battery response."""
    kind: str = "info"  # "info" | "extra info"
    readings: List[Reading] = []

    def add(self, name: str, value: Any, unit: str = "") -> "TelemetryRecord":
        self.readings.append(Reading(name=name, value=value, unit=unit))
        return self
