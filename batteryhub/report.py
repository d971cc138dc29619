import sys
from typing import List, Optional, TextIO

from batteryhub.models import TelemetryRecord


def format_record(record: TelemetryRecord) -> List[str]:
    """One "<name>: <value><unit>" line per reading, underscores shown as spaces."""
    return [f"{r.name.replace('_', ' ')}: {r.value}{r.unit}" for r in record.readings]


class ReportWriter:
    """Writes battery telemetry blocks to a text stream (stdout by default)."""

    def __init__(self, stream: Optional[TextIO] = None):
        self.stream = stream if stream is not None else sys.stdout

    def write_record(self, record: TelemetryRecord) -> None:
        for line in format_record(record):
            print(line, file=self.stream)

    def write_battery(self, battery_id: int, info: TelemetryRecord,
                      extra: Optional[TelemetryRecord] = None) -> None:
        print(f"Battery #{battery_id}", file=self.stream)
        print("===========", file=self.stream)
        self.write_record(info)
        if extra is not None:
            self.write_record(extra)
        print(file=self.stream)
        self.stream.flush()
