"""
Battery poller.

Reads every configured battery id, in order, over one shared port:
- a failed read is recorded, the port is reopened and polling moves on
- a failed reopen stops the run (ReopenError propagates to the caller)
- all recorded failures are returned together in a RunOutcome
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Sequence

from batteryhub.batteries.base import Battery
from batteryhub.errors import PollingFailed, ReadError
from batteryhub.modbus.reader import ModbusReader
from batteryhub.report import ReportWriter
from batteryhub.transport.port import Port

log = logging.getLogger(__name__)


class Operation(str, Enum):
    INFO = "info"
    EXTRA_INFO = "extra info"


@dataclass
class PollFailure:
    battery_id: int
    operation: Operation
    error: Exception

    def __str__(self) -> str:
        return f"error getting {self.operation.value} of ID#{self.battery_id}: {self.error}"


@dataclass
class RunOutcome:
    failures: List[PollFailure] = field(default_factory=list)
    polled: int = 0
    succeeded: int = 0

    @property
    def failed(self) -> bool:
        return bool(self.failures)

    def add(self, failure: PollFailure) -> None:
        self.failures.append(failure)

    def error_message(self) -> str:
        return "\n".join(str(f) for f in self.failures)

    def raise_for_failures(self) -> None:
        if self.failed:
            raise PollingFailed(self)


class BatteryPoller:
    def __init__(self, port: Port, reader: ModbusReader, battery: Battery,
                 read_timeout: float, report: ReportWriter):
        self.port = port
        self.reader = reader
        self.battery = battery
        self.read_timeout = read_timeout
        self.report = report

    async def poll(self, battery_ids: Sequence[int]) -> RunOutcome:
        """
        Poll each battery id once, in order. Duplicate ids are polled again.

        Returns:
            RunOutcome with every per-battery failure

        Raises:
            ReopenError: if the port could not be reopened after a failure
        """
        outcome = RunOutcome()
        for battery_id in battery_ids:
            outcome.polled += 1
            try:
                info = await self.battery.read_info(self.reader, battery_id, self.read_timeout)
            except ReadError as e:
                await self._recover(outcome, PollFailure(battery_id, Operation.INFO, e))
                continue
            try:
                extra = await self.battery.read_extra_info(self.reader, battery_id, self.read_timeout)
            except ReadError as e:
                await self._recover(outcome, PollFailure(battery_id, Operation.EXTRA_INFO, e))
                continue
            self.report.write_battery(battery_id, info, extra)
            outcome.succeeded += 1
        log.info("Polled %d battery id(s): %d ok, %d failed",
                 outcome.polled, outcome.succeeded, len(outcome.failures))
        return outcome

    async def _recover(self, outcome: RunOutcome, failure: PollFailure) -> None:
        outcome.add(failure)
        log.warning("%s", failure)
        await self.port.reopen_with_backoff()
