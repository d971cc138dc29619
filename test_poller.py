"""
Unit tests for BatteryPoller: ordering, failure isolation, recovery and
aggregation of per-battery failures
"""

import io
from typing import List, Optional
from unittest.mock import AsyncMock, MagicMock

import pytest

from batteryhub.batteries.base import Battery
from batteryhub.errors import PollingFailed, ReadError, ReopenError
from batteryhub.models import TelemetryRecord
from batteryhub.modbus.protocols import Protocol
from batteryhub.poller import BatteryPoller, Operation, PollFailure, RunOutcome
from batteryhub.report import ReportWriter


class ScriptedBattery(Battery):
    """
    Battery whose reads are scripted per id:
    - info_failures / extra_failures: ids whose read raises ReadError
    - no_extra: ids with no extended record
    """

    name = "Scripted"

    def __init__(self, info_failures=(), extra_failures=(), no_extra=()):
        self.info_failures = set(info_failures)
        self.extra_failures = set(extra_failures)
        self.no_extra = set(no_extra)
        self.calls: List[tuple] = []

    def default_protocol(self) -> Protocol:
        return Protocol.MODBUS_RTU

    async def read_info(self, reader, battery_id: int, timeout: float) -> TelemetryRecord:
        self.calls.append(("info", battery_id, timeout))
        if battery_id in self.info_failures:
            raise ReadError(f"no response from ID#{battery_id}")
        return TelemetryRecord().add("voltage", 50 + battery_id, "V").add("soc", 80, "%")

    async def read_extra_info(self, reader, battery_id: int, timeout: float) -> Optional[TelemetryRecord]:
        self.calls.append(("extra info", battery_id, timeout))
        if battery_id in self.extra_failures:
            raise ReadError("crc mismatch")
        if battery_id in self.no_extra:
            return None
        return TelemetryRecord(kind="extra info").add("serial_number", f"SN{battery_id}")


@pytest.fixture
def port():
    port = MagicMock()
    port.reopen_with_backoff = AsyncMock()
    return port


def make_poller(port, battery, out=None):
    return BatteryPoller(port, MagicMock(), battery, 0.5, ReportWriter(out or io.StringIO()))


def battery_blocks(text: str) -> List[str]:
    return [line for line in text.splitlines() if line.startswith("Battery #")]


class TestRunOutcome:
    def test_empty(self):
        outcome = RunOutcome()
        assert not outcome.failed
        outcome.raise_for_failures()

    def test_joined_message(self):
        outcome = RunOutcome()
        outcome.add(PollFailure(5, Operation.INFO, ReadError("timeout")))
        outcome.add(PollFailure(6, Operation.EXTRA_INFO, ReadError("crc")))

        assert outcome.failed
        assert outcome.error_message() == (
            "error getting info of ID#5: timeout\n"
            "error getting extra info of ID#6: crc"
        )
        with pytest.raises(PollingFailed) as exc_info:
            outcome.raise_for_failures()
        assert exc_info.value.outcome is outcome


class TestBatteryPoller:
    @pytest.mark.asyncio
    async def test_all_succeed_in_order(self, port):
        out = io.StringIO()
        battery = ScriptedBattery()

        outcome = await make_poller(port, battery, out).poll([1, 2, 3])

        assert not outcome.failed
        assert outcome.succeeded == 3
        assert battery_blocks(out.getvalue()) == ["Battery #1", "Battery #2", "Battery #3"]
        assert out.getvalue().count("serial number: SN") == 3
        port.reopen_with_backoff.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_extra_record_follows_primary_then_blank_line(self, port):
        out = io.StringIO()
        await make_poller(port, ScriptedBattery(), out).poll([4])

        assert out.getvalue() == (
            "Battery #4\n"
            "===========\n"
            "voltage: 54V\n"
            "soc: 80%\n"
            "serial number: SN4\n"
            "\n"
        )

    @pytest.mark.asyncio
    async def test_timeout_passed_to_every_read(self, port):
        battery = ScriptedBattery()
        await make_poller(port, battery).poll([1])
        assert battery.calls == [("info", 1, 0.5), ("extra info", 1, 0.5)]

    @pytest.mark.asyncio
    async def test_duplicate_ids_polled_independently(self, port):
        out = io.StringIO()
        battery = ScriptedBattery()

        outcome = await make_poller(port, battery, out).poll([3, 3, 7])

        assert battery_blocks(out.getvalue()) == ["Battery #3", "Battery #3", "Battery #7"]
        assert out.getvalue().count("\n\n") == 3
        assert [c[:2] for c in battery.calls] == [
            ("info", 3), ("extra info", 3),
            ("info", 3), ("extra info", 3),
            ("info", 7), ("extra info", 7),
        ]
        assert not outcome.failed

    @pytest.mark.asyncio
    async def test_info_failure_skips_extra_and_continues(self, port):
        out = io.StringIO()
        battery = ScriptedBattery(info_failures={5})

        outcome = await make_poller(port, battery, out).poll([4, 5, 6])

        assert ("extra info", 5, 0.5) not in battery.calls
        assert battery_blocks(out.getvalue()) == ["Battery #4", "Battery #6"]
        assert len(outcome.failures) == 1
        failure = outcome.failures[0]
        assert failure.battery_id == 5
        assert failure.operation == Operation.INFO
        assert isinstance(failure.error, ReadError)
        assert outcome.failed
        assert outcome.succeeded == 2
        port.reopen_with_backoff.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_extra_failure_recorded_and_nothing_emitted(self, port):
        out = io.StringIO()
        battery = ScriptedBattery(extra_failures={2})

        outcome = await make_poller(port, battery, out).poll([1, 2, 3])

        assert battery_blocks(out.getvalue()) == ["Battery #1", "Battery #3"]
        assert [(f.battery_id, f.operation) for f in outcome.failures] == [(2, Operation.EXTRA_INFO)]
        assert "error getting extra info of ID#2: crc mismatch" in outcome.error_message()
        port.reopen_with_backoff.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_absent_extra_is_not_a_failure(self, port):
        out = io.StringIO()
        battery = ScriptedBattery(no_extra={1})

        outcome = await make_poller(port, battery, out).poll([1])

        assert not outcome.failed
        assert out.getvalue() == "Battery #1\n===========\nvoltage: 51V\nsoc: 80%\n\n"
        port.reopen_with_backoff.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_all_failures_collected(self, port):
        battery = ScriptedBattery(info_failures={1, 3}, extra_failures={2})

        outcome = await make_poller(port, battery).poll([1, 2, 3, 4])

        assert [(f.battery_id, f.operation) for f in outcome.failures] == [
            (1, Operation.INFO), (2, Operation.EXTRA_INFO), (3, Operation.INFO),
        ]
        assert port.reopen_with_backoff.await_count == 3
        assert outcome.polled == 4
        assert outcome.succeeded == 1

    @pytest.mark.asyncio
    async def test_reopen_failure_stops_run(self, port):
        out = io.StringIO()
        port.reopen_with_backoff.side_effect = ReopenError("error reopening serial:/dev/ttyUSB0")
        battery = ScriptedBattery(info_failures={2})

        with pytest.raises(ReopenError):
            await make_poller(port, battery, out).poll([1, 2, 3, 4])

        polled_ids = {c[1] for c in battery.calls}
        assert polled_ids == {1, 2}
        assert battery_blocks(out.getvalue()) == ["Battery #1"]

    @pytest.mark.asyncio
    async def test_reopen_failure_after_extra_read_stops_run(self, port):
        port.reopen_with_backoff.side_effect = ReopenError("gone")
        battery = ScriptedBattery(extra_failures={1})

        with pytest.raises(ReopenError):
            await make_poller(port, battery).poll([1, 2])

        assert all(c[1] == 1 for c in battery.calls)

    @pytest.mark.asyncio
    async def test_same_input_same_output(self, port):
        first, second = io.StringIO(), io.StringIO()

        await make_poller(port, ScriptedBattery(no_extra={2}), first).poll([1, 2, 1])
        await make_poller(port, ScriptedBattery(no_extra={2}), second).poll([1, 2, 1])

        assert first.getvalue() == second.getvalue()
        assert first.getvalue()

    @pytest.mark.asyncio
    async def test_empty_id_list(self, port):
        out = io.StringIO()
        outcome = await make_poller(port, ScriptedBattery(), out).poll([])
        assert out.getvalue() == ""
        assert not outcome.failed
