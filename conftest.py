"""
Shared fakes for the test suite.

FakeModbusClient stands in for the pymodbus async clients so nothing touches a
real serial port or socket.
"""

from typing import Callable, List, Optional, Tuple

import pytest

from batteryhub.config import PortConfig
from batteryhub.transport.backoff import BackoffPolicy
from batteryhub.transport.port import Port


class FakeResponse:
    def __init__(self, registers: Optional[List[int]] = None, error: bool = False):
        self.registers = registers or []
        self.error = error

    def isError(self) -> bool:
        return self.error

    def __str__(self) -> str:
        return "ExceptionResponse(exception_code=2)" if self.error else f"FakeResponse({self.registers})"


class FakeModbusClient:
    """
    Minimal async client: connect/close plus register reads answered by a handler
    of (device_id, address, count) -> FakeResponse.
    """

    def __init__(self, handler: Optional[Callable[[int, int, int], FakeResponse]] = None,
                 connect_ok: bool = True):
        self.handler = handler or (lambda device_id, address, count: FakeResponse([0] * count))
        self.connect_ok = connect_ok
        self.connected = False
        self.closed = False
        self.calls: List[Tuple[str, int, int, int]] = []

    async def connect(self) -> bool:
        self.connected = self.connect_ok
        return self.connect_ok

    def close(self) -> None:
        self.connected = False
        self.closed = True

    async def read_holding_registers(self, address: int, count: int, device_id: int):
        self.calls.append(("holding", device_id, address, count))
        result = self.handler(device_id, address, count)
        if hasattr(result, "__await__"):
            result = await result
        return result

    async def read_input_registers(self, address: int, count: int, device_id: int):
        self.calls.append(("input", device_id, address, count))
        result = self.handler(device_id, address, count)
        if hasattr(result, "__await__"):
            result = await result
        return result


class ClientFactory:
    """Hands out prepared clients in order and records every client created."""

    def __init__(self, clients: List[FakeModbusClient]):
        self._clients = list(clients)
        self.created: List[FakeModbusClient] = []
        self.timeouts: List[float] = []

    def __call__(self, options, framer, timeout):
        self.timeouts.append(timeout)
        client = self._clients.pop(0) if len(self._clients) > 1 else self._clients[0]
        self.created.append(client)
        return client


@pytest.fixture
def port_config():
    return PortConfig(address="/dev/ttyUSB0")


@pytest.fixture
def no_wait_backoff():
    return BackoffPolicy(initial_delay=0.0, max_delay=0.0, multiplier=1.0, max_attempts=3)


@pytest.fixture
def make_port(port_config, no_wait_backoff):
    def _make(*clients: FakeModbusClient) -> Port:
        factory = ClientFactory(list(clients) or [FakeModbusClient()])
        port = Port(port_config, backoff=no_wait_backoff, client_factory=factory)
        port.factory = factory
        return port
    return _make
