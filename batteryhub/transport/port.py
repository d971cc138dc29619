"""
Shared transport session.

A single Port is opened per run and shared by every battery on the bus. It
wraps a pymodbus async client (serial or TCP) and knows how to reopen itself
with backoff after an I/O failure.
"""

import asyncio
import inspect
import logging
from enum import Enum
from typing import Any, Callable, Optional, Tuple

from pymodbus import FramerType
from pymodbus.client import AsyncModbusSerialClient, AsyncModbusTcpClient

from batteryhub.errors import ReopenError, TransportError
from batteryhub.transport.backoff import BackoffPolicy

log = logging.getLogger(__name__)

DEFAULT_TCP_PORT = 502
# pymodbus request timeout floor. The reader enforces the per-read timeout, so
# the client is always given a little longer than that.
CLIENT_TIMEOUT = 5.0
CLIENT_TIMEOUT_MARGIN = 1.0


class DeviceType(str, Enum):
    SERIAL = "serial"
    TCP = "tcp"


def client_timeout_for(read_timeout: Optional[float]) -> float:
    """Request timeout for the pymodbus client, never shorter than the read timeout."""
    if read_timeout is None:
        return CLIENT_TIMEOUT
    return max(CLIENT_TIMEOUT, read_timeout + CLIENT_TIMEOUT_MARGIN)


def split_host_port(address: str) -> Tuple[str, int]:
    """Split "host[:port]" into (host, port), defaulting to the Modbus TCP port."""
    host, sep, port = address.rpartition(":")
    if not sep:
        return address, DEFAULT_TCP_PORT
    if not host:
        raise TransportError(f"Invalid TCP address: {address!r}")
    try:
        return host, int(port)
    except ValueError as e:
        raise TransportError(f"Invalid TCP port in address {address!r}") from e


def default_client_factory(options, framer: FramerType, timeout: float = CLIENT_TIMEOUT):
    """Create the pymodbus client matching the configured device type."""
    if options.device_type == DeviceType.TCP:
        host, port = split_host_port(options.address)
        return AsyncModbusTcpClient(
            host=host,
            port=port,
            framer=framer,
            timeout=timeout,
            retries=0,
        )
    return AsyncModbusSerialClient(
        port=options.address,
        framer=framer,
        baudrate=options.baudrate,
        parity=options.parity,
        stopbits=options.stopbits,
        bytesize=options.bytesize,
        timeout=timeout,
        retries=0,
    )


async def _close_client(client) -> None:
    close_fn = getattr(client, "close", None)
    if callable(close_fn):
        result = close_fn()
        if inspect.isawaitable(result):
            await result


class Port:
    """
    Transport session shared by all batteries on the bus.

    States:
    - open: client connected and usable
    - broken: an I/O failure happened; must be reopened before further use
    - closed: never opened, or closed explicitly
    """

    def __init__(
        self,
        options,
        framer: FramerType = FramerType.RTU,
        backoff: Optional[BackoffPolicy] = None,
        client_factory: Optional[Callable[[Any, FramerType, float], Any]] = None,
        read_timeout: Optional[float] = None,
    ):
        self.options = options
        self.framer = framer
        self.backoff = backoff or BackoffPolicy()
        self._client_factory = client_factory or default_client_factory
        self.client_timeout = client_timeout_for(read_timeout)
        self.client: Any = None
        self.broken: bool = False
        self.reopen_count: int = 0

    def __str__(self) -> str:
        return f"{self.options.device_type.value}:{self.options.address}"

    @property
    def is_open(self) -> bool:
        return self.client is not None and bool(getattr(self.client, "connected", False))

    @property
    def usable(self) -> bool:
        return self.is_open and not self.broken

    async def open(self) -> None:
        """Open the port. Raises TransportError if the client does not connect."""
        if self.client is not None:
            await self.close()
        try:
            client = self._client_factory(self.options, self.framer, self.client_timeout)
        except TransportError:
            raise
        except Exception as e:
            raise TransportError(f"Cannot create client for {self}: {e}") from e
        try:
            ok = await client.connect()
        except Exception as e:
            await _close_client(client)
            raise TransportError(f"Error opening {self}: {e}") from e
        if not ok or not client.connected:
            await _close_client(client)
            raise TransportError(f"Failed to open {self}")
        self.client = client
        self.broken = False
        log.debug("Opened %s (framer=%s)", self, self.framer)

    async def close(self) -> None:
        client, self.client = self.client, None
        if client is None:
            return
        await _close_client(client)
        log.debug("Closed %s", self)

    def mark_broken(self, reason: Any = None) -> None:
        if not self.broken:
            log.debug("Marking %s as broken: %s", self, reason)
        self.broken = True

    async def reopen_with_backoff(self) -> None:
        """
        Close and reopen the port, sleeping before each attempt according to the
        backoff policy.

        Raises:
            ReopenError: if every attempt allowed by the policy failed
        """
        self.mark_broken("reopen requested")
        await self.close()
        last_error: Optional[TransportError] = None
        attempts = 0
        for attempt, delay in enumerate(self.backoff.delays(), start=1):
            attempts = attempt
            if delay > 0:
                await asyncio.sleep(delay)
            try:
                await self.open()
            except TransportError as e:
                last_error = e
                log.warning("Reopen attempt %d/%d of %s failed: %s",
                            attempt, self.backoff.max_attempts, self, e)
                continue
            self.reopen_count += 1
            log.info("Reopened %s after %d attempt(s)", self, attempt)
            return
        raise ReopenError(f"error reopening {self} after {attempts} attempt(s): {last_error}") from last_error
