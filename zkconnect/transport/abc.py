"""
Abstract transport interface for ZKTeco communication.

Transports own the socket and perform the primitive operations used by
every higher-level command:
- Opening/closing the socket (bounded connect for TCP)
- Sending one request packet
- Receiving one reply within a window
- Polling several short receive windows

Implementations:
- AsyncUdpTransport: asyncio datagram endpoint
- AsyncTcpTransport: asyncio stream connection
- MockTransport: scripted fake device for tests
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

from zkconnect.exceptions import TransportTimeout
from zkconnect.protocol.constants import ProtocolConstants

if TYPE_CHECKING:
    from types import TracebackType

logger = logging.getLogger(__name__)


class AbstractTransport(ABC):
    """
    Abstract base class for device transports.

    Transports support the async context manager protocol:

        async with AsyncUdpTransport(endpoint) as transport:
            await transport.send(packet)
            reply = await transport.receive(8192, timeout=3.5)

    Attributes:
        is_open: Whether the socket is currently open.
        port_name: Identifier for the transport (e.g. "udp://10.0.0.5:4370").
    """

    @property
    @abstractmethod
    def is_open(self) -> bool:
        """
        Check if the socket is open.

        Returns:
            True if ready for I/O, False otherwise.
        """
        ...

    @property
    @abstractmethod
    def port_name(self) -> str:
        """Transport identifier for logs and reprs."""
        ...

    @abstractmethod
    async def open(
        self,
        timeout: float = ProtocolConstants.DEFAULT_TIMEOUT,
        buffer_size: int = ProtocolConstants.DEFAULT_BUFFER_SIZE,
    ) -> None:
        """
        Create the socket and, for TCP, connect it.

        Args:
            timeout: Bound on the TCP connect and on each send.
            buffer_size: SO_RCVBUF/SO_SNDBUF size in bytes.

        Raises:
            SocketCreateError: If the OS cannot create or configure the socket.
            ConnectionError: If a TCP connection cannot be established in time.
        """
        ...

    @abstractmethod
    async def close(self) -> None:
        """
        Close the socket.

        Safe to call multiple times, and on a transport that never opened.
        """
        ...

    @abstractmethod
    async def send(self, data: bytes) -> None:
        """
        Send one request packet.

        Args:
            data: Header plus payload.

        Raises:
            TransportError: If the transport is not open or the send fails.
            TransportTimeout: If a stream write does not drain in time.
        """
        ...

    @abstractmethod
    async def receive(self, max_bytes: int, timeout: float) -> bytes:
        """
        Receive one reply.

        Args:
            max_bytes: Largest number of bytes to return. Datagrams longer
                than this are truncated, as recvfrom() would.
            timeout: Seconds to wait for data.

        Returns:
            Received bytes (never empty).

        Raises:
            TransportTimeout: If nothing arrives within timeout.
            TransportError: If the transport is not open or the read fails.
        """
        ...

    @abstractmethod
    def discard_buffers(self) -> None:
        """
        Drop any received but unread data.

        Used before each request so a late reply to an earlier command is
        never mistaken for the reply to the next one.
        """
        ...

    async def poll(
        self,
        max_bytes: int,
        attempts: int,
        interval: float,
        timeout: float | None = None,
    ) -> bytes:
        """
        Poll several short receive windows for a reply.

        Terminals are often slow or silent on some commands; a series of
        short windows tolerates jitter better than one long blocking read.

        Args:
            max_bytes: Largest number of bytes to return.
            attempts: Number of receive windows.
            interval: Length of each window in seconds.
            timeout: Optional cap on the total time spent polling.

        Returns:
            The first non-empty read.

        Raises:
            TransportTimeout: If every window expires without data.
        """
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout if timeout is not None else None

        for attempt in range(attempts):
            window = interval
            if deadline is not None:
                window = min(window, deadline - loop.time())
                if window <= 0:
                    break
            try:
                return await self.receive(max_bytes, window)
            except TransportTimeout:
                logger.debug(
                    "%s: no data in receive window %d/%d", self.port_name, attempt + 1, attempts
                )

        raise TransportTimeout(
            f"No reply from {self.port_name} after {attempts} receive window(s)",
            timeout_seconds=attempts * interval if timeout is None else timeout,
        )

    async def __aenter__(self) -> AbstractTransport:
        """Async context manager entry - opens with default settings."""
        await self.open()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        """Async context manager exit - closes the transport."""
        await self.close()
