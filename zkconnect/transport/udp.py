"""
Async UDP transport using an asyncio datagram endpoint.

UDP is the default transport of ZKTeco terminals. Each request is one
datagram and each reply (or reply chunk) is one datagram. The endpoint is
connected to the device address, so datagrams from other peers are dropped
by the kernel.

Received datagrams are queued by the protocol object; receive() takes the
next one from the queue with a bounded wait.

Example:
    >>> transport = AsyncUdpTransport(DeviceEndpoint(host="192.168.1.201"))
    >>> await transport.open(timeout=3.5, buffer_size=8192)
    >>> try:
    ...     await transport.send(packet)
    ...     reply = await transport.receive(8192, timeout=3.5)
    ... finally:
    ...     await transport.close()
"""

from __future__ import annotations

import asyncio
import logging
import socket

from zkconnect.exceptions import SocketCreateError, TransportError, TransportTimeout
from zkconnect.models.records import DeviceEndpoint
from zkconnect.protocol.constants import ProtocolConstants
from zkconnect.transport.abc import AbstractTransport

logger = logging.getLogger(__name__)


class _DatagramQueueProtocol(asyncio.DatagramProtocol):
    """Queues incoming datagrams and socket errors for AsyncUdpTransport."""

    def __init__(self, queue: asyncio.Queue[bytes | Exception]) -> None:
        self._queue = queue

    def datagram_received(self, data: bytes, addr) -> None:
        self._queue.put_nowait(data)

    def error_received(self, exc: Exception) -> None:
        # ICMP port unreachable and friends surface here
        self._queue.put_nowait(exc)

    def connection_lost(self, exc: Exception | None) -> None:
        if exc is not None:
            self._queue.put_nowait(exc)


class AsyncUdpTransport(AbstractTransport):
    """
    UDP transport for ZKTeco terminals.

    Attributes:
        endpoint: Device address.
        is_open: Whether the datagram endpoint is open.
    """

    def __init__(self, endpoint: DeviceEndpoint) -> None:
        """
        Initialize the UDP transport.

        Args:
            endpoint: Device address; its kind is not checked.
        """
        self._endpoint = endpoint
        self._transport: asyncio.DatagramTransport | None = None
        self._queue: asyncio.Queue[bytes | Exception] = asyncio.Queue()

    @property
    def endpoint(self) -> DeviceEndpoint:
        """Get the device address."""
        return self._endpoint

    @property
    def is_open(self) -> bool:
        """Check if the datagram endpoint is open."""
        return self._transport is not None and not self._transport.is_closing()

    @property
    def port_name(self) -> str:
        """Get the transport identifier."""
        return f"udp://{self._endpoint.host}:{self._endpoint.port}"

    async def open(
        self,
        timeout: float = ProtocolConstants.DEFAULT_TIMEOUT,
        buffer_size: int = ProtocolConstants.DEFAULT_BUFFER_SIZE,
    ) -> None:
        """
        Create the datagram endpoint connected to the device.

        Raises:
            SocketCreateError: If the socket cannot be created or configured.
        """
        if self.is_open:
            return

        self._queue = asyncio.Queue()
        loop = asyncio.get_running_loop()
        try:
            transport, _ = await asyncio.wait_for(
                loop.create_datagram_endpoint(
                    lambda: _DatagramQueueProtocol(self._queue),
                    remote_addr=self._endpoint.address,
                ),
                timeout=timeout,
            )
        except asyncio.TimeoutError:
            raise SocketCreateError(
                f"Timed out creating UDP socket for {self.port_name}"
            ) from None
        except OSError as e:
            raise SocketCreateError(f"Unable to create UDP socket for {self.port_name}: {e}") from e

        self._transport = transport
        try:
            sock = transport.get_extra_info("socket")
            if sock is not None:
                sock.setsockopt(socket.SOL_SOCKET, socket.SO_RCVBUF, buffer_size)
                sock.setsockopt(socket.SOL_SOCKET, socket.SO_SNDBUF, buffer_size)
        except OSError as e:
            await self.close()
            raise SocketCreateError(f"Unable to configure UDP socket: {e}") from e

        logger.debug("Opened %s (buffer %d bytes)", self.port_name, buffer_size)

    async def close(self) -> None:
        """Close the datagram endpoint. Safe to call multiple times."""
        if self._transport is not None:
            self._transport.close()
            logger.debug("Closed %s", self.port_name)
        self._transport = None
        self.discard_buffers()

    async def send(self, data: bytes) -> None:
        """
        Send one datagram.

        Raises:
            TransportError: If the endpoint is not open or the send fails.
        """
        if not self.is_open:
            raise TransportError(f"{self.port_name} is not open")

        try:
            self._transport.sendto(data)
        except OSError as e:
            raise TransportError(f"Send to {self.port_name} failed: {e}") from e

    async def receive(self, max_bytes: int, timeout: float) -> bytes:
        """
        Receive the next datagram, truncated to max_bytes.

        Raises:
            TransportTimeout: If no datagram arrives within timeout.
            TransportError: If the endpoint is closed or reported an error.
        """
        if not self.is_open:
            raise TransportError(f"{self.port_name} is not open")

        try:
            item = await asyncio.wait_for(self._queue.get(), timeout=timeout)
        except asyncio.TimeoutError:
            raise TransportTimeout(
                f"No datagram from {self.port_name}",
                timeout_seconds=timeout,
            ) from None

        if isinstance(item, Exception):
            raise TransportError(f"Receive from {self.port_name} failed: {item}") from item

        if len(item) > max_bytes:
            logger.debug(
                "Truncating %d-byte datagram to %d bytes", len(item), max_bytes
            )
            item = item[:max_bytes]
        return item

    def discard_buffers(self) -> None:
        """Drop datagrams received but not yet read."""
        dropped = 0
        while not self._queue.empty():
            self._queue.get_nowait()
            dropped += 1
        if dropped:
            logger.debug("Discarded %d stale datagram(s) from %s", dropped, self.port_name)

    def __repr__(self) -> str:
        status = "open" if self.is_open else "closed"
        return f"AsyncUdpTransport({self._endpoint.host!r}, port={self._endpoint.port}, {status})"
