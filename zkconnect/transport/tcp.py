"""
Async TCP transport using asyncio streams.

Some terminals (and most networks that filter UDP) are reached over TCP on
the same port. A stream has no packet boundaries, so every packet travels
inside the TCP prefix (see protocol/header.py). A reader task splits the
stream back into whole packets and queues them; receive() takes the next
packet from the queue, which gives TCP the same one-reply-per-receive
behaviour as UDP however the device's segments are split.

The connect is bounded by the configured timeout so an unreachable host
fails fast instead of hanging on the OS connect timeout.
"""

from __future__ import annotations

import asyncio
import errno
import logging
import socket

from zkconnect.exceptions import (
    ConnectionError,
    FramingError,
    SocketCreateError,
    TransportError,
    TransportTimeout,
)
from zkconnect.models.records import DeviceEndpoint
from zkconnect.protocol.constants import ProtocolConstants
from zkconnect.protocol.header import build_tcp_frame, read_tcp_length
from zkconnect.transport.abc import AbstractTransport

logger = logging.getLogger(__name__)

# Failures to allocate the socket itself, as opposed to reaching the device
_SOCKET_CREATE_ERRNOS = frozenset({
    errno.EMFILE,
    errno.ENFILE,
    errno.ENOBUFS,
    errno.ENOMEM,
    errno.EACCES,
    errno.EAFNOSUPPORT,
})


class AsyncTcpTransport(AbstractTransport):
    """
    TCP transport for ZKTeco terminals.

    Once the device closes the stream, or the stream loses its framing, the
    transport reports itself closed. Packets that arrived before that can
    still be received.

    Attributes:
        endpoint: Device address.
        is_open: Whether the stream is connected and usable.
    """

    def __init__(self, endpoint: DeviceEndpoint) -> None:
        """
        Initialize the TCP transport.

        Args:
            endpoint: Device address; its kind is not checked.
        """
        self._endpoint = endpoint
        self._reader: asyncio.StreamReader | None = None
        self._writer: asyncio.StreamWriter | None = None
        self._reader_task: asyncio.Task[None] | None = None
        self._packets: asyncio.Queue[bytes | TransportError] = asyncio.Queue()
        self._failure: TransportError | None = None
        self._send_timeout = ProtocolConstants.DEFAULT_TIMEOUT

    @property
    def endpoint(self) -> DeviceEndpoint:
        """Get the device address."""
        return self._endpoint

    @property
    def is_open(self) -> bool:
        """Check if the stream is connected and usable."""
        return (
            self._writer is not None
            and not self._writer.is_closing()
            and self._failure is None
        )

    @property
    def port_name(self) -> str:
        """Get the transport identifier."""
        return f"tcp://{self._endpoint.host}:{self._endpoint.port}"

    async def open(
        self,
        timeout: float = ProtocolConstants.DEFAULT_TIMEOUT,
        buffer_size: int = ProtocolConstants.DEFAULT_BUFFER_SIZE,
    ) -> None:
        """
        Connect to the device within timeout.

        Raises:
            SocketCreateError: If the socket cannot be created or configured.
            ConnectionError: If the device refuses or does not answer in time.
        """
        if self.is_open:
            return

        await self.close()
        self._send_timeout = timeout
        try:
            self._reader, self._writer = await asyncio.wait_for(
                asyncio.open_connection(*self._endpoint.address),
                timeout=timeout,
            )
        except asyncio.TimeoutError:
            raise ConnectionError(
                f"TCP connect to {self.port_name} timed out after {timeout:.2f}s"
            ) from None
        except OSError as e:
            if e.errno in _SOCKET_CREATE_ERRNOS:
                raise SocketCreateError(
                    f"Unable to open TCP socket for {self.port_name}: {e}"
                ) from e
            raise ConnectionError(f"TCP connect to {self.port_name} failed: {e}") from e

        try:
            sock = self._writer.get_extra_info("socket")
            if sock is not None:
                sock.setsockopt(socket.SOL_SOCKET, socket.SO_RCVBUF, buffer_size)
                sock.setsockopt(socket.SOL_SOCKET, socket.SO_SNDBUF, buffer_size)
        except OSError as e:
            await self.close()
            raise SocketCreateError(f"Unable to configure TCP socket: {e}") from e

        self._reader_task = asyncio.create_task(self._read_packets(self._reader))
        logger.debug("Connected %s (buffer %d bytes)", self.port_name, buffer_size)

    async def close(self) -> None:
        """
        Close the stream.

        Safe to call multiple times. Errors while closing are logged and
        dropped; the socket is released either way.
        """
        task, self._reader_task = self._reader_task, None
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

        if self._writer is not None:
            try:
                self._writer.close()
                await self._writer.wait_closed()
            except (OSError, asyncio.TimeoutError) as e:
                logger.debug("Error closing %s: %s", self.port_name, e)

        self._reader = None
        self._writer = None
        self._failure = None
        self._packets = asyncio.Queue()

    async def send(self, data: bytes) -> None:
        """
        Write one packet, wrapped in the TCP prefix, and wait for it to drain.

        A failed write ends the stream.

        Raises:
            TransportError: If the stream is not open or the write fails.
            TransportTimeout: If the write does not drain in time.
        """
        if not self.is_open:
            raise TransportError(self._closed_reason())

        try:
            self._writer.write(build_tcp_frame(data))
            await asyncio.wait_for(self._writer.drain(), timeout=self._send_timeout)
        except asyncio.TimeoutError:
            raise TransportTimeout(
                f"Send to {self.port_name} did not drain",
                timeout_seconds=self._send_timeout,
            ) from None
        except OSError as e:
            self._fail(TransportError(f"Send to {self.port_name} failed: {e}"))
            self._writer.close()
            raise TransportError(f"Send to {self.port_name} failed: {e}") from e

    async def receive(self, max_bytes: int, timeout: float) -> bytes:
        """
        Receive the next whole packet, truncated to max_bytes.

        Raises:
            TransportTimeout: If no packet arrives within timeout.
            TransportError: If the stream is closed, or was closed by the
                device and every packet before that has been received.
        """
        if self._writer is None:
            raise TransportError(f"{self.port_name} is not open")
        if self._failure is not None and self._packets.empty():
            raise TransportError(str(self._failure))

        try:
            item = await asyncio.wait_for(self._packets.get(), timeout=timeout)
        except asyncio.TimeoutError:
            raise TransportTimeout(
                f"No data from {self.port_name}",
                timeout_seconds=timeout,
            ) from None

        if isinstance(item, TransportError):
            raise TransportError(str(item)) from item

        if len(item) > max_bytes:
            logger.debug("Truncating %d-byte packet to %d bytes", len(item), max_bytes)
            item = item[:max_bytes]
        return item

    def discard_buffers(self) -> None:
        """Drop whole packets received but not yet read."""
        dropped = 0
        while not self._packets.empty():
            if isinstance(self._packets.get_nowait(), bytes):
                dropped += 1
        if dropped:
            logger.debug("Discarded %d stale packet(s) from %s", dropped, self.port_name)

    async def _read_packets(self, reader: asyncio.StreamReader) -> None:
        """Split the stream into packets until it ends or loses framing."""
        try:
            while True:
                prefix = await reader.readexactly(ProtocolConstants.TCP_PREFIX_SIZE)
                length = read_tcp_length(prefix)
                self._packets.put_nowait(await reader.readexactly(length))
        except asyncio.IncompleteReadError as e:
            if e.partial:
                self._fail(TransportError(
                    f"{self.port_name} closed by device mid-packet "
                    f"({len(e.partial)} of {e.expected} bytes)"
                ))
            else:
                self._fail(TransportError(f"{self.port_name} closed by device"))
        except FramingError as e:
            self._fail(TransportError(f"Lost packet framing on {self.port_name}: {e}"))
        except OSError as e:
            self._fail(TransportError(f"Receive from {self.port_name} failed: {e}"))

    def _fail(self, error: TransportError) -> None:
        """Mark the stream unusable and wake a pending receive."""
        if self._failure is not None:
            return
        logger.debug("%s", error)
        self._failure = error
        self._packets.put_nowait(error)

    def _closed_reason(self) -> str:
        if self._failure is not None:
            return str(self._failure)
        return f"{self.port_name} is not open"

    def __repr__(self) -> str:
        status = "open" if self.is_open else "closed"
        return f"AsyncTcpTransport({self._endpoint.host!r}, port={self._endpoint.port}, {status})"
