"""
Mock transport for testing.

This module provides a fake device that lets the client be tested without
hardware. Replies can be queued ahead of time or generated per request by a
callback, which is how a scripted terminal is modelled in the tests.

Each queued reply is one datagram: receive() returns it whole (truncated to
max_bytes), never merged with the next one.

Example:
    >>> from zkconnect.transport import MockTransport
    >>> from zkconnect.protocol import CommandCode, build_header
    >>>
    >>> mock = MockTransport()
    >>> mock.add_response(build_header(CommandCode.CMD_ACK_OK, 0, 42, 0))
    >>>
    >>> client = DeviceClient("10.0.0.5", transport=mock)
    >>> await client.connect()
"""

from __future__ import annotations

from collections import deque
from typing import Callable

from zkconnect.exceptions import TransportError, TransportTimeout
from zkconnect.protocol.constants import ProtocolConstants
from zkconnect.protocol.header import parse_header
from zkconnect.transport.abc import AbstractTransport

ResponseCallback = Callable[[bytes], "bytes | list[bytes] | None"]


class MockTransport(AbstractTransport):
    """
    Mock transport for testing without hardware.

    Records every packet sent and returns pre-configured replies.

    Attributes:
        written_data: All packets sent, in order.
        sent_commands: Command codes of the packets sent.
        open_count: Number of successful open() calls.

    Example:
        >>> mock = MockTransport()
        >>> mock.add_response(b"\\xd0\\x07\\x00\\x00\\x2a\\x00\\x00\\x00")
        >>> await mock.open()
        >>> await mock.send(b"request")
        >>> await mock.receive(8192, timeout=1.0)
        b'\\xd0\\x07\\x00\\x00*\\x00\\x00\\x00'
    """

    def __init__(
        self,
        port_name: str = "mock://device",
        *,
        fail_open: Exception | None = None,
        fail_send: Exception | None = None,
    ) -> None:
        """
        Initialize the mock transport.

        Args:
            port_name: Identifier for the mock transport.
            fail_open: Exception raised by open(), to simulate socket errors.
            fail_send: Exception raised by every send().
        """
        self._port_name = port_name
        self._is_open = False
        self._responses: deque[bytes] = deque()
        self._written_data: list[bytes] = []
        self._response_callback: ResponseCallback | None = None
        self.fail_open = fail_open
        self.fail_send = fail_send
        self.open_count = 0
        self.close_count = 0
        self.last_timeout: float | None = None
        self.last_buffer_size: int | None = None
        self.receive_sizes: list[int] = []
        self.receive_timeouts: list[float] = []

    @property
    def is_open(self) -> bool:
        """Check if the mock transport is open."""
        return self._is_open

    @property
    def port_name(self) -> str:
        """Get the mock port name."""
        return self._port_name

    @property
    def written_data(self) -> list[bytes]:
        """Get all packets sent to the transport."""
        return self._written_data.copy()

    @property
    def last_written(self) -> bytes | None:
        """Get the most recently sent packet."""
        return self._written_data[-1] if self._written_data else None

    @property
    def sent_commands(self) -> list[int]:
        """Command codes of all packets sent that carry a full header."""
        return [
            parse_header(packet).command
            for packet in self._written_data
            if len(packet) >= ProtocolConstants.HEADER_SIZE
        ]

    @property
    def pending_responses(self) -> int:
        """Number of replies queued but not yet received."""
        return len(self._responses)

    def add_response(self, response: bytes) -> None:
        """
        Queue one reply datagram.

        Replies are returned in FIFO order.
        """
        self._responses.append(response)

    def add_responses(self, *responses: bytes) -> None:
        """Queue several reply datagrams."""
        for response in responses:
            self._responses.append(response)

    def set_response_callback(self, callback: ResponseCallback | None) -> None:
        """
        Generate replies from the packets sent.

        The callback receives each sent packet and returns one reply, a list
        of replies, or None for silence.
        """
        self._response_callback = callback

    def clear(self) -> None:
        """Clear sent packets and pending replies."""
        self._written_data.clear()
        self._responses.clear()

    async def open(
        self,
        timeout: float = ProtocolConstants.DEFAULT_TIMEOUT,
        buffer_size: int = ProtocolConstants.DEFAULT_BUFFER_SIZE,
    ) -> None:
        """Open the mock transport."""
        if self.fail_open is not None:
            raise self.fail_open
        self.last_timeout = timeout
        self.last_buffer_size = buffer_size
        self._is_open = True
        self.open_count += 1

    async def close(self) -> None:
        """Close the mock transport. Safe to call multiple times."""
        if self._is_open:
            self.close_count += 1
        self._is_open = False

    async def send(self, data: bytes) -> None:
        """
        Record a sent packet and trigger the response callback.

        Raises:
            TransportError: If the transport is not open.
        """
        if not self._is_open:
            raise TransportError("Mock transport not open")
        if self.fail_send is not None:
            raise self.fail_send

        self._written_data.append(bytes(data))

        if self._response_callback:
            response = self._response_callback(bytes(data))
            if isinstance(response, list):
                self._responses.extend(response)
            elif response is not None:
                self._responses.append(response)

    async def receive(self, max_bytes: int, timeout: float) -> bytes:
        """
        Return the next queued reply, truncated to max_bytes.

        Raises:
            TransportTimeout: Immediately, if no reply is queued.
            TransportError: If the transport is not open.
        """
        if not self._is_open:
            raise TransportError("Mock transport not open")

        self.receive_sizes.append(max_bytes)
        self.receive_timeouts.append(timeout)

        if not self._responses:
            raise TransportTimeout("No mock response available", timeout_seconds=timeout)
        return self._responses.popleft()[:max_bytes]

    def discard_buffers(self) -> None:
        """Mock replies are generated on demand; nothing is stale."""

    def assert_written(self, expected: bytes, index: int = -1) -> None:
        """
        Assert that a specific packet was sent.

        Raises:
            AssertionError: If the packet doesn't match.
        """
        if not self._written_data:
            raise AssertionError("No data written to mock transport")

        actual = self._written_data[index]
        if actual != expected:
            raise AssertionError(f"Written data mismatch: expected {expected!r}, got {actual!r}")

    def assert_write_count(self, expected: int) -> None:
        """
        Assert number of packets sent.

        Raises:
            AssertionError: If count doesn't match.
        """
        actual = len(self._written_data)
        if actual != expected:
            raise AssertionError(f"Write count mismatch: expected {expected}, got {actual}")


class ScriptedMockTransport(MockTransport):
    """
    Mock transport with a scripted command/reply sequence.

    Each step names the command code expected next (None matches any) and
    the replies to queue for it.

    Example:
        >>> mock = ScriptedMockTransport()
        >>> mock.expect(CommandCode.CMD_CONNECT, connect_reply)
        >>> mock.expect(CommandCode.CMD_EXIT)
    """

    def __init__(self, port_name: str = "mock://scripted") -> None:
        super().__init__(port_name)
        self._script: list[tuple[int | None, tuple[bytes, ...]]] = []
        self._script_index = 0

    def expect(self, command: int | None, *responses: bytes) -> None:
        """
        Add an expected command and its replies.

        Args:
            command: Expected command code (None to match any).
            *responses: Replies queued when the command is sent.
        """
        self._script.append((command, responses))

    @property
    def script_complete(self) -> bool:
        """Whether every scripted step has been consumed."""
        return self._script_index >= len(self._script)

    async def send(self, data: bytes) -> None:
        """Send with script validation."""
        await super().send(data)

        if self._script_index < len(self._script):
            expected_command, responses = self._script[self._script_index]
            actual = parse_header(data).command

            if expected_command is not None and actual != expected_command:
                raise AssertionError(
                    f"Script mismatch at step {self._script_index}: "
                    f"expected command {expected_command}, got {actual}"
                )

            self._responses.extend(responses)
            self._script_index += 1

    def reset_script(self) -> None:
        """Reset script to beginning."""
        self._script_index = 0
        self._responses.clear()
