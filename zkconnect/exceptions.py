"""
Exception hierarchy for zkconnect.

All exceptions inherit from ZKConnectError. The split follows where a
failure happens:

1. Framing/protocol errors (short buffers, unexpected reply codes) are
   distinct from transport errors (sockets, timeouts)
2. Connection errors cover the session lifecycle (cannot reach the device,
   command issued while disconnected)
3. Parse errors carry the offset and raw bytes of the offending record
"""

from __future__ import annotations


class ZKConnectError(Exception):
    """
    Base exception for all zkconnect errors.

    Callers can catch every library error with a single except clause.
    """

    pass


class ProtocolError(ZKConnectError):
    """
    Protocol-level error.

    Raised when a reply violates the protocol, such as:
    - Unexpected command code for the request that was sent
    - A size announcement that cannot be read
    """

    def __init__(
        self,
        message: str,
        *,
        command: int | None = None,
    ) -> None:
        super().__init__(message)
        self.command = command

    def __str__(self) -> str:
        base = super().__str__()
        if self.command is not None:
            return f"{base} (command={self.command})"
        return base


class FramingError(ProtocolError):
    """
    Header framing error.

    Raised when a buffer is too short to hold an 8-byte command header or
    a header field does not fit in 16 bits, and for a TCP prefix with the
    wrong magic words. Buffers are never zero-filled.
    """

    def __init__(self, message: str, *, length: int | None = None) -> None:
        super().__init__(message)
        self.length = length

    def __str__(self) -> str:
        base = ZKConnectError.__str__(self)
        if self.length is not None:
            return f"{base} (got {self.length} bytes)"
        return base


class TransportError(ZKConnectError):
    """
    Transport-level error.

    Raised for socket I/O failures and for I/O on a closed transport.
    """

    pass


class SocketCreateError(TransportError):
    """
    The operating system refused to create or configure the socket.

    Fatal for the current connect() attempt.
    """

    pass


class TransportTimeout(TransportError):
    """
    A send or receive did not complete within its window.

    Recoverable: the caller may retry the whole operation.
    """

    def __init__(
        self,
        message: str = "Transport timeout",
        *,
        timeout_seconds: float | None = None,
    ) -> None:
        super().__init__(message)
        self.timeout_seconds = timeout_seconds

    def __str__(self) -> str:
        base = super().__str__()
        if self.timeout_seconds is not None:
            return f"{base} (after {self.timeout_seconds:.2f}s)"
        return base


class ConnectionError(ZKConnectError):  # noqa: A001 - intentionally shadows builtin
    """
    Device connection error.

    Raised when:
    - The device cannot be reached (TCP connect refused or timed out)
    - A command is issued while the client is not connected
    - connect() is called in a state other than DISCONNECTED
    """

    pass


class ParseError(ZKConnectError):
    """
    Record parsing error.

    Carries the byte offset of the record and its raw bytes for logging.
    """

    def __init__(
        self,
        message: str,
        *,
        offset: int | None = None,
        raw_data: bytes | None = None,
    ) -> None:
        super().__init__(message)
        self.offset = offset
        self.raw_data = raw_data

    def __str__(self) -> str:
        parts = [super().__str__()]
        if self.offset is not None:
            parts.append(f"offset={self.offset}")
        if self.raw_data:
            display = self.raw_data[:20].hex()
            if len(self.raw_data) > 20:
                display += "..."
            parts.append(f"data={display}")
        return " ".join(parts)


class MalformedRecordError(ParseError):
    """
    A single attendance record failed id or timestamp validation.

    The record parser catches this, logs it and keeps scanning; it never
    aborts a batch.
    """

    pass
