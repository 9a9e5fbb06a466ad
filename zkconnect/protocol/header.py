"""
ZKTeco command header framing.

Every request and every reply starts with the same 8-byte header of four
little-endian u16 fields:

    offset 0  command     request or reply code
    offset 2  checksum    payload checksum (see checksums.py)
    offset 4  session_id  0 until assigned by CMD_CONNECT
    offset 6  reply_id    request/reply correlator

Payload bytes, if any, follow the header directly.

Over TCP each packet is additionally wrapped in an 8-byte prefix: two
magic words and the u32 length of the packet that follows. The stream has
no other packet boundaries.

The reply to CMD_CONNECT is read as its own structure (ConnectReply): the
session id is taken from bytes 4-5 of the reply. That happens to be where
session_id sits in the outgoing header too, but the two layouts are not
assumed to be symmetric.
"""

from __future__ import annotations

import struct
from dataclasses import dataclass
from typing import Final

from zkconnect.exceptions import FramingError
from zkconnect.protocol.constants import CommandCode, ProtocolConstants

_HEADER: Final[struct.Struct] = struct.Struct("<4H")
_SIZE_FIELD: Final[struct.Struct] = struct.Struct("<I")
_SESSION_OFFSET: Final[int] = 4
_TCP_PREFIX: Final[struct.Struct] = struct.Struct("<HHI")


@dataclass(frozen=True)
class CommandHeader:
    """
    A decoded 8-byte command header.

    Attributes:
        command: Command or reply code.
        checksum: Checksum field as sent.
        session_id: Session the packet belongs to.
        reply_id: Reply/sequence correlator.
    """

    command: int
    checksum: int
    session_id: int
    reply_id: int

    @property
    def command_code(self) -> CommandCode | int:
        """Get command as CommandCode enum if recognized, else raw int."""
        try:
            return CommandCode(self.command)
        except ValueError:
            return self.command

    def pack(self) -> bytes:
        """Encode this header back into its 8-byte wire form."""
        return build_header(self.command, self.checksum, self.session_id, self.reply_id)

    def __repr__(self) -> str:
        code = self.command_code
        name = code.name if isinstance(code, CommandCode) else str(code)
        return (
            f"CommandHeader({name}, checksum={self.checksum}, "
            f"session={self.session_id}, reply={self.reply_id})"
        )


@dataclass(frozen=True)
class ConnectReply:
    """
    The device's answer to CMD_CONNECT.

    Attributes:
        command: Reply code (normally CMD_ACK_OK).
        session_id: Session id assigned by the device.
        raw: Reply bytes as received.
    """

    command: int
    session_id: int
    raw: bytes


def build_header(
    command: int,
    checksum: int = 0,
    session_id: int = 0,
    reply_id: int = 0,
) -> bytes:
    """
    Pack a command header.

    Args:
        command: Command code.
        checksum: Checksum field value.
        session_id: Session id (0 before connect).
        reply_id: Reply id.

    Returns:
        8 header bytes.

    Raises:
        FramingError: If a field does not fit in an unsigned 16-bit value.

    Example:
        >>> build_header(CommandCode.CMD_CONNECT).hex()
        'e803000000000000'
    """
    for name, value in (
        ("command", command),
        ("checksum", checksum),
        ("session_id", session_id),
        ("reply_id", reply_id),
    ):
        if not 0 <= value <= ProtocolConstants.USHRT_MAX:
            raise FramingError(f"Header field {name} out of range: {value}")
    return _HEADER.pack(command, checksum, session_id, reply_id)


def parse_header(data: bytes | bytearray | memoryview) -> CommandHeader:
    """
    Unpack the command header at the start of a packet.

    Args:
        data: Packet bytes; only the first 8 are read.

    Returns:
        Decoded CommandHeader.

    Raises:
        FramingError: If fewer than 8 bytes are given.
    """
    if len(data) < ProtocolConstants.HEADER_SIZE:
        raise FramingError("Buffer too short for command header", length=len(data))
    return CommandHeader(*_HEADER.unpack_from(data, 0))


def response_command(data: bytes | bytearray | memoryview) -> int:
    """
    Read the reply code of a packet.

    Raises:
        FramingError: If the packet is shorter than a header.
    """
    return parse_header(data).command


def parse_connect_reply(data: bytes | bytearray | memoryview) -> ConnectReply:
    """
    Decode the reply to CMD_CONNECT.

    The session id is the little-endian u16 at bytes 4-5 of the reply.

    Raises:
        FramingError: If the reply is shorter than 8 bytes.

    Example:
        >>> parse_connect_reply(bytes.fromhex("aaaabbbb2a00cccc")).session_id
        42
    """
    if len(data) < ProtocolConstants.HEADER_SIZE:
        raise FramingError("Connect reply too short", length=len(data))
    command = int.from_bytes(bytes(data[0:2]), "little")
    session_id = int.from_bytes(bytes(data[_SESSION_OFFSET:_SESSION_OFFSET + 2]), "little")
    return ConnectReply(command=command, session_id=session_id, raw=bytes(data))


def read_size_announcement(data: bytes | bytearray | memoryview) -> int:
    """
    Read the total payload size announced by a CMD_PREPARE_DATA reply.

    The size is the little-endian u32 directly after the header.

    Raises:
        FramingError: If the reply ends before the size field.
    """
    end = ProtocolConstants.HEADER_SIZE + ProtocolConstants.SIZE_FIELD_LENGTH
    if len(data) < end:
        raise FramingError("PREPARE_DATA reply too short for size field", length=len(data))
    return _SIZE_FIELD.unpack_from(data, ProtocolConstants.HEADER_SIZE)[0]


def build_packet(
    command: int,
    payload: bytes = b"",
    *,
    checksum: int = 0,
    session_id: int = 0,
    reply_id: int = 0,
) -> bytes:
    """Build a header and append the payload."""
    return build_header(command, checksum, session_id, reply_id) + payload


def build_tcp_frame(packet: bytes) -> bytes:
    """Wrap a packet in the TCP prefix."""
    prefix = _TCP_PREFIX.pack(
        ProtocolConstants.TCP_MAGIC_1, ProtocolConstants.TCP_MAGIC_2, len(packet)
    )
    return prefix + packet


def read_tcp_length(prefix: bytes | bytearray | memoryview) -> int:
    """
    Read the packet length from a TCP prefix.

    Raises:
        FramingError: If the prefix is short or its magic words are wrong.
            The stream cannot be resynchronized after that.

    Example:
        >>> read_tcp_length(bytes.fromhex("5050827d10000000"))
        16
    """
    if len(prefix) < ProtocolConstants.TCP_PREFIX_SIZE:
        raise FramingError("TCP prefix too short", length=len(prefix))
    magic_1, magic_2, length = _TCP_PREFIX.unpack_from(prefix, 0)
    if (magic_1, magic_2) != (ProtocolConstants.TCP_MAGIC_1, ProtocolConstants.TCP_MAGIC_2):
        raise FramingError(
            f"Bad TCP prefix magic {magic_1:#06x} {magic_2:#06x}", length=len(prefix)
        )
    return length
