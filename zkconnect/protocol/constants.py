"""
ZKTeco protocol command codes and constants.

Command codes are little-endian u16 values carried in the first two bytes
of every 8-byte command header, requests and replies alike.
"""

from __future__ import annotations

from enum import Enum, IntEnum, auto
from typing import Final


class CommandCode(IntEnum):
    """
    ZKTeco command and reply codes.

    Grouped by function:
    - 1000-1005: Session and device control
    - 1500-1505: Data transfer and attendance log
    - 2000-2002: Acknowledgments
    - 11, 13, 14: Device info query and legacy attendance commands
    """

    # ===== Session and Device Control =====

    CMD_CONNECT = 1000
    """Open a session; the reply carries the session id."""

    CMD_EXIT = 1001
    """Close the session. No reply is awaited."""

    CMD_ENABLEDEVICE = 1002
    """Re-enable the keypad/sensor after a transfer."""

    CMD_DISABLEDEVICE = 1003
    """Lock the device while data is transferred."""

    CMD_RESTART = 1004
    """Restart the device."""

    CMD_POWEROFF = 1005
    """Power the device off."""

    CMD_DEVICE = 11
    """Device information/option query."""

    # ===== Data Transfer =====

    CMD_PREPARE_DATA = 1500
    """Reply announcing the size of a multi-chunk payload."""

    CMD_DATA = 1501
    """Request the next chunk, or a reply carrying data inline."""

    CMD_ATTLOG = 1503
    """Request the attendance log."""

    CMD_CLEAR_ATTLOG = 1504
    """Erase the attendance log."""

    CMD_GET_TIME = 1505
    """Read the device clock."""

    # ===== Legacy Firmware =====

    OLD_CMD_ATTLOG = 13
    """Attendance log request on older firmware."""

    OLD_CMD_CLEAR_ATTLOG = 14
    """Attendance log erase on older firmware."""

    # ===== Acknowledgments =====

    CMD_ACK_OK = 2000
    """Command accepted."""

    CMD_ACK_ERROR = 2001
    """Command rejected."""

    CMD_ACK_DATA = 2002
    """Command accepted, data follows."""


class AckPolicy(Enum):
    """
    How a missing acknowledgment is interpreted.

    Many terminals never answer enable/disable/clear at all, so silence is
    taken as success unless STRICT is selected.
    """

    OPTIMISTIC_ON_SILENCE = auto()
    """No reply within the ack window counts as success."""

    STRICT = auto()
    """Only an explicit ACK_OK counts as success."""


class ProtocolVariant(Enum):
    """Command table and record layouts used for attendance commands."""

    STANDARD = auto()
    """CMD_ATTLOG/CMD_CLEAR_ATTLOG and the 40-byte record layout only."""

    LEGACY = auto()
    """OLD_CMD_ATTLOG/OLD_CMD_CLEAR_ATTLOG and multi-size record parsing."""

    AUTO = auto()
    """Standard first, legacy when the standard command gets no usable reply."""


class HeaderChecksum(Enum):
    """
    Value placed in the checksum field of outgoing headers.

    Whether terminals validate this field is unverified; the reference
    client always sends zero.
    """

    ZERO = auto()
    """Always send 0."""

    PAYLOAD_SUM = auto()
    """Send calculate_checksum() of the request payload."""


class ProtocolConstants:
    """
    ZKTeco protocol constants.

    Contains framing sizes, timing defaults and record layout values used
    throughout the implementation.
    """

    # ===== Framing =====

    HEADER_SIZE: Final[int] = 8
    """Size of the command header prepended to every packet."""

    SIZE_FIELD_LENGTH: Final[int] = 4
    """Length of the u32 size announcement following a PREPARE_DATA header."""

    USHRT_MAX: Final[int] = 65535
    """Largest value of a header field."""

    CHECKSUM_MODULUS: Final[int] = USHRT_MAX + 1
    """Payload checksums are reduced modulo this value."""

    DEFAULT_PORT: Final[int] = 4370
    """Default UDP/TCP port of ZKTeco terminals."""

    TCP_MAGIC_1: Final[int] = 0x5050
    """First word of the prefix wrapping every packet sent over TCP."""

    TCP_MAGIC_2: Final[int] = 0x7D82
    """Second word of the TCP packet prefix."""

    TCP_PREFIX_SIZE: Final[int] = 8
    """Size of the TCP prefix: both magic words and a u32 packet length."""

    # ===== Timing Constants (in seconds) =====

    DEFAULT_TIMEOUT: Final[float] = 3.5
    """Default receive/send timeout (3 s + 500 ms)."""

    DEVICE_INFO_TIMEOUT: Final[float] = 1.5
    """Shorter timeout used for device information queries."""

    ACK_WINDOW: Final[float] = 0.5
    """How long enable/disable/clear wait for an acknowledgment."""

    RECEIVE_INTERVAL: Final[float] = 0.1
    """Length of one receive window while polling for a reply."""

    RETRY_DELAY: Final[float] = 0.2
    """Delay before resending after a failed send."""

    CONNECT_SEND_RETRIES: Final[int] = 2
    """How many times CMD_CONNECT is sent before giving up."""

    CONNECT_RECEIVE_ATTEMPTS: Final[int] = 3
    """Receive windows polled after each CMD_CONNECT send."""

    LEGACY_MAX_PACKETS: Final[int] = 10
    """Datagrams collected for a legacy attendance transfer."""

    # ===== Buffer Sizes =====

    DEFAULT_BUFFER_SIZE: Final[int] = 8192
    """Socket buffer size and largest single read."""

    # ===== Attendance Record Layout =====

    RECORD_SIZE: Final[int] = 40
    """Size of one attendance record on current firmware."""

    LEGACY_RECORD_SIZES: Final[tuple[int, ...]] = (40, 16, 28, 32)
    """Record sizes tried, in order, by the legacy parser."""

    LEGACY_MIN_RECORD_SIZE: Final[int] = 16
    """Bytes a legacy record needs before it is examined."""

    USER_ID_LENGTH: Final[int] = 9
    """Length of the NUL-padded user id at the start of each record."""

    TIMESTAMP_OFFSET: Final[int] = 24
    """Offset of the little-endian year in a 40-byte record."""

    LEGACY_TIMESTAMP_OFFSET: Final[int] = 10
    """Offset of the little-endian year in a legacy record."""

    STATE_OFFSET: Final[int] = 31
    """Offset of the punch state byte in a 40-byte record."""

    MIN_YEAR: Final[int] = 2000
    """Earliest year accepted in a record timestamp."""

    MAX_YEAR: Final[int] = 2099
    """Latest year accepted in a record timestamp."""

