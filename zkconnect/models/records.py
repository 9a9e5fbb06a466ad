"""
Pydantic models for the ZKTeco client.

Design principles:
- All models are frozen (immutable)
- Field constraints mirror wire limits (ports, u8 state codes)
- AttendanceRecord is a value object with no reference to the connection
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator

from zkconnect.protocol.constants import (
    AckPolicy,
    HeaderChecksum,
    ProtocolConstants,
    ProtocolVariant,
)

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


class TransportKind(str, Enum):
    """Socket type used to reach the device."""

    UDP = "UDP"
    TCP = "TCP"


class DeviceEndpoint(BaseModel):
    """
    Network address of a terminal.

    Example:
        >>> endpoint = DeviceEndpoint(host="192.168.1.201")
        >>> str(endpoint)
        'udp://192.168.1.201:4370'
    """

    model_config = ConfigDict(frozen=True)

    host: str = Field(min_length=1, description="IP address or hostname")
    port: int = Field(default=ProtocolConstants.DEFAULT_PORT, ge=1, le=65535)
    kind: TransportKind = TransportKind.UDP

    @field_validator("host")
    @classmethod
    def strip_host(cls, v: str) -> str:
        """Reject whitespace-only hosts."""
        v = v.strip()
        if not v:
            raise ValueError("Host must not be empty")
        return v

    @property
    def address(self) -> tuple[str, int]:
        """(host, port) tuple for socket calls."""
        return (self.host, self.port)

    def __str__(self) -> str:
        return f"{self.kind.value.lower()}://{self.host}:{self.port}"


class ClientSettings(BaseModel):
    """
    Per-client configuration.

    Settings are immutable; DeviceClient.set_timeout() and set_buffer_size()
    swap in a modified copy that takes effect on the next connect().
    """

    model_config = ConfigDict(frozen=True)

    timeout: float = Field(default=ProtocolConstants.DEFAULT_TIMEOUT, gt=0)
    """Overall receive/send window in seconds."""

    buffer_size: int = Field(default=ProtocolConstants.DEFAULT_BUFFER_SIZE, ge=16)
    """Socket buffer size and largest single read in bytes."""

    device_info_timeout: float = Field(default=ProtocolConstants.DEVICE_INFO_TIMEOUT, gt=0)
    ack_window: float = Field(default=ProtocolConstants.ACK_WINDOW, gt=0)
    connect_send_retries: int = Field(default=ProtocolConstants.CONNECT_SEND_RETRIES, ge=1)
    connect_receive_attempts: int = Field(
        default=ProtocolConstants.CONNECT_RECEIVE_ATTEMPTS, ge=1
    )
    receive_interval: float = Field(default=ProtocolConstants.RECEIVE_INTERVAL, gt=0)
    retry_delay: float = Field(default=ProtocolConstants.RETRY_DELAY, ge=0)
    legacy_max_packets: int = Field(default=ProtocolConstants.LEGACY_MAX_PACKETS, ge=1)

    ack_policy: AckPolicy = AckPolicy.OPTIMISTIC_ON_SILENCE
    variant: ProtocolVariant = ProtocolVariant.AUTO
    header_checksum: HeaderChecksum = HeaderChecksum.ZERO
    increment_reply_id: bool = False

    def replace(self, **changes) -> ClientSettings:
        """Return a validated copy with changes applied."""
        # model_copy(update=...) skips validation
        return type(self).model_validate({**self.model_dump(), **changes})

    def with_timeout(self, seconds: int | float, microseconds: int = 0) -> ClientSettings:
        """Return a copy with timeout = seconds + microseconds / 1e6."""
        return self.replace(timeout=seconds + microseconds / 1_000_000)


class AttendanceRecord(BaseModel):
    """
    A single punch decoded from the device log.

    Attributes:
        user_id: Device user id (NUL padding removed).
        timestamp: Punch time on the device's local clock (naive).
        state: Vendor-specific punch state/type code, stored verbatim.

    Example:
        >>> record = AttendanceRecord(
        ...     user_id="007", timestamp=datetime(2024, 6, 1, 8), state=0
        ... )
        >>> record.timestamp_text
        '2024-06-01 08:00:00'
    """

    model_config = ConfigDict(frozen=True)

    user_id: str = Field(min_length=1)
    timestamp: datetime
    state: int = Field(default=0, ge=0, le=255)

    @property
    def timestamp_text(self) -> str:
        """Timestamp formatted as YYYY-MM-DD HH:MM:SS."""
        return self.timestamp.strftime(TIMESTAMP_FORMAT)

    def dedup_key(self, device_id: str | int) -> tuple[str, str, datetime]:
        """Key for de-duplicating punches persisted from several polls."""
        return (str(device_id), self.user_id, self.timestamp)

    def __repr__(self) -> str:
        return (
            f"AttendanceRecord(user_id={self.user_id!r}, "
            f"timestamp={self.timestamp_text!r}, state={self.state})"
        )


class DeviceInfo(BaseModel):
    """
    Best-effort device identification.

    Many firmwares answer info queries with placeholder data or not at all;
    none of these fields should be treated as an authoritative identifier.
    """

    model_config = ConfigDict(frozen=True)

    device_name: str | None = None
    serial_number: str | None = None
    platform: str | None = None
    firmware_version: str | None = None
    mac_address: str | None = None
    host: str
    port: int
    connected: bool = False


class ProbeResult(BaseModel):
    """Outcome of a bare socket reachability check."""

    model_config = ConfigDict(frozen=True)

    success: bool
    message: str
