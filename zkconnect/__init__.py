"""
zkconnect - Python library for polling ZKTeco biometric attendance terminals.

This library provides async communication with ZKTeco terminals over UDP or
TCP, supporting the session handshake, the chunked attendance log transfer,
device control commands, and best-effort device information queries.

Example:
    >>> from zkconnect import DeviceClient
    >>>
    >>> async def main():
    ...     async with DeviceClient("192.168.1.201") as client:
    ...         await client.disable_device()
    ...         try:
    ...             for record in await client.get_attendance():
    ...                 print(record.user_id, record.timestamp_text)
    ...         finally:
    ...             await client.enable_device()
"""

from zkconnect.client import AttendanceTransfer, ClientState, DeviceClient, TransferStatus
from zkconnect.exceptions import (
    ConnectionError,
    FramingError,
    MalformedRecordError,
    ParseError,
    ProtocolError,
    SocketCreateError,
    TransportError,
    TransportTimeout,
    ZKConnectError,
)
from zkconnect.models.records import (
    AttendanceRecord,
    ClientSettings,
    DeviceEndpoint,
    DeviceInfo,
    ProbeResult,
    TransportKind,
)
from zkconnect.protocol.constants import AckPolicy, CommandCode, HeaderChecksum, ProtocolVariant
from zkconnect.service import DeviceService, filter_by_date, poll_devices
from zkconnect.transport import AbstractTransport, AsyncTcpTransport, AsyncUdpTransport

__version__ = "0.1.0"
__all__ = [
    # Client
    "DeviceClient",
    "ClientState",
    "AttendanceTransfer",
    "TransferStatus",
    # Service
    "DeviceService",
    "poll_devices",
    "filter_by_date",
    # Models
    "AttendanceRecord",
    "ClientSettings",
    "DeviceEndpoint",
    "DeviceInfo",
    "ProbeResult",
    "TransportKind",
    # Protocol options
    "AckPolicy",
    "CommandCode",
    "HeaderChecksum",
    "ProtocolVariant",
    # Exceptions
    "ZKConnectError",
    "ProtocolError",
    "FramingError",
    "TransportError",
    "SocketCreateError",
    "TransportTimeout",
    "ConnectionError",
    "ParseError",
    "MalformedRecordError",
    # Transport
    "AbstractTransport",
    "AsyncUdpTransport",
    "AsyncTcpTransport",
    # Version
    "__version__",
]
