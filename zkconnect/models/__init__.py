"""
Data models for the ZKTeco client.

This module contains Pydantic models for:

- Device addressing (DeviceEndpoint, TransportKind)
- Client configuration (ClientSettings)
- Decoded data (AttendanceRecord, DeviceInfo, ProbeResult)
"""

from zkconnect.models.records import (
    AttendanceRecord,
    ClientSettings,
    DeviceEndpoint,
    DeviceInfo,
    ProbeResult,
    TransportKind,
)

__all__ = [
    "TransportKind",
    "DeviceEndpoint",
    "ClientSettings",
    "AttendanceRecord",
    "DeviceInfo",
    "ProbeResult",
]
