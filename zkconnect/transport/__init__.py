"""
Transport layer for ZKTeco communication.

Available transports:
- AsyncUdpTransport: UDP datagrams (the terminals' default)
- AsyncTcpTransport: TCP stream on the same port
- MockTransport: Mock transport for testing without hardware

Example:
    >>> from zkconnect.models import DeviceEndpoint
    >>> from zkconnect.transport import create_transport
    >>> transport = create_transport(DeviceEndpoint(host="192.168.1.201"))
"""

from zkconnect.models.records import DeviceEndpoint, TransportKind
from zkconnect.transport.abc import AbstractTransport
from zkconnect.transport.mock import MockTransport, ScriptedMockTransport
from zkconnect.transport.tcp import AsyncTcpTransport
from zkconnect.transport.udp import AsyncUdpTransport


def create_transport(endpoint: DeviceEndpoint) -> AbstractTransport:
    """Create the transport matching endpoint.kind."""
    if endpoint.kind == TransportKind.TCP:
        return AsyncTcpTransport(endpoint)
    return AsyncUdpTransport(endpoint)


__all__ = [
    "AbstractTransport",
    "AsyncUdpTransport",
    "AsyncTcpTransport",
    "MockTransport",
    "ScriptedMockTransport",
    "create_transport",
]
