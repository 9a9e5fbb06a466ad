"""
Protocol layer for ZKTeco communication.

This module contains the low-level protocol handling:
- Command codes and protocol constants
- Payload checksum calculation
- Command header framing
"""

from zkconnect.protocol.checksums import calculate_checksum, validate_checksum
from zkconnect.protocol.constants import (
    AckPolicy,
    CommandCode,
    HeaderChecksum,
    ProtocolConstants,
    ProtocolVariant,
)
from zkconnect.protocol.header import (
    CommandHeader,
    ConnectReply,
    build_header,
    build_packet,
    build_tcp_frame,
    parse_connect_reply,
    parse_header,
    read_size_announcement,
    read_tcp_length,
    response_command,
)

__all__ = [
    # Constants
    "CommandCode",
    "ProtocolConstants",
    "AckPolicy",
    "ProtocolVariant",
    "HeaderChecksum",
    # Checksums
    "calculate_checksum",
    "validate_checksum",
    # Framing
    "CommandHeader",
    "ConnectReply",
    "build_header",
    "build_packet",
    "parse_header",
    "parse_connect_reply",
    "read_size_announcement",
    "build_tcp_frame",
    "read_tcp_length",
    "response_command",
]
