"""
16-bit additive payload checksum.

The ZKTeco reference client uses a plain byte sum:
- Sum all payload bytes
- Reduce modulo 65536

This is neither a CRC nor the Internet checksum (16-bit words, one's
complement). Real devices are talked to with exactly this value, so it must
not be "corrected".
"""

from __future__ import annotations

from zkconnect.protocol.constants import ProtocolConstants


def calculate_checksum(payload: bytes | bytearray | memoryview) -> int:
    """
    Calculate the 16-bit additive checksum over a payload.

    Algorithm: Sum all byte values, keep the remainder modulo 65536.

    Args:
        payload: Request payload (the bytes following the 8-byte header).

    Returns:
        Checksum value (0-65535).

    Example:
        >>> calculate_checksum(b"")
        0
        >>> calculate_checksum(bytes([0xFF] * 300))
        10964
    """
    return sum(payload) % ProtocolConstants.CHECKSUM_MODULUS


def validate_checksum(payload: bytes | bytearray | memoryview, checksum: int) -> bool:
    """
    Check a received checksum field against the payload it covers.

    Args:
        payload: Payload bytes.
        checksum: Value read from a header's checksum field.

    Returns:
        True if the values match, False otherwise.
    """
    return calculate_checksum(payload) == checksum
