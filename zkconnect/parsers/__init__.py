"""
Parsers for ZKTeco device data.

The attendance parser decodes fixed-size binary records into
AttendanceRecord models. Record layouts follow the Strategy pattern so
that several firmware generations can be tried against the same buffer.

Example:
    >>> from zkconnect.parsers import parse_attendance_records
    >>> records = parse_attendance_records(payload)
"""

from zkconnect.parsers.attendance_parser import (
    LEGACY_LAYOUT,
    STANDARD_LAYOUT,
    LegacyRecordLayout,
    RecordLayout,
    StandardRecordLayout,
    decode_user_id,
    parse_attendance_records,
    parse_with_fallback,
    scan_records,
)

__all__ = [
    "RecordLayout",
    "StandardRecordLayout",
    "LegacyRecordLayout",
    "STANDARD_LAYOUT",
    "LEGACY_LAYOUT",
    "decode_user_id",
    "scan_records",
    "parse_attendance_records",
    "parse_with_fallback",
]
