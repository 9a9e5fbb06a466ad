"""
Attendance record parser.

The attendance log arrives as a flat byte buffer of fixed-size records with
no resynchronization marker. Current firmware uses 40-byte records:

    [0:9]    user id, ASCII, NUL padded (NULs may appear anywhere)
    [24:26]  year, little-endian u16
    [26]     month
    [27]     day
    [28]     hour
    [29]     minute
    [30]     second
    [31]     punch state/type code
    rest     reserved

Older firmware uses shorter records with the timestamp at offset 10 and no
state byte. The layouts are modelled as RecordLayout strategies; the
fallback scan tries the legacy layout at several record sizes when the
standard layout finds nothing.

A record that fails validation is skipped and logged. One garbled record
never costs the rest of the batch.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from datetime import datetime

from zkconnect.exceptions import MalformedRecordError
from zkconnect.models.records import AttendanceRecord
from zkconnect.protocol.constants import ProtocolConstants

logger = logging.getLogger(__name__)


def decode_user_id(region: bytes) -> str:
    """
    Build a user id from a NUL-padded region.

    Zero bytes are dropped wherever they occur (they are padding, not a
    terminator), then surrounding whitespace is stripped.

    Example:
        >>> decode_user_id(b"A\\x00\\x00B\\x00\\x00\\x00\\x00\\x00")
        'AB'
    """
    return bytes(b for b in region if b != 0).decode("ascii", errors="replace").strip()


class RecordLayout(ABC):
    """
    Strategy for decoding one attendance record.

    Implementations raise MalformedRecordError for records that must be
    skipped.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Short layout name for logging."""
        ...

    @property
    @abstractmethod
    def min_size(self) -> int:
        """Bytes that must be available before a record is decoded."""
        ...

    @abstractmethod
    def decode(self, record: bytes, offset: int) -> AttendanceRecord:
        """
        Decode a single record.

        Args:
            record: Record bytes (at least min_size long).
            offset: Offset of the record in the buffer, for error context.

        Returns:
            Decoded AttendanceRecord.

        Raises:
            MalformedRecordError: If the id or timestamp is invalid.
        """
        ...

    def _user_id(self, record: bytes, offset: int) -> str:
        user_id = decode_user_id(record[:ProtocolConstants.USER_ID_LENGTH])
        if not user_id:
            raise MalformedRecordError("Empty user id", offset=offset, raw_data=record)
        return user_id

    @staticmethod
    def _timestamp(
        record: bytes,
        at: int,
        offset: int,
        *,
        strict_time: bool = False,
    ) -> datetime:
        year = record[at] | (record[at + 1] << 8)
        month = record[at + 2]
        day = record[at + 3]
        hour = record[at + 4]
        minute = record[at + 5]
        second = record[at + 6] if at + 6 < len(record) else 0

        if not ProtocolConstants.MIN_YEAR <= year <= ProtocolConstants.MAX_YEAR:
            raise MalformedRecordError(f"Year out of range: {year}", offset=offset, raw_data=record)
        if not 1 <= month <= 12:
            raise MalformedRecordError(f"Month out of range: {month}", offset=offset, raw_data=record)
        if not 1 <= day <= 31:
            raise MalformedRecordError(f"Day out of range: {day}", offset=offset, raw_data=record)
        if strict_time and (hour > 23 or minute > 59):
            raise MalformedRecordError(
                f"Time out of range: {hour}:{minute}", offset=offset, raw_data=record
            )

        try:
            return datetime(year, month, day, hour, minute, second)
        except ValueError as e:
            # e.g. Feb 30, or hour 25 in the standard layout
            raise MalformedRecordError(str(e), offset=offset, raw_data=record) from e


class StandardRecordLayout(RecordLayout):
    """The 40-byte layout used by current firmware."""

    name = "standard"
    min_size = ProtocolConstants.RECORD_SIZE

    def decode(self, record: bytes, offset: int) -> AttendanceRecord:
        user_id = self._user_id(record, offset)
        timestamp = self._timestamp(record, ProtocolConstants.TIMESTAMP_OFFSET, offset)
        return AttendanceRecord(
            user_id=user_id,
            timestamp=timestamp,
            state=record[ProtocolConstants.STATE_OFFSET],
        )


class LegacyRecordLayout(RecordLayout):
    """
    Layout of older firmware: id at 0, timestamp at offset 10, no state.

    Hour and minute are range-checked explicitly because the layout is a
    guess applied at several strides, and the second is optional.
    """

    name = "legacy"
    min_size = ProtocolConstants.LEGACY_MIN_RECORD_SIZE

    def decode(self, record: bytes, offset: int) -> AttendanceRecord:
        user_id = self._user_id(record, offset)
        timestamp = self._timestamp(
            record,
            ProtocolConstants.LEGACY_TIMESTAMP_OFFSET,
            offset,
            strict_time=True,
        )
        return AttendanceRecord(user_id=user_id, timestamp=timestamp, state=0)


STANDARD_LAYOUT = StandardRecordLayout()
LEGACY_LAYOUT = LegacyRecordLayout()


def scan_records(
    buffer: bytes,
    record_size: int,
    layout: RecordLayout,
) -> list[AttendanceRecord]:
    """
    Walk a buffer at a fixed stride and decode every record.

    Trailing bytes shorter than layout.min_size are ignored. For the
    standard layout min_size equals the stride, so a partial tail record is
    discarded.
    """
    records: list[AttendanceRecord] = []
    skipped = 0

    for offset in range(0, len(buffer), record_size):
        record = buffer[offset:offset + record_size]
        if len(record) < layout.min_size:
            logger.debug(
                "Discarding %d trailing bytes at offset %d", len(record), offset
            )
            break
        try:
            records.append(layout.decode(record, offset))
        except MalformedRecordError as e:
            skipped += 1
            logger.debug("Skipping %s record: %s", layout.name, e)

    if skipped:
        logger.info(
            "Skipped %d malformed %s record(s) of size %d",
            skipped,
            layout.name,
            record_size,
        )
    return records


def _clip(buffer: bytes | bytearray | memoryview, declared_size: int | None) -> bytes:
    data = bytes(buffer)
    if declared_size is None:
        return data
    if len(data) > declared_size:
        logger.debug("Buffer has %d bytes beyond declared size", len(data) - declared_size)
        return data[:declared_size]
    if len(data) < declared_size:
        logger.warning(
            "Attendance data truncated: %d of %d declared bytes", len(data), declared_size
        )
    return data


def parse_attendance_records(
    buffer: bytes | bytearray | memoryview,
    declared_size: int | None = None,
) -> list[AttendanceRecord]:
    """
    Parse a buffer of 40-byte attendance records.

    Args:
        buffer: Concatenated record bytes (chunk headers already stripped).
        declared_size: Size announced by the device; bytes beyond it are
            ignored.

    Returns:
        Valid records in buffer order. Malformed records are skipped.

    Example:
        >>> parse_attendance_records(b"")
        []
    """
    data = _clip(buffer, declared_size)
    return scan_records(data, ProtocolConstants.RECORD_SIZE, STANDARD_LAYOUT)


def parse_with_fallback(
    buffer: bytes | bytearray | memoryview,
    declared_size: int | None = None,
) -> list[AttendanceRecord]:
    """
    Parse with the standard layout, falling back to legacy layouts.

    When the standard 40-byte parse yields nothing, the legacy layout is
    tried at record sizes 40, 16, 28 and 32 in that order; the first size
    producing at least one record wins.

    Returns:
        Parsed records, or an empty list if no layout matched.
    """
    data = _clip(buffer, declared_size)
    records = scan_records(data, ProtocolConstants.RECORD_SIZE, STANDARD_LAYOUT)
    if records:
        return records

    for record_size in ProtocolConstants.LEGACY_RECORD_SIZES:
        records = scan_records(data, record_size, LEGACY_LAYOUT)
        if records:
            logger.info(
                "Parsed %d record(s) with legacy layout, record size %d",
                len(records),
                record_size,
            )
            return records

    return []
