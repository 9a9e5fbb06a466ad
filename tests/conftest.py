"""Shared helpers: packet builders and a fake terminal for MockTransport."""

from __future__ import annotations

import struct
from collections import deque

import pytest

from zkconnect.protocol.constants import CommandCode
from zkconnect.protocol.header import build_header, parse_header


def reply(command: int, payload: bytes = b"", session_id: int = 0, reply_id: int = 0) -> bytes:
    """Build a device reply packet."""
    return build_header(command, 0, session_id, reply_id) + payload


def make_record(
    user_id: bytes = b"007",
    year: int = 2024,
    month: int = 6,
    day: int = 1,
    hour: int = 8,
    minute: int = 0,
    second: int = 0,
    state: int = 0,
) -> bytes:
    """Build a 40-byte attendance record."""
    record = bytearray(40)
    record[0:len(user_id)] = user_id
    record[24:26] = struct.pack("<H", year)
    record[26:31] = bytes([month, day, hour, minute, second])
    record[31] = state
    return bytes(record)


def make_legacy_record(
    user_id: bytes = b"55",
    year: int = 2015,
    month: int = 3,
    day: int = 9,
    hour: int = 17,
    minute: int = 45,
    second: int = 12,
    size: int = 16,
) -> bytes:
    """Build an old-firmware record: id at 0, timestamp at offset 10."""
    record = bytearray(size)
    record[0:len(user_id)] = user_id
    record[10:12] = struct.pack("<H", year)
    record[12:16] = bytes([month, day, hour, minute])
    if size > 16:
        record[16] = second
    return bytes(record)


class FakeDevice:
    """
    Response callback emulating a ZKTeco terminal.

    Standard log transfers announce declared_size (default len(records))
    and serve records in chunks of chunk_size payload bytes. Commands listed in silent get no
    reply; overrides maps a command code to a fixed reply (bytes, list, or None).
    """

    def __init__(
        self,
        *,
        session_id: int = 42,
        records: bytes = b"",
        chunk_size: int | None = None,
        declared_size: int | None = None,
        legacy_packets: list[bytes] | None = None,
        options: dict[str, str] | None = None,
        silent: tuple[int, ...] = (),
        overrides: dict[int, object] | None = None,
    ) -> None:
        self.session_id = session_id
        self.records = records
        self.chunk_size = chunk_size or max(len(records), 1)
        self.declared_size = len(records) if declared_size is None else declared_size
        self.legacy_packets = legacy_packets or []
        self.options = options or {}
        self.silent = set(silent)
        self.overrides = overrides or {}
        self.headers = []
        self._chunks: deque[bytes] = deque()

    @property
    def commands(self) -> list[int]:
        return [header.command for header in self.headers]

    def __call__(self, packet: bytes):
        header = parse_header(packet)
        self.headers.append(header)
        command = header.command

        if command in self.silent:
            return None
        if command in self.overrides:
            return self.overrides[command]

        if command == CommandCode.CMD_CONNECT:
            return reply(CommandCode.CMD_ACK_OK, session_id=self.session_id)
        if command == CommandCode.CMD_EXIT:
            return None
        if command == CommandCode.CMD_ATTLOG:
            self._chunks = deque(
                self.records[i:i + self.chunk_size]
                for i in range(0, len(self.records), self.chunk_size)
            )
            return reply(CommandCode.CMD_PREPARE_DATA, struct.pack("<I", self.declared_size))
        if command == CommandCode.CMD_DATA:
            chunk = self._chunks.popleft() if self._chunks else b""
            return reply(CommandCode.CMD_DATA, chunk)
        if command == CommandCode.OLD_CMD_ATTLOG:
            return [reply(CommandCode.CMD_DATA, payload) for payload in self.legacy_packets]
        if command == CommandCode.CMD_DEVICE:
            option = packet[8:].rstrip(b"\x00").decode("ascii")
            value = self.options.get(option)
            if value is None:
                return reply(CommandCode.CMD_ACK_ERROR)
            return reply(CommandCode.CMD_ACK_OK, f"{option}={value}\x00".encode("ascii"))
        if command in (
            CommandCode.CMD_ENABLEDEVICE,
            CommandCode.CMD_DISABLEDEVICE,
            CommandCode.CMD_CLEAR_ATTLOG,
        ):
            return reply(CommandCode.CMD_ACK_OK)
        return reply(CommandCode.CMD_ACK_ERROR)


@pytest.fixture
def record_007() -> bytes:
    """Valid record for user 007 at 2024-06-01 08:00:00, state 0."""
    return make_record()
