"""Tests for command header framing."""

import struct

import pytest

from zkconnect.exceptions import FramingError, ProtocolError
from zkconnect.protocol.constants import CommandCode
from zkconnect.protocol.header import (
    CommandHeader,
    build_header,
    build_packet,
    build_tcp_frame,
    parse_connect_reply,
    parse_header,
    read_size_announcement,
    read_tcp_length,
    response_command,
)


class TestBuildHeader:
    """Tests for build_header()."""

    def test_connect_header(self):
        """Test CMD_CONNECT with all other fields zero."""
        assert build_header(CommandCode.CMD_CONNECT) == bytes.fromhex("e803000000000000")

    def test_field_order_and_endianness(self):
        """Test fields are four little-endian u16 values."""
        header = build_header(0x0102, 0x0304, 0x0506, 0x0708)
        assert header == bytes([0x02, 0x01, 0x04, 0x03, 0x06, 0x05, 0x08, 0x07])

    def test_header_is_8_bytes(self):
        """Test header length."""
        assert len(build_header(CommandCode.CMD_ATTLOG, 1, 2, 3)) == 8

    def test_max_values(self):
        """Test 65535 fits in every field."""
        assert build_header(65535, 65535, 65535, 65535) == b"\xff" * 8

    @pytest.mark.parametrize(
        "fields",
        [(65536, 0, 0, 0), (1000, -1, 0, 0), (1000, 0, 70000, 0), (1000, 0, 0, 65536)],
    )
    def test_out_of_range_raises(self, fields):
        """Test values that do not fit in 16 bits are rejected."""
        with pytest.raises(FramingError):
            build_header(*fields)

    def test_build_packet_appends_payload(self):
        """Test payload follows the header directly."""
        packet = build_packet(CommandCode.CMD_DEVICE, b"MAC\x00", session_id=7)
        assert packet[:8] == build_header(CommandCode.CMD_DEVICE, 0, 7, 0)
        assert packet[8:] == b"MAC\x00"


class TestParseHeader:
    """Tests for parse_header() and response_command()."""

    def test_roundtrip_fields(self):
        """Test decoding a header built from known values."""
        header = parse_header(build_header(CommandCode.CMD_ACK_OK, 5, 42, 9))
        assert header == CommandHeader(command=2000, checksum=5, session_id=42, reply_id=9)
        assert header.command_code == CommandCode.CMD_ACK_OK

    def test_ignores_trailing_payload(self):
        """Test only the first 8 bytes are read."""
        header = parse_header(build_header(CommandCode.CMD_DATA) + b"payload")
        assert header.command == CommandCode.CMD_DATA

    def test_unknown_command_code(self):
        """Test unknown codes are kept as int."""
        header = parse_header(build_header(4242))
        assert header.command_code == 4242
        assert "4242" in repr(header)

    def test_pack(self):
        """Test CommandHeader.pack() gives the wire form back."""
        raw = build_header(CommandCode.CMD_EXIT, 1, 2, 3)
        assert parse_header(raw).pack() == raw

    @pytest.mark.parametrize("length", [0, 1, 2, 7])
    def test_short_buffer_raises(self, length):
        """Test short buffers are never zero-filled."""
        with pytest.raises(FramingError) as exc_info:
            parse_header(b"\xd0" * length)
        assert exc_info.value.length == length

    def test_framing_error_is_protocol_error(self):
        """Test FramingError sits under ProtocolError."""
        with pytest.raises(ProtocolError):
            response_command(b"\xd0\x07")

    def test_response_command(self):
        """Test reading the reply code."""
        assert response_command(build_header(CommandCode.CMD_PREPARE_DATA)) == 1500


class TestConnectReply:
    """Tests for parse_connect_reply()."""

    def test_session_id_from_bytes_4_and_5(self):
        """Test session id is the little-endian u16 at offset 4."""
        reply = parse_connect_reply(bytes.fromhex("AAAABBBB2A00CCCC"))
        assert reply.session_id == 42
        assert reply.command == 0xAAAA
        assert reply.raw == bytes.fromhex("AAAABBBB2A00CCCC")

    def test_high_byte(self):
        """Test byte 5 is the high byte."""
        reply = parse_connect_reply(bytes.fromhex("d007000034120000"))
        assert reply.session_id == 0x1234

    def test_short_reply_raises(self):
        """Test connect replies shorter than 8 bytes are rejected."""
        with pytest.raises(FramingError):
            parse_connect_reply(bytes.fromhex("d00700002a00"))


class TestSizeAnnouncement:
    """Tests for read_size_announcement()."""

    def test_reads_u32_after_header(self):
        """Test the size is the little-endian u32 at offset 8."""
        data = build_header(CommandCode.CMD_PREPARE_DATA) + struct.pack("<I", 70000)
        assert read_size_announcement(data) == 70000

    def test_extra_bytes_ignored(self):
        """Test bytes after the size field are ignored."""
        data = build_header(CommandCode.CMD_PREPARE_DATA) + struct.pack("<I", 48) + b"\xff" * 4
        assert read_size_announcement(data) == 48

    def test_short_reply_raises(self):
        """Test a reply ending inside the size field is rejected."""
        with pytest.raises(FramingError):
            read_size_announcement(build_header(CommandCode.CMD_PREPARE_DATA) + b"\x30\x00")


class TestTcpFrame:
    """Tests for the TCP packet prefix."""

    def test_prefix_layout(self):
        """Test magic words and length precede the packet."""
        packet = build_header(CommandCode.CMD_CONNECT)
        frame = build_tcp_frame(packet)
        assert frame == bytes.fromhex("5050827d08000000") + packet

    def test_read_length(self):
        """Test the length is read from the prefix."""
        assert read_tcp_length(build_tcp_frame(b"\x00" * 128)) == 128

    def test_bad_magic_raises(self):
        """Test a prefix with other magic words is rejected."""
        with pytest.raises(FramingError, match="magic"):
            read_tcp_length(struct.pack("<HHI", 0x5050, 0x1234, 8))

    def test_short_prefix_raises(self):
        """Test fewer than 8 bytes are rejected."""
        with pytest.raises(FramingError):
            read_tcp_length(bytes.fromhex("5050827d"))
