"""
ZKTeco device client.

This module provides the main client interface for polling ZKTeco
attendance terminals.

The client implements a small session state machine:
    DISCONNECTED -> connect() -> CONNECTING -> CONNECTED
    CONNECTED -> disconnect() -> DISCONNECTING -> DISCONNECTED
    CONNECTED -> connection lost -> DISCONNECTED

Commands are strictly sequential: every request is followed by its reply
(or the end of its receive window) before the next request is sent. The
protocol has no correlation beyond the session id, so one client instance
must not be shared between concurrent tasks.

Example:
    >>> from zkconnect import DeviceClient
    >>>
    >>> async def main():
    ...     async with DeviceClient("192.168.1.201") as client:
    ...         for record in await client.get_attendance():
    ...             print(record.user_id, record.timestamp_text, record.state)
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum, auto

from zkconnect.exceptions import (
    ConnectionError,
    FramingError,
    ProtocolError,
    TransportError,
    TransportTimeout,
)
from zkconnect.models.records import (
    AttendanceRecord,
    ClientSettings,
    DeviceEndpoint,
    DeviceInfo,
    TransportKind,
)
from zkconnect.parsers.attendance_parser import parse_attendance_records, parse_with_fallback
from zkconnect.protocol.checksums import calculate_checksum
from zkconnect.protocol.constants import (
    AckPolicy,
    CommandCode,
    HeaderChecksum,
    ProtocolConstants,
    ProtocolVariant,
)
from zkconnect.protocol.header import (
    build_header,
    parse_connect_reply,
    read_size_announcement,
    response_command,
)
from zkconnect.transport import AbstractTransport, create_transport

# Module logger
logger = logging.getLogger(__name__)

_HEADER_SIZE = ProtocolConstants.HEADER_SIZE


class ClientState(Enum):
    """Device client connection states."""

    DISCONNECTED = auto()
    """No session; the socket is closed."""

    CONNECTING = auto()
    """Socket open, handshake in progress."""

    CONNECTED = auto()
    """Session established; commands may be issued."""

    DISCONNECTING = auto()
    """Sending CMD_EXIT and releasing the socket."""


class AckResult(Enum):
    """What came back after a command that expects an acknowledgment."""

    ACK_OK = auto()
    REJECTED = auto()
    SILENT = auto()
    LOST = auto()  # connection dropped, session released


class TransferStatus(Enum):
    """Outcome of an attendance log transfer."""

    COMPLETE = auto()
    """All announced bytes (or an inline payload) were received."""

    EMPTY = auto()
    """The device answered and has no records."""

    TRUNCATED = auto()
    """The chunk stream ended before the announced size was reached."""

    NO_RESPONSE = auto()
    """The device did not answer the request."""

    UNEXPECTED_REPLY = auto()
    """The device answered with a code that starts no data transfer."""


@dataclass(frozen=True)
class AttendanceTransfer:
    """
    Raw result of an attendance log transfer.

    This is the low-level view behind get_attendance(): it keeps "device
    unreachable" and "device has no punches" apart, which the high-level
    call collapses into an empty list.

    Attributes:
        status: How the transfer ended.
        data: Assembled record bytes with all chunk headers removed.
        declared_size: Size announced by PREPARE_DATA, if any.
        reply_command: Code of the first reply, if any.
        variant: Command table that produced this result.
    """

    status: TransferStatus
    data: bytes = b""
    declared_size: int | None = None
    reply_command: int | None = None
    variant: ProtocolVariant = ProtocolVariant.STANDARD

    @property
    def answered(self) -> bool:
        """Whether the device gave a reply that started or ended a transfer."""
        return self.status in (
            TransferStatus.COMPLETE,
            TransferStatus.EMPTY,
            TransferStatus.TRUNCATED,
        )


class DeviceClient:
    """
    Client for ZKTeco attendance terminals.

    Manages the socket and session lifecycle and provides the attendance
    and device control commands.

    Commands whose replies many terminals silently drop (enable, disable,
    clear) report success on silence under the default
    AckPolicy.OPTIMISTIC_ON_SILENCE. That is tolerance for real hardware,
    not error suppression; select AckPolicy.STRICT to require an ACK_OK.

    Attributes:
        endpoint: Device address.
        state: Current connection state.
        session_id: Session id assigned by the device (0 when disconnected).
        settings: Settings to be used from the next connect().

    Example:
        >>> client = DeviceClient("192.168.1.201")
        >>> if await client.connect():
        ...     try:
        ...         await client.disable_device()
        ...         records = await client.get_attendance()
        ...         await client.enable_device()
        ...     finally:
        ...         await client.disconnect()
    """

    def __init__(
        self,
        host: str,
        port: int = ProtocolConstants.DEFAULT_PORT,
        kind: TransportKind = TransportKind.UDP,
        *,
        settings: ClientSettings | None = None,
        transport: AbstractTransport | None = None,
    ) -> None:
        """
        Initialize the device client.

        Args:
            host: Device IP address or hostname.
            port: Device port.
            kind: UDP or TCP.
            settings: Client settings (defaults if omitted).
            transport: Transport to use instead of one created from the
                endpoint on each connect().
        """
        self._endpoint = DeviceEndpoint(host=host, port=port, kind=TransportKind(kind))
        self._settings = settings or ClientSettings()
        self._active = self._settings
        self._fixed_transport = transport
        self._transport: AbstractTransport | None = transport
        self._state = ClientState.DISCONNECTED
        self._session_id = 0
        self._reply_id = 0
        self._detected_variant: ProtocolVariant | None = None

    @classmethod
    def from_endpoint(
        cls,
        endpoint: DeviceEndpoint,
        *,
        settings: ClientSettings | None = None,
        transport: AbstractTransport | None = None,
    ) -> DeviceClient:
        """Create a client for an existing DeviceEndpoint."""
        return cls(
            endpoint.host,
            endpoint.port,
            endpoint.kind,
            settings=settings,
            transport=transport,
        )

    # ===== Properties =====

    @property
    def endpoint(self) -> DeviceEndpoint:
        """Get the device address."""
        return self._endpoint

    @property
    def settings(self) -> ClientSettings:
        """Get the settings applied on the next connect()."""
        return self._settings

    @property
    def state(self) -> ClientState:
        """Get the current connection state."""
        return self._state

    @property
    def is_connected(self) -> bool:
        """Check if a session is established."""
        return self._state == ClientState.CONNECTED

    @property
    def session_id(self) -> int:
        """Get the session id assigned by the device."""
        return self._session_id

    @property
    def reply_id(self) -> int:
        """Get the reply id placed in outgoing headers."""
        return self._reply_id

    @property
    def transport(self) -> AbstractTransport | None:
        """Get the transport of the current (or last) connection."""
        return self._transport

    @property
    def detected_variant(self) -> ProtocolVariant | None:
        """Command table the device answered to, once known."""
        return self._detected_variant

    # ===== Configuration =====

    def set_timeout(self, seconds: int | float, microseconds: int = 0) -> None:
        """
        Set the receive/send timeout, applied on the next connect().

        Args:
            seconds: Whole seconds.
            microseconds: Additional microseconds.
        """
        self._settings = self._settings.with_timeout(seconds, microseconds)

    def set_buffer_size(self, size: int) -> None:
        """
        Set the socket buffer size and largest read, applied on the next
        connect().

        Raises:
            pydantic.ValidationError: If size is below 16 bytes.
        """
        self._settings = self._settings.replace(buffer_size=size)

    # ===== Session =====

    async def connect(self) -> bool:
        """
        Open the socket and perform the CMD_CONNECT handshake.

        CMD_CONNECT is sent up to connect_send_retries times; after each
        send, connect_receive_attempts short receive windows are polled,
        capped by the configured timeout. UDP has no delivery guarantee and
        terminals occasionally drop the first datagram, hence both levels of
        retry.

        Returns:
            True once a session is established. False if the device never
            answered (soft failure; connect() may be called again).

        Raises:
            ConnectionError: If not DISCONNECTED, or a TCP connection cannot
                be established.
            SocketCreateError: If the socket cannot be created.

        The socket is closed on every path that does not end CONNECTED.
        """
        if self._state != ClientState.DISCONNECTED:
            raise ConnectionError(
                f"Cannot connect: client is in {self._state.name} state"
            )

        settings = self._settings
        self._active = settings
        self._session_id = 0
        self._reply_id = 0
        self._detected_variant = None
        self._transport = self._fixed_transport or create_transport(self._endpoint)
        transport = self._transport

        self._state = ClientState.CONNECTING
        logger.info("Connecting to %s", self._endpoint)

        connected = False
        try:
            await transport.open(settings.timeout, settings.buffer_size)

            packet = build_header(CommandCode.CMD_CONNECT, 0, 0, 0)

            for attempt in range(settings.connect_send_retries):
                if attempt > 0:
                    logger.debug(
                        "Connection attempt %d/%d", attempt + 1, settings.connect_send_retries
                    )
                transport.discard_buffers()

                try:
                    await transport.send(packet)
                except TransportError as e:
                    logger.warning("Send of CMD_CONNECT to %s failed: %s", self._endpoint, e)
                    await asyncio.sleep(settings.retry_delay)
                    continue

                try:
                    reply = await transport.poll(
                        settings.buffer_size,
                        settings.connect_receive_attempts,
                        settings.receive_interval,
                        timeout=settings.timeout,
                    )
                except TransportTimeout:
                    logger.warning(
                        "No reply to CMD_CONNECT from %s (attempt %d/%d)",
                        self._endpoint,
                        attempt + 1,
                        settings.connect_send_retries,
                    )
                    continue
                except TransportError as e:
                    logger.warning("Receive from %s failed: %s", self._endpoint, e)
                    continue

                try:
                    connect_reply = parse_connect_reply(reply)
                except FramingError as e:
                    logger.warning("Unusable reply to CMD_CONNECT: %s", e)
                    continue

                self._session_id = connect_reply.session_id
                self._state = ClientState.CONNECTED
                connected = True
                logger.info(
                    "Connected to %s (session %d)", self._endpoint, self._session_id
                )
                return True

            logger.warning(
                "Connection to %s failed after %d attempts",
                self._endpoint,
                settings.connect_send_retries,
            )
            return False

        finally:
            if not connected:
                await self._release_transport()

    async def disconnect(self) -> bool:
        """
        End the session and close the socket.

        CMD_EXIT is sent without waiting for a reply; the protocol does not
        require one. The socket is closed whether or not the send succeeds.
        Safe to call in any state.

        Returns:
            True.
        """
        was_connected = self._state == ClientState.CONNECTED
        if was_connected:
            logger.info("Disconnecting from %s", self._endpoint)
            self._state = ClientState.DISCONNECTING

        try:
            if was_connected and self._transport is not None:
                try:
                    await self._transport.send(self._packet(CommandCode.CMD_EXIT))
                except TransportError as e:
                    logger.debug("CMD_EXIT to %s not sent: %s", self._endpoint, e)
        finally:
            await self._release_transport()

        return True

    # ===== Device Control =====

    async def enable_device(self) -> bool:
        """
        Re-enable the device's keypad and sensor.

        Returns:
            False when not connected or the device rejected the command.
            On silence the AckPolicy decides.
        """
        return await self._simple_command(CommandCode.CMD_ENABLEDEVICE)

    async def disable_device(self) -> bool:
        """
        Lock the device for the duration of a transfer.

        Returns:
            False when not connected or the device rejected the command.
            On silence the AckPolicy decides.
        """
        return await self._simple_command(CommandCode.CMD_DISABLEDEVICE)

    async def clear_attendance(self) -> bool:
        """
        Erase the attendance log on the device.

        With ProtocolVariant.AUTO the command table detected during this
        session is used. If nothing was detected yet, the standard command
        is sent first and the legacy command only when the standard one got
        no ACK_OK.

        Returns:
            False when not connected or the device rejected the command.
            On silence the AckPolicy decides.
        """
        if not self.is_connected:
            logger.warning("clear_attendance() on %s while not connected", self._endpoint)
            return False

        variant = self._active.variant
        if variant == ProtocolVariant.AUTO and self._detected_variant is not None:
            variant = self._detected_variant

        if variant == ProtocolVariant.LEGACY:
            result = await self._await_ack(CommandCode.OLD_CMD_CLEAR_ATTLOG)
            return self._ack_outcome(CommandCode.OLD_CMD_CLEAR_ATTLOG, result)

        result = await self._await_ack(CommandCode.CMD_CLEAR_ATTLOG)
        if variant == ProtocolVariant.STANDARD or result in (AckResult.ACK_OK, AckResult.LOST):
            return self._ack_outcome(CommandCode.CMD_CLEAR_ATTLOG, result)

        logger.info("Retrying clear on %s with legacy command", self._endpoint)
        legacy = await self._await_ack(CommandCode.OLD_CMD_CLEAR_ATTLOG)
        if legacy == AckResult.SILENT:
            return self._ack_outcome(CommandCode.CMD_CLEAR_ATTLOG, result)
        return self._ack_outcome(CommandCode.OLD_CMD_CLEAR_ATTLOG, legacy)

    # ===== Attendance =====

    async def read_attendance_data(self) -> AttendanceTransfer:
        """
        Transfer the raw attendance log.

        Standard protocol: CMD_ATTLOG is answered with PREPARE_DATA carrying
        the total size as a u32 after the header. CMD_DATA is then sent
        repeatedly; each reply is one chunk with its own 8-byte header, which
        is stripped before the payload is appended. A chunk of 8 bytes or
        less ends the stream early.

        With ProtocolVariant.AUTO, a request that gets no usable reply is
        repeated with the legacy command.

        Returns:
            AttendanceTransfer describing the outcome. Transfer problems are
            reported in its status, not raised.

        Raises:
            ConnectionError: If not connected.
        """
        self._ensure_connected()
        variant = self._active.variant

        if variant == ProtocolVariant.LEGACY:
            return await self._legacy_transfer()

        transfer = await self._standard_transfer()
        if transfer.answered:
            self._detected_variant = ProtocolVariant.STANDARD
            return transfer

        if variant == ProtocolVariant.AUTO and self.is_connected:
            logger.info(
                "No usable attendance reply from %s (%s), trying legacy command",
                self._endpoint,
                transfer.status.name,
            )
            legacy = await self._legacy_transfer()
            if legacy.status == TransferStatus.COMPLETE:
                self._detected_variant = ProtocolVariant.LEGACY
                return legacy

        return transfer

    async def get_attendance(self) -> list[AttendanceRecord]:
        """
        Fetch and parse the attendance log.

        Returns:
            Parsed records. An empty list both when the log is empty and
            when the device did not deliver it; use read_attendance_data()
            to tell those apart.

        Raises:
            ConnectionError: If not connected.
        """
        return self.parse_transfer(await self.read_attendance_data())

    def parse_transfer(self, transfer: AttendanceTransfer) -> list[AttendanceRecord]:
        """
        Parse the records of a transfer.

        The legacy record sizes are only tried when the client is not pinned
        to the standard protocol.
        """
        if not transfer.data:
            logger.debug("No attendance data from %s (%s)", self._endpoint, transfer.status.name)
            return []

        if transfer.variant == ProtocolVariant.STANDARD and (
            self._active.variant == ProtocolVariant.STANDARD
        ):
            records = parse_attendance_records(transfer.data, transfer.declared_size)
        else:
            records = parse_with_fallback(transfer.data, transfer.declared_size)

        logger.info(
            "Read %d attendance record(s) from %s (%d bytes, %s)",
            len(records),
            self._endpoint,
            len(transfer.data),
            transfer.status.name,
        )
        return records

    # ===== Device Information =====

    async def get_device_name(self, timeout: float | None = None) -> str | None:
        """Get the device name, or None if unavailable."""
        return await self._read_option("~DeviceName", timeout)

    async def get_serial_number(self, timeout: float | None = None) -> str | None:
        """Get the serial number, or None if unavailable."""
        return await self._read_option("~SerialNumber", timeout)

    async def get_platform(self, timeout: float | None = None) -> str | None:
        """Get the platform/model string, or None if unavailable."""
        return await self._read_option("~Platform", timeout)

    async def get_firmware_version(self, timeout: float | None = None) -> str | None:
        """Get the firmware version, or None if unavailable."""
        return await self._read_option("FirmVer", timeout)

    async def get_mac(self, timeout: float | None = None) -> str | None:
        """
        Get the MAC address, or None if unavailable.

        Twelve bare hex digits are returned colon-separated.
        """
        mac = await self._read_option("MAC", timeout)
        if mac and len(mac) == 12 and all(c in "0123456789abcdefABCDEF" for c in mac):
            mac = ":".join(mac[i:i + 2] for i in range(0, 12, 2))
        return mac

    async def get_device_info(self, timeout: float | None = None) -> DeviceInfo:
        """
        Query every device information field.

        Fields the device does not report are None. These values are best
        effort; many firmwares return placeholders.

        Raises:
            ConnectionError: If not connected.
        """
        return DeviceInfo(
            device_name=await self.get_device_name(timeout),
            serial_number=await self.get_serial_number(timeout),
            platform=await self.get_platform(timeout),
            firmware_version=await self.get_firmware_version(timeout),
            mac_address=await self.get_mac(timeout),
            host=self._endpoint.host,
            port=self._endpoint.port,
            connected=self.is_connected,
        )

    # ===== Internals =====

    def _ensure_connected(self) -> None:
        """Verify client is in connected state."""
        if self._state != ClientState.CONNECTED:
            raise ConnectionError(f"Not connected (state: {self._state.name})")

    async def _release_transport(self) -> None:
        """Close the socket and forget the session."""
        try:
            if self._transport is not None:
                await self._transport.close()
        finally:
            self._state = ClientState.DISCONNECTED
            self._session_id = 0
            self._reply_id = 0

    async def _check_link(self, error: TransportError) -> None:
        """Release the session if the transport is no longer usable."""
        transport = self._transport
        if transport is not None and transport.is_open:
            return
        logger.warning("Connection to %s lost: %s", self._endpoint, error)
        await self._release_transport()

    def _header(
        self,
        command: int,
        checksum: int = 0,
        session_id: int = 0,
        reply_id: int = 0,
    ) -> bytes:
        """
        Build a header for this session.

        A session_id or reply_id of 0 is replaced by the connection's
        current value.
        """
        if session_id == 0:
            session_id = self._session_id
        if reply_id == 0:
            reply_id = self._reply_id
        return build_header(command, checksum, session_id, reply_id)

    def _packet(self, command: int, payload: bytes = b"") -> bytes:
        """Build a request packet: header plus payload."""
        checksum = 0
        if self._active.header_checksum == HeaderChecksum.PAYLOAD_SUM:
            checksum = calculate_checksum(payload)
        if self._active.increment_reply_id:
            self._reply_id = (self._reply_id + 1) % ProtocolConstants.CHECKSUM_MODULUS
        return self._header(command, checksum) + payload

    async def _exchange(
        self,
        command: int,
        payload: bytes = b"",
        *,
        timeout: float,
        max_bytes: int | None = None,
    ) -> bytes | None:
        """
        Send one request and wait for one reply.

        Returns:
            The reply, or None if nothing arrived within timeout.

        Raises:
            TransportError: If the send or receive fails outright. When the
                connection is gone the session is released first.
        """
        transport = self._transport
        if transport is None:
            raise TransportError("No transport")

        transport.discard_buffers()
        try:
            await transport.send(self._packet(command, payload))
            reply = await transport.receive(max_bytes or self._active.buffer_size, timeout)
        except TransportTimeout:
            return None
        except TransportError as e:
            await self._check_link(e)
            raise

        logger.debug(
            "%s: command %d -> %d byte reply", self._endpoint, command, len(reply)
        )
        return reply

    async def _await_ack(self, command: int) -> AckResult:
        """Send a command and classify its acknowledgment."""
        try:
            reply = await self._exchange(command, timeout=self._active.ack_window)
        except TransportError as e:
            if not self.is_connected:
                return AckResult.LOST
            # Treated as silence: the same terminals that drop these replies
            # also reset the socket on some firmware
            logger.warning("Command %d to %s failed: %s", command, self._endpoint, e)
            return AckResult.SILENT

        if reply is None:
            return AckResult.SILENT

        try:
            code = response_command(reply)
        except FramingError as e:
            logger.warning("Unusable reply to command %d: %s", command, e)
            return AckResult.REJECTED

        if code == CommandCode.CMD_ACK_OK:
            return AckResult.ACK_OK

        logger.warning(
            "Command %d to %s answered with %d", command, self._endpoint, code
        )
        return AckResult.REJECTED

    def _ack_outcome(self, command: int, result: AckResult) -> bool:
        """Map an acknowledgment to a success flag under the AckPolicy."""
        if result == AckResult.ACK_OK:
            return True
        if result in (AckResult.REJECTED, AckResult.LOST):
            return False

        # Silence. Many terminals never acknowledge enable/disable/clear;
        # the optimistic policy reports success so polling carries on.
        optimistic = self._active.ack_policy == AckPolicy.OPTIMISTIC_ON_SILENCE
        logger.debug(
            "No acknowledgment of command %d from %s, reporting %s",
            command,
            self._endpoint,
            "success" if optimistic else "failure",
        )
        return optimistic

    async def _simple_command(self, command: CommandCode) -> bool:
        """Send a command that is answered by a bare acknowledgment, if at all."""
        if not self.is_connected:
            logger.warning("%s on %s while not connected", command.name, self._endpoint)
            return False
        result = await self._await_ack(command)
        return self._ack_outcome(command, result)

    async def _standard_transfer(self) -> AttendanceTransfer:
        """CMD_ATTLOG followed by the PREPARE_DATA/DATA chunk loop."""
        settings = self._active
        try:
            reply = await self._exchange(CommandCode.CMD_ATTLOG, timeout=settings.timeout)
        except TransportError as e:
            logger.warning("CMD_ATTLOG to %s failed: %s", self._endpoint, e)
            return AttendanceTransfer(TransferStatus.NO_RESPONSE)

        if reply is None:
            logger.warning("No reply to CMD_ATTLOG from %s", self._endpoint)
            return AttendanceTransfer(TransferStatus.NO_RESPONSE)

        try:
            command = response_command(reply)
        except FramingError as e:
            logger.warning("Unusable reply to CMD_ATTLOG: %s", e)
            return AttendanceTransfer(TransferStatus.UNEXPECTED_REPLY)

        if command == CommandCode.CMD_PREPARE_DATA:
            try:
                total_size = read_size_announcement(reply)
            except FramingError as e:
                logger.warning("Unusable PREPARE_DATA reply: %s", e)
                return AttendanceTransfer(TransferStatus.UNEXPECTED_REPLY, reply_command=command)
            return await self._receive_chunks(total_size)

        if command == CommandCode.CMD_DATA:
            # Small logs arrive inline on some firmware
            payload = reply[_HEADER_SIZE:]
            status = TransferStatus.COMPLETE if payload else TransferStatus.EMPTY
            return AttendanceTransfer(
                status, payload, declared_size=len(payload), reply_command=command
            )

        if command == CommandCode.CMD_ACK_OK:
            return AttendanceTransfer(TransferStatus.EMPTY, declared_size=0, reply_command=command)

        error = ProtocolError("Reply to CMD_ATTLOG starts no transfer", command=command)
        logger.warning("%s: %s", self._endpoint, error)
        return AttendanceTransfer(TransferStatus.UNEXPECTED_REPLY, reply_command=command)

    async def _receive_chunks(self, total_size: int) -> AttendanceTransfer:
        """
        Pull CMD_DATA chunks until total_size payload bytes have arrived.

        Records have no resynchronization marker, so the header of every
        chunk must be stripped exactly; one misplaced byte shifts every
        later record.
        """
        settings = self._active
        data = bytearray()
        received = 0
        status = TransferStatus.COMPLETE if total_size else TransferStatus.EMPTY

        logger.debug("%s announced %d bytes of attendance data", self._endpoint, total_size)

        while received < total_size:
            max_bytes = min(settings.buffer_size, total_size - received + _HEADER_SIZE)
            try:
                chunk = await self._exchange(
                    CommandCode.CMD_DATA, timeout=settings.timeout, max_bytes=max_bytes
                )
            except TransportError as e:
                logger.warning("CMD_DATA to %s failed: %s", self._endpoint, e)
                chunk = None

            # A header-only chunk is the device's end-of-stream, whatever
            # the size bookkeeping says
            if chunk is None or len(chunk) <= _HEADER_SIZE:
                logger.warning(
                    "Attendance stream from %s ended at %d of %d bytes",
                    self._endpoint,
                    received,
                    total_size,
                )
                status = TransferStatus.TRUNCATED
                break

            data += chunk[_HEADER_SIZE:]
            received += len(chunk) - _HEADER_SIZE

        return AttendanceTransfer(
            status,
            bytes(data),
            declared_size=total_size,
            reply_command=CommandCode.CMD_PREPARE_DATA,
        )

    async def _legacy_transfer(self) -> AttendanceTransfer:
        """
        OLD_CMD_ATTLOG: the device streams datagrams without announcing a
        size. Collect until a receive window stays empty or the packet limit
        is reached.
        """
        settings = self._active
        transport = self._transport
        if transport is None:
            raise TransportError("No transport")

        try:
            transport.discard_buffers()
            await transport.send(self._packet(CommandCode.OLD_CMD_ATTLOG))
        except TransportError as e:
            logger.warning("OLD_CMD_ATTLOG to %s failed: %s", self._endpoint, e)
            await self._check_link(e)
            return AttendanceTransfer(TransferStatus.NO_RESPONSE, variant=ProtocolVariant.LEGACY)

        data = bytearray()
        packets = 0
        first_command: int | None = None

        for _ in range(settings.legacy_max_packets):
            window = settings.timeout if packets == 0 else settings.receive_interval
            try:
                packet = await transport.receive(settings.buffer_size, window)
            except TransportTimeout:
                break
            except TransportError as e:
                logger.warning("Legacy receive from %s failed: %s", self._endpoint, e)
                await self._check_link(e)
                break

            if packets == 0 and len(packet) >= _HEADER_SIZE:
                first_command = response_command(packet)
            packets += 1
            data += packet[_HEADER_SIZE:]

        if packets == 0:
            status = TransferStatus.NO_RESPONSE
        elif not data:
            status = TransferStatus.EMPTY
        else:
            status = TransferStatus.COMPLETE

        logger.debug(
            "Legacy transfer from %s: %d packet(s), %d bytes", self._endpoint, packets, len(data)
        )
        return AttendanceTransfer(
            status,
            bytes(data),
            reply_command=first_command,
            variant=ProtocolVariant.LEGACY,
        )

    async def _read_option(self, name: str, timeout: float | None) -> str | None:
        """
        Query one device option with CMD_DEVICE.

        The timeout applies to this call only; instance settings are not
        touched.
        """
        self._ensure_connected()
        window = timeout if timeout is not None else self._active.device_info_timeout
        payload = name.encode("ascii") + b"\x00"

        try:
            reply = await self._exchange(CommandCode.CMD_DEVICE, payload, timeout=window)
        except TransportError as e:
            logger.warning("Option query %s on %s failed: %s", name, self._endpoint, e)
            return None

        if reply is None:
            logger.debug("No reply to option query %s from %s", name, self._endpoint)
            return None

        try:
            code = response_command(reply)
        except FramingError:
            return None
        if code != CommandCode.CMD_ACK_OK:
            return None

        text = reply[_HEADER_SIZE:].split(b"\x00", 1)[0].decode("ascii", errors="replace").strip()
        _, sep, value = text.partition("=")
        value = value.strip() if sep else text
        return value or None

    # ===== Context Manager =====

    async def __aenter__(self) -> DeviceClient:
        """Async context manager entry - connect."""
        if not await self.connect():
            raise ConnectionError(f"No reply to CMD_CONNECT from {self._endpoint}")
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Async context manager exit - disconnect and close the socket."""
        await self.disconnect()

    def __repr__(self) -> str:
        return (
            f"DeviceClient({self._endpoint}, state={self._state.name}, "
            f"session={self._session_id})"
        )
