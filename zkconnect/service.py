"""
High-level device service.

DeviceService wraps a DeviceClient with the policies an attendance
collector needs on top of the bare protocol:

- UDP first, TCP when the UDP socket cannot be used
- Device re-enabled after connecting
- One recovery attempt when the log transfer gets no usable reply
- Date-range filtering of the punches

poll_devices() runs several services concurrently; a failing device is
logged and yields no records instead of failing the whole poll.

Example:
    >>> from zkconnect import DeviceEndpoint, poll_devices
    >>>
    >>> results = await poll_devices([
    ...     DeviceEndpoint(host="192.168.1.201"),
    ...     DeviceEndpoint(host="192.168.1.202"),
    ... ])
    >>> for endpoint, records in results.items():
    ...     print(endpoint, len(records))
"""

from __future__ import annotations

import asyncio
import logging
from datetime import date, datetime, time
from typing import Callable, Iterable

from zkconnect.client import DeviceClient
from zkconnect.exceptions import ConnectionError, TransportError, ZKConnectError
from zkconnect.models.records import (
    AttendanceRecord,
    ClientSettings,
    DeviceEndpoint,
    DeviceInfo,
    ProbeResult,
    TransportKind,
)
from zkconnect.protocol.constants import ProtocolConstants

logger = logging.getLogger(__name__)

ClientFactory = Callable[[DeviceEndpoint, ClientSettings], DeviceClient]


def _default_factory(endpoint: DeviceEndpoint, settings: ClientSettings) -> DeviceClient:
    return DeviceClient.from_endpoint(endpoint, settings=settings)


def _range_start(value: date | datetime | None) -> datetime | None:
    if value is None or isinstance(value, datetime):
        return value
    return datetime.combine(value, time.min)


def _range_end(value: date | datetime | None) -> datetime | None:
    # A bare date covers the whole day
    if value is None or isinstance(value, datetime):
        return value
    return datetime.combine(value, time(23, 59, 59))


def filter_by_date(
    records: Iterable[AttendanceRecord],
    start: date | datetime | None = None,
    end: date | datetime | None = None,
) -> list[AttendanceRecord]:
    """
    Keep records with start <= timestamp <= end.

    Dates are widened to whole days: start at 00:00:00, end at 23:59:59.
    Either bound may be None.
    """
    lower = _range_start(start)
    upper = _range_end(end)
    return [
        record
        for record in records
        if (lower is None or record.timestamp >= lower)
        and (upper is None or record.timestamp <= upper)
    ]


class DeviceService:
    """
    Connection-managing facade over DeviceClient.

    Attributes:
        host: Device address.
        port: Device port.
        client: Active client, None until connected.
    """

    def __init__(
        self,
        host: str,
        port: int = ProtocolConstants.DEFAULT_PORT,
        *,
        settings: ClientSettings | None = None,
        client_factory: ClientFactory | None = None,
    ) -> None:
        self._host = host
        self._port = port
        self._settings = settings or ClientSettings()
        self._factory = client_factory or _default_factory
        self._client: DeviceClient | None = None

    @property
    def host(self) -> str:
        return self._host

    @property
    def port(self) -> int:
        return self._port

    @property
    def client(self) -> DeviceClient | None:
        return self._client

    @property
    def is_connected(self) -> bool:
        return self._client is not None and self._client.is_connected

    def _endpoint(self, kind: TransportKind) -> DeviceEndpoint:
        return DeviceEndpoint(host=self._host, port=self._port, kind=kind)

    async def connect(self) -> bool:
        """
        Connect over UDP, falling back to TCP on a hard UDP error.

        Returns:
            True if a session is established.
        """
        if self.is_connected:
            return True

        logger.info("Connecting to ZKTeco device %s:%d", self._host, self._port)

        client = self._factory(self._endpoint(TransportKind.UDP), self._settings)
        try:
            connected = await client.connect()
        except ZKConnectError as e:
            logger.debug("UDP connect to %s:%d failed (%s), trying TCP", self._host, self._port, e)
            client = self._factory(self._endpoint(TransportKind.TCP), self._settings)
            try:
                connected = await client.connect()
            except ZKConnectError as e2:
                logger.debug("TCP connect to %s:%d also failed: %s", self._host, self._port, e2)
                connected = False

        if not connected:
            logger.warning("Failed to connect to ZKTeco device %s:%d", self._host, self._port)
            return False

        self._client = client
        if not await client.enable_device():
            # Some firmware rejects enable on an idle device
            logger.debug("Enable on %s:%d was not acknowledged, continuing", self._host, self._port)
        return True

    async def disconnect(self) -> None:
        """Disconnect. Errors are logged, never raised."""
        client, self._client = self._client, None
        if client is None:
            return
        try:
            await client.disconnect()
        except ZKConnectError as e:
            logger.debug("Error during disconnect from %s:%d: %s", self._host, self._port, e)

    async def reconnect(self) -> bool:
        """Drop the current session and connect again with fresh clients."""
        await self.disconnect()
        return await self.connect()

    async def _require_client(self) -> DeviceClient:
        client = self._client if await self.connect() else None
        if client is None:
            raise ConnectionError(f"Cannot connect to device {self._host}:{self._port}")
        return client

    async def fetch_attendance(
        self,
        start: date | datetime | None = None,
        end: date | datetime | None = None,
    ) -> list[AttendanceRecord]:
        """
        Fetch the attendance log, optionally limited to a date range.

        When the device gives no usable reply, it is re-enabled (or, if the
        connection was lost, reconnected) and the transfer repeated once.

        Raises:
            ConnectionError: If the device cannot be reached.
            TransportError: If the device does not deliver its log.
        """
        client = await self._require_client()

        transfer = await client.read_attendance_data()
        if not transfer.answered:
            logger.info(
                "Attendance transfer from %s:%d failed (%s), retrying once",
                self._host,
                self._port,
                transfer.status.name,
            )
            if client.is_connected:
                await client.enable_device()
            else:
                client = await self._require_client()
            transfer = await client.read_attendance_data()
            if not transfer.answered:
                logger.error(
                    "Failed to get attendance data from %s:%d", self._host, self._port
                )
                raise TransportError(
                    f"No attendance data from {self._host}:{self._port} "
                    f"({transfer.status.name})"
                )

        records = client.parse_transfer(transfer)
        if start is not None or end is not None:
            records = filter_by_date(records, start, end)
        return records

    async def clear_attendance(self) -> bool:
        """
        Erase the attendance log on the device.

        Raises:
            ConnectionError: If the device cannot be reached.
        """
        client = await self._require_client()
        return await client.clear_attendance()

    async def device_info(self) -> DeviceInfo:
        """
        Query device information.

        Never raises; on any failure a DeviceInfo with connected=False and
        no identification fields is returned.
        """
        try:
            client = await self._require_client()
            return await client.get_device_info()
        except ZKConnectError as e:
            logger.error("Error getting device info from %s:%d: %s", self._host, self._port, e)
            return DeviceInfo(host=self._host, port=self._port, connected=False)

    async def probe(self, timeout: float = 2.0) -> ProbeResult:
        """
        Check that the device accepts a TCP connection.

        No protocol traffic is exchanged.
        """
        try:
            _, writer = await asyncio.wait_for(
                asyncio.open_connection(self._host, self._port), timeout=timeout
            )
        except asyncio.TimeoutError:
            return ProbeResult(
                success=False,
                message=f"Socket connection to {self._host}:{self._port} timed out",
            )
        except OSError as e:
            return ProbeResult(
                success=False,
                message=f"Socket connection failed: {e.strerror or e} ({e.errno})",
            )

        writer.close()
        try:
            await writer.wait_closed()
        except OSError as e:
            logger.debug("Error closing probe socket: %s", e)

        return ProbeResult(
            success=True,
            message=f"Socket connection successful to {self._host}:{self._port}",
        )

    async def __aenter__(self) -> DeviceService:
        if not await self.connect():
            raise ConnectionError(f"Cannot connect to device {self._host}:{self._port}")
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.disconnect()

    def __repr__(self) -> str:
        state = "connected" if self.is_connected else "disconnected"
        return f"DeviceService({self._host!r}, port={self._port}, {state})"


async def _poll_one(
    endpoint: DeviceEndpoint,
    start: date | datetime | None,
    end: date | datetime | None,
    settings: ClientSettings | None,
    client_factory: ClientFactory | None,
) -> list[AttendanceRecord]:
    service = DeviceService(
        endpoint.host, endpoint.port, settings=settings, client_factory=client_factory
    )
    try:
        return await service.fetch_attendance(start, end)
    except ZKConnectError as e:
        logger.error(
            "Polling %s failed at %s: %s",
            endpoint,
            datetime.now().strftime("%Y-%m-%d %H:%M:%S"),
            e,
        )
        return []
    finally:
        await service.disconnect()


async def poll_devices(
    endpoints: Iterable[DeviceEndpoint],
    start: date | datetime | None = None,
    end: date | datetime | None = None,
    settings: ClientSettings | None = None,
    *,
    client_factory: ClientFactory | None = None,
) -> dict[DeviceEndpoint, list[AttendanceRecord]]:
    """
    Fetch attendance from several devices concurrently.

    Each device gets its own client and socket. A device that cannot be
    reached or does not deliver its log is logged and maps to an empty list.
    An endpoint listed more than once is polled once.

    Returns:
        Records per endpoint, in the order each endpoint first appears.
    """
    targets = list(dict.fromkeys(endpoints))
    results = await asyncio.gather(
        *(_poll_one(endpoint, start, end, settings, client_factory) for endpoint in targets)
    )
    return dict(zip(targets, results))
