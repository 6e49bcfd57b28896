"""BLE GATT transport implementation."""

from __future__ import annotations

import asyncio
import logging
import re
from collections.abc import Callable, Mapping, Sequence
from types import ModuleType
from typing import Any

from switchbotctl.core.errors import (
    RadioNotReadyError,
    TransportConnectError,
    TransportSendError,
    TransportTimeoutError,
)
from switchbotctl.core.model import RawAdvertisement, ServiceData
from switchbotctl.transports.base import RADIO_READY, AdvertisementHandler, NotificationHandler

LOGGER = logging.getLogger(__name__)

SWITCHBOT_COMPANY_ID = 0x0969
SWITCHBOT_SERVICE_DATA_UUIDS = (
    "0000fd3d-0000-1000-8000-00805f9b34fb",
    "00000d00-0000-1000-8000-00805f9b34fb",
)

_MAC_RE = re.compile(r"^[0-9A-F]{2}([:-][0-9A-F]{2}){5}$", re.IGNORECASE)


def _bleak() -> ModuleType:
    try:
        import bleak  # type: ignore
    except Exception as exc:  # pragma: no cover - import failure path
        raise TransportConnectError(
            "BLE transport requires 'bleak'. Install dependency and retry."
        ) from exc
    return bleak


def raw_advertisement(
    device_id: str,
    address: str | None,
    rssi: int | None,
    service_data: Mapping[str, bytes] | None,
    manufacturer_data: Mapping[int, bytes] | None,
) -> RawAdvertisement:
    """Convert bleak's advertisement dictionaries into a ``RawAdvertisement``.

    bleak strips the company identifier from manufacturer data; it is put
    back (little endian) so decoder offsets match the over-the-air layout.
    Platform identifiers that are not MAC addresses are reported as an
    empty address.
    """
    entries = dict(service_data or {})
    ordered = [uuid for uuid in SWITCHBOT_SERVICE_DATA_UUIDS if uuid in entries]
    ordered += [uuid for uuid in entries if uuid not in ordered]

    manufacturer: bytes | None = None
    companies = dict(manufacturer_data or {})
    if companies:
        company_id = SWITCHBOT_COMPANY_ID if SWITCHBOT_COMPANY_ID in companies else next(iter(companies))
        manufacturer = company_id.to_bytes(2, "little") + bytes(companies[company_id])

    return RawAdvertisement(
        id=device_id,
        address=address.lower() if address and _MAC_RE.match(address) else "",
        rssi=rssi,
        service_data=tuple(ServiceData(uuid=uuid, data=bytes(entries[uuid])) for uuid in ordered),
        manufacturer_data=manufacturer,
    )


class BleakPeripheral:
    def __init__(self, device: Any, *, device_id: str | None = None) -> None:
        self._device = device
        self._id = device_id or str(getattr(device, "address", device))
        self._client: Any | None = None
        self._state = "disconnected"
        self._disconnect_callback: Callable[[], None] | None = None

    @property
    def id(self) -> str:
        return self._id

    @property
    def address(self) -> str:
        address = str(getattr(self._device, "address", self._device))
        return address if _MAC_RE.match(address) else ""

    @property
    def state(self) -> str:
        return self._state

    def set_disconnect_callback(self, callback: Callable[[], None] | None) -> None:
        self._disconnect_callback = callback

    def _on_bleak_disconnect(self, _client: Any) -> None:
        LOGGER.debug("[%s] link dropped", self._id)
        self._state = "disconnected"
        self._client = None
        if self._disconnect_callback is not None:
            self._disconnect_callback()

    def _require_client(self) -> Any:
        if self._client is None:
            raise TransportSendError(f"BLE peripheral {self._id} is not connected")
        return self._client

    async def connect(self) -> None:
        bleak = _bleak()
        client = bleak.BleakClient(self._device, disconnected_callback=self._on_bleak_disconnect)
        self._client = client
        self._state = "connecting"
        try:
            await client.connect()
        except asyncio.TimeoutError as exc:
            self._client = None
            self._state = "disconnected"
            raise TransportTimeoutError(f"BLE connect to {self._id} timed out") from exc
        except Exception as exc:
            self._client = None
            self._state = "disconnected"
            raise TransportConnectError(f"BLE connect failed for {self._id}: {exc}") from exc
        self._state = "connected"

    async def disconnect(self) -> None:
        client = self._client
        if client is None:
            self._state = "disconnected"
            return
        self._state = "disconnecting"
        try:
            await client.disconnect()
        except Exception as exc:
            raise TransportSendError(f"BLE disconnect failed for {self._id}: {exc}") from exc
        finally:
            self._client = None
            self._state = "disconnected"

    async def discover_services(self, uuids: Sequence[str]) -> list[Any]:
        client = self._require_client()
        wanted = {uuid.lower() for uuid in uuids}
        return [service for service in client.services if not wanted or service.uuid.lower() in wanted]

    async def discover_characteristics(self, service: Any) -> list[Any]:
        return list(service.characteristics)

    async def subscribe(self, characteristic: Any, handler: NotificationHandler) -> None:
        client = self._require_client()

        def _notify_handler(_: Any, data: bytearray) -> None:
            handler(bytes(data))

        try:
            await client.start_notify(characteristic, _notify_handler)
        except Exception as exc:
            raise TransportSendError(f"BLE subscribe failed for {self._id}: {exc}") from exc

    async def unsubscribe(self, characteristic: Any) -> None:
        client = self._require_client()
        try:
            await client.stop_notify(characteristic)
        except Exception as exc:
            raise TransportSendError(f"BLE unsubscribe failed for {self._id}: {exc}") from exc

    async def read(self, characteristic: Any) -> bytes:
        client = self._require_client()
        try:
            return bytes(await client.read_gatt_char(characteristic))
        except Exception as exc:
            raise TransportSendError(f"BLE read failed for {self._id}: {exc}") from exc

    async def write(self, characteristic: Any, data: bytes) -> None:
        client = self._require_client()
        try:
            await client.write_gatt_char(characteristic, data, response=True)
        except Exception as exc:
            raise TransportSendError(f"BLE GATT write failed for {self._id}: {exc}") from exc


class BleakRadio:
    def __init__(self) -> None:
        self._state = "unknown"
        self._scanner: Any | None = None
        self._devices: dict[str, Any] = {}

    @property
    def state(self) -> str:
        return self._state

    async def initialize(self) -> str:
        if self._state == RADIO_READY:
            return self._state
        bleak = _bleak()
        scanner = bleak.BleakScanner()
        try:
            await scanner.start()
            await scanner.stop()
        except bleak.BleakError as exc:
            LOGGER.debug("Bluetooth adapter probe failed: %s", exc)
            self._state = "poweredOff"
        else:
            self._state = RADIO_READY
        return self._state

    async def start_scan(self, handler: AdvertisementHandler) -> None:
        bleak = _bleak()

        def _detected(device: Any, advertisement_data: Any) -> None:
            self._devices[device.address] = device
            handler(
                raw_advertisement(
                    device.address,
                    device.address,
                    advertisement_data.rssi,
                    advertisement_data.service_data,
                    advertisement_data.manufacturer_data,
                )
            )

        scanner = bleak.BleakScanner(detection_callback=_detected)
        try:
            await scanner.start()
        except bleak.BleakError as exc:
            self._state = "poweredOff"
            raise RadioNotReadyError(f"Could not start BLE scan: {exc}") from exc
        self._scanner = scanner

    async def stop_scan(self) -> None:
        scanner = self._scanner
        self._scanner = None
        if scanner is not None:
            await scanner.stop()

    def peripheral(self, peripheral_id: str) -> BleakPeripheral:
        return BleakPeripheral(self._devices.get(peripheral_id, peripheral_id), device_id=peripheral_id)
