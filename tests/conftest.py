from __future__ import annotations

import asyncio
from collections.abc import Callable
from dataclasses import dataclass

import pytest

from switchbotctl.core.model import GattSpec, RawAdvertisement, Settings, TimeoutSpec

SERVICE_UUID = "cba20d00-224d-11e6-9fb8-0002a5d5c51b"
WRITE_UUID = "cba20002-224d-11e6-9fb8-0002a5d5c51b"
NOTIFY_UUID = "cba20003-224d-11e6-9fb8-0002a5d5c51b"
DEVICE_UUID = "00002a00-0000-1000-8000-00805f9b34fb"


@dataclass
class FakeHandle:
    uuid: str


class FakePeripheral:
    def __init__(self, peripheral_id: str = "aabbccddeeff", address: str = "aa:bb:cc:dd:ee:ff") -> None:
        self._id = peripheral_id
        self._address = address
        self.state = "disconnected"
        self.disconnect_callback: Callable[[], None] | None = None
        self.services = [FakeHandle(SERVICE_UUID)]
        self.characteristics = [FakeHandle(WRITE_UUID), FakeHandle(NOTIFY_UUID), FakeHandle(DEVICE_UUID)]
        self.notify_handler: Callable[[bytes], None] | None = None
        self.responses: list[bytes] = []
        self.writes: list[tuple[str, bytes]] = []
        self.name = b"WoHand"
        self.connect_calls = 0
        self.disconnect_calls = 0
        self.discover_calls = 0
        self.connect_gate: asyncio.Event | None = None
        self.connect_error: Exception | None = None
        self.discovery_delay = 0.0
        self.write_delay = 0.0
        self.read_delay = 0.0
        self.write_error: Exception | None = None
        self.subscribe_error: Exception | None = None
        self.unsubscribe_error: Exception | None = None

    @property
    def id(self) -> str:
        return self._id

    @property
    def address(self) -> str:
        return self._address

    def set_disconnect_callback(self, callback: Callable[[], None] | None) -> None:
        self.disconnect_callback = callback

    async def connect(self) -> None:
        self.connect_calls += 1
        self.state = "connecting"
        if self.connect_gate is not None:
            await self.connect_gate.wait()
        if self.connect_error is not None:
            self.state = "disconnected"
            raise self.connect_error
        self.state = "connected"

    async def disconnect(self) -> None:
        self.disconnect_calls += 1
        was_connected = self.state == "connected"
        self.state = "disconnected"
        if was_connected:
            self.drop()

    def drop(self) -> None:
        """Simulate the link going away underneath the session."""
        self.state = "disconnected"
        self.notify_handler = None
        if self.disconnect_callback is not None:
            self.disconnect_callback()

    async def discover_services(self, uuids):
        self.discover_calls += 1
        if self.discovery_delay:
            await asyncio.sleep(self.discovery_delay)
        return list(self.services)

    async def discover_characteristics(self, service):
        return list(self.characteristics)

    async def subscribe(self, characteristic, handler) -> None:
        if self.subscribe_error is not None:
            raise self.subscribe_error
        self.notify_handler = handler

    async def unsubscribe(self, characteristic) -> None:
        if self.unsubscribe_error is not None:
            raise self.unsubscribe_error
        self.notify_handler = None

    async def read(self, characteristic) -> bytes:
        if self.read_delay:
            await asyncio.sleep(self.read_delay)
        return self.name

    async def write(self, characteristic, data: bytes) -> None:
        if self.write_delay:
            await asyncio.sleep(self.write_delay)
        if self.write_error is not None:
            raise self.write_error
        self.writes.append((characteristic.uuid, bytes(data)))
        if characteristic.uuid == DEVICE_UUID:
            self.name = bytes(data)
        elif characteristic.uuid == WRITE_UUID and self.responses and self.notify_handler is not None:
            asyncio.get_running_loop().call_soon(self.notify_handler, self.responses.pop(0))


class FakeRadio:
    def __init__(self, state: str = "poweredOn") -> None:
        self.state = state
        self.advertisements: list[RawAdvertisement] = []
        self.peripherals: dict[str, FakePeripheral] = {}
        self.handler = None
        self.start_calls = 0
        self.stop_calls = 0

    async def initialize(self) -> str:
        return self.state

    async def start_scan(self, handler) -> None:
        self.start_calls += 1
        self.handler = handler
        for raw in self.advertisements:
            handler(raw)

    async def stop_scan(self) -> None:
        self.stop_calls += 1
        self.handler = None

    def peripheral(self, peripheral_id: str) -> FakePeripheral:
        if peripheral_id not in self.peripherals:
            self.peripherals[peripheral_id] = FakePeripheral(peripheral_id, "")
        return self.peripherals[peripheral_id]


@pytest.fixture
def settings() -> Settings:
    return Settings(
        gatt=GattSpec(
            service_uuid=SERVICE_UUID,
            write_char_uuid=WRITE_UUID,
            notify_char_uuid=NOTIFY_UUID,
            device_char_uuid=DEVICE_UUID,
        ),
        timeouts=TimeoutSpec(discovery_s=0.3, connect_s=0.3, read_s=0.2, write_s=0.2, command_s=0.2),
        scan_duration_s=0.05,
    )


@pytest.fixture
def peripheral() -> FakePeripheral:
    return FakePeripheral()


@pytest.fixture
def radio() -> FakeRadio:
    return FakeRadio()


@pytest.fixture
def xdg_config(tmp_path, monkeypatch):
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path))
    return tmp_path
