from __future__ import annotations

import asyncio
from types import SimpleNamespace

import pytest

from switchbotctl.core.errors import (
    RadioNotReadyError,
    TransportConnectError,
    TransportSendError,
    TransportTimeoutError,
)
from switchbotctl.transports import ble_gatt
from switchbotctl.transports.ble_gatt import BleakPeripheral, BleakRadio, raw_advertisement

SERVICE_UUID = "cba20d00-224d-11e6-9fb8-0002a5d5c51b"


class FakeBleakError(Exception):
    pass


class FakeClient:
    instances: list[FakeClient] = []
    connect_error: Exception | None = None

    def __init__(self, device, disconnected_callback=None) -> None:
        self.device = device
        self.disconnected_callback = disconnected_callback
        self.services = [
            SimpleNamespace(uuid=SERVICE_UUID.upper(), characteristics=["w", "n"]),
            SimpleNamespace(uuid="00001800-0000-1000-8000-00805f9b34fb", characteristics=[]),
        ]
        self.writes: list[tuple[object, bytes, bool]] = []
        self.notify = None
        FakeClient.instances.append(self)

    async def connect(self) -> None:
        if FakeClient.connect_error is not None:
            raise FakeClient.connect_error

    async def disconnect(self) -> None:
        if self.disconnected_callback is not None:
            self.disconnected_callback(self)

    async def start_notify(self, characteristic, callback) -> None:
        self.notify = callback

    async def stop_notify(self, characteristic) -> None:
        raise FakeBleakError("not subscribed")

    async def read_gatt_char(self, characteristic) -> bytearray:
        return bytearray(b"WoHand")

    async def write_gatt_char(self, characteristic, data, response=False) -> None:
        self.writes.append((characteristic, bytes(data), response))


class FakeScanner:
    fail = False
    instances: list[FakeScanner] = []

    def __init__(self, detection_callback=None) -> None:
        self.detection_callback = detection_callback
        self.started = False
        FakeScanner.instances.append(self)

    async def start(self) -> None:
        if FakeScanner.fail:
            raise FakeBleakError("adapter is off")
        self.started = True

    async def stop(self) -> None:
        self.started = False


@pytest.fixture
def fake_bleak(monkeypatch):
    FakeClient.instances = []
    FakeClient.connect_error = None
    FakeScanner.fail = False
    FakeScanner.instances = []
    module = SimpleNamespace(BleakClient=FakeClient, BleakScanner=FakeScanner, BleakError=FakeBleakError)
    monkeypatch.setattr(ble_gatt, "_bleak", lambda: module)
    return module


def test_raw_advertisement_restores_company_id() -> None:
    raw = raw_advertisement(
        "AA:BB:CC:DD:EE:FF",
        "AA:BB:CC:DD:EE:FF",
        -48,
        {"0000fd3d-0000-1000-8000-00805f9b34fb": bytearray(b"\x48\x00\x64")},
        {0x0969: bytearray(bytes.fromhex("aabbccddeeff"))},
    )
    assert raw.id == "AA:BB:CC:DD:EE:FF"
    assert raw.address == "aa:bb:cc:dd:ee:ff"
    assert raw.rssi == -48
    assert raw.manufacturer_data == bytes.fromhex("6909aabbccddeeff")
    assert raw.service_data[0].data == b"\x48\x00\x64"


def test_raw_advertisement_orders_switchbot_service_data_first() -> None:
    raw = raw_advertisement(
        "id",
        None,
        None,
        {
            "0000feaa-0000-1000-8000-00805f9b34fb": b"\x00\x01\x02",
            "00000d00-0000-1000-8000-00805f9b34fb": b"\x48\x00\x64",
        },
        {0x004C: b"\x02\x15", 0x0969: b"\x01"},
    )
    assert [entry.uuid for entry in raw.service_data] == [
        "00000d00-0000-1000-8000-00805f9b34fb",
        "0000feaa-0000-1000-8000-00805f9b34fb",
    ]
    assert raw.manufacturer_data == b"\x69\x09\x01"
    assert raw.address == ""


def test_raw_advertisement_without_payloads() -> None:
    platform_id = "4B1D7C3E-0000-4000-8000-123456789ABC"
    raw = raw_advertisement(platform_id, platform_id, -70, None, None)
    assert raw.address == ""
    assert raw.service_data == ()
    assert raw.manufacturer_data is None


def test_raw_advertisement_other_company() -> None:
    raw = raw_advertisement("id", None, None, None, {0x004C: b"\x02\x15"})
    assert raw.manufacturer_data == b"\x4c\x00\x02\x15"


def test_peripheral_lifecycle(fake_bleak) -> None:
    device = SimpleNamespace(address="AA:BB:CC:DD:EE:FF")
    peripheral = BleakPeripheral(device)
    dropped: list[bool] = []
    peripheral.set_disconnect_callback(lambda: dropped.append(True))
    received: list[bytes] = []

    async def scenario() -> None:
        await peripheral.connect()
        assert peripheral.state == "connected"
        services = await peripheral.discover_services([SERVICE_UUID])
        assert len(services) == 1
        characteristics = await peripheral.discover_characteristics(services[0])
        await peripheral.subscribe(characteristics[1], received.append)
        FakeClient.instances[0].notify(None, bytearray(b"\x01\x02"))
        await peripheral.write(characteristics[0], b"\x57\x01\x00")
        assert await peripheral.read("name") == b"WoHand"
        await peripheral.disconnect()

    asyncio.run(scenario())
    assert peripheral.id == "AA:BB:CC:DD:EE:FF"
    assert peripheral.address == "AA:BB:CC:DD:EE:FF"
    assert received == [b"\x01\x02"]
    assert FakeClient.instances[0].writes == [("w", b"\x57\x01\x00", True)]
    assert dropped == [True]
    assert peripheral.state == "disconnected"


def test_peripheral_connect_failure(fake_bleak) -> None:
    FakeClient.connect_error = FakeBleakError("device not found")
    peripheral = BleakPeripheral("AA:BB:CC:DD:EE:FF")

    with pytest.raises(TransportConnectError, match="device not found"):
        asyncio.run(peripheral.connect())
    assert peripheral.state == "disconnected"


def test_peripheral_errors_are_wrapped(fake_bleak) -> None:
    peripheral = BleakPeripheral("AA:BB:CC:DD:EE:FF")

    async def scenario() -> None:
        with pytest.raises(TransportSendError, match="not connected"):
            await peripheral.write("w", b"\x00")
        await peripheral.connect()
        with pytest.raises(TransportSendError, match="not subscribed"):
            await peripheral.unsubscribe("n")

    asyncio.run(scenario())


def test_radio_initialize(fake_bleak) -> None:
    radio = BleakRadio()
    assert radio.state == "unknown"

    assert asyncio.run(radio.initialize()) == "poweredOn"
    assert asyncio.run(radio.initialize()) == "poweredOn"
    assert len(FakeScanner.instances) == 1


def test_radio_initialize_when_adapter_is_off(fake_bleak) -> None:
    FakeScanner.fail = True
    radio = BleakRadio()

    assert asyncio.run(radio.initialize()) == "poweredOff"
    assert radio.state == "poweredOff"


def test_radio_scan_delivers_raw_advertisements(fake_bleak) -> None:
    radio = BleakRadio()
    received = []

    async def scenario() -> None:
        await radio.start_scan(received.append)
        scanner = FakeScanner.instances[-1]
        assert scanner.started is True
        device = SimpleNamespace(address="AA:BB:CC:DD:EE:FF")
        advertisement = SimpleNamespace(
            rssi=-55,
            service_data={"0000fd3d-0000-1000-8000-00805f9b34fb": b"\x48\x00\x64"},
            manufacturer_data={0x0969: b"\xaa\xbb\xcc\xdd\xee\xff"},
        )
        scanner.detection_callback(device, advertisement)
        await radio.stop_scan()
        assert scanner.started is False

    asyncio.run(scenario())
    assert received[0].id == "AA:BB:CC:DD:EE:FF"
    assert received[0].rssi == -55
    assert radio.peripheral("AA:BB:CC:DD:EE:FF").address == "AA:BB:CC:DD:EE:FF"


def test_radio_scan_failure(fake_bleak) -> None:
    FakeScanner.fail = True
    radio = BleakRadio()

    with pytest.raises(RadioNotReadyError, match="adapter is off"):
        asyncio.run(radio.start_scan(lambda raw: None))
    assert radio.state == "poweredOff"


def test_peripheral_connect_timeout(fake_bleak) -> None:
    FakeClient.connect_error = asyncio.TimeoutError()
    peripheral = BleakPeripheral("AA:BB:CC:DD:EE:FF")

    with pytest.raises(TransportTimeoutError, match="timed out"):
        asyncio.run(peripheral.connect())
    assert peripheral.state == "disconnected"
