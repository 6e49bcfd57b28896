"""Core data models used across decoder, session, service, and CLI."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from switchbotctl.core.records import StatusRecord


class ConnectionState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    DISCONNECTING = "disconnecting"


@dataclass(frozen=True)
class ModelInfo:
    code: str
    name: str
    friendly_name: str


@dataclass(frozen=True)
class DeviceIdentity:
    id: str
    address: str
    model: str
    model_name: str
    model_friendly_name: str


@dataclass(frozen=True)
class CharacteristicSet:
    write: Any
    notify: Any
    device: Any | None = None


@dataclass(frozen=True)
class ServiceData:
    uuid: str
    data: bytes


@dataclass(frozen=True)
class RawAdvertisement:
    id: str
    address: str
    rssi: int | None
    service_data: tuple[ServiceData, ...] = ()
    manufacturer_data: bytes | None = None


@dataclass(frozen=True)
class ParsedAdvertisement:
    id: str
    address: str
    rssi: int | None
    status: StatusRecord

    def as_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "address": self.address,
            "rssi": self.rssi,
            "serviceData": self.status.as_dict(),
        }


@dataclass(frozen=True)
class GattSpec:
    service_uuid: str
    write_char_uuid: str
    notify_char_uuid: str
    device_char_uuid: str | None = None


@dataclass(frozen=True)
class TimeoutSpec:
    discovery_s: float = 5.0
    connect_s: float = 10.0
    read_s: float = 3.0
    write_s: float = 3.0
    command_s: float = 3.0


@dataclass(frozen=True)
class DeviceAlias:
    name: str
    address: str
    model: str | None = None


@dataclass(frozen=True)
class Settings:
    gatt: GattSpec
    timeouts: TimeoutSpec = TimeoutSpec()
    scan_duration_s: float = 5.0
    aliases: dict[str, DeviceAlias] = field(default_factory=dict)


@dataclass(frozen=True)
class CommandResult:
    target: DeviceIdentity
    payload_hex: str
    response_hex: str


@dataclass(frozen=True)
class OperationResult:
    target: DeviceIdentity
    action: str
    value: Any = None
