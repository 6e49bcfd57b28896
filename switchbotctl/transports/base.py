"""Transport interfaces."""

from __future__ import annotations

from collections.abc import Callable, Sequence
from typing import Any, Protocol

from switchbotctl.core.model import RawAdvertisement

RADIO_READY = "poweredOn"

NotificationHandler = Callable[[bytes], None]
AdvertisementHandler = Callable[[RawAdvertisement], None]


class GattHandle(Protocol):
    """A discovered service or characteristic; only its UUID is inspected."""

    uuid: str


class Peripheral(Protocol):
    """One remote accessory as seen by the BLE stack."""

    @property
    def id(self) -> str: ...

    @property
    def address(self) -> str: ...

    @property
    def state(self) -> str:
        """One of disconnected, connecting, connected, disconnecting."""

    def set_disconnect_callback(self, callback: Callable[[], None] | None) -> None:
        """Register the callable invoked whenever the link drops."""

    async def connect(self) -> None: ...

    async def disconnect(self) -> None: ...

    async def discover_services(self, uuids: Sequence[str]) -> list[GattHandle]: ...

    async def discover_characteristics(self, service: GattHandle) -> list[GattHandle]: ...

    async def subscribe(self, characteristic: Any, handler: NotificationHandler) -> None: ...

    async def unsubscribe(self, characteristic: Any) -> None: ...

    async def read(self, characteristic: Any) -> bytes: ...

    async def write(self, characteristic: Any, data: bytes) -> None: ...


class Radio(Protocol):
    """The host adapter: power state, scanning, and peripheral lookup."""

    @property
    def state(self) -> str: ...

    async def initialize(self) -> str:
        """Probe the adapter and return its state."""

    async def start_scan(self, handler: AdvertisementHandler) -> None: ...

    async def stop_scan(self) -> None: ...

    def peripheral(self, peripheral_id: str) -> Peripheral: ...
