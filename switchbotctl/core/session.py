"""Connection state machine and command/response channel for one accessory."""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from typing import Any

from switchbotctl.core.config_loader import canonical_uuid, default_settings
from switchbotctl.core.errors import (
    BusyError,
    CharacteristicNotFoundError,
    CommandTimeoutError,
    ConfigValidationError,
    DiscoveredWhileDisconnectedError,
    DiscoveryTimeoutError,
    DisconnectedWhileWaitingError,
    ParameterError,
    RadioNotReadyError,
    ReadTimeoutError,
    ServiceNotFoundError,
    SubscribeFailedError,
    TransportConnectError,
    WriteTimeoutError,
)
from switchbotctl.core.model import CharacteristicSet, ConnectionState, DeviceIdentity, Settings
from switchbotctl.transports.base import RADIO_READY, Peripheral, Radio

LOGGER = logging.getLogger(__name__)

_MAX_NAME_BYTES = 100
_BASE_UUID_SUFFIX = "-0000-1000-8000-00805f9b34fb"

LifecycleCallback = Callable[[], Any]


def _short_uuid(uuid: str) -> str:
    if uuid.startswith("0000") and uuid.endswith(_BASE_UUID_SUFFIX):
        return uuid[4:8]
    return uuid


def _uuid_matches(uuid: str, expected: str | None) -> bool:
    if expected is None:
        return False
    try:
        return canonical_uuid(uuid) == expected
    except ConfigValidationError:
        return False


class DeviceSession:
    """Connection lifecycle and command channel for one physical accessory.

    A session is reusable across any number of connect/disconnect cycles.
    Operations that find the session disconnected open it for their own
    duration and close it again afterward; a caller that wants the link to
    persist across operations calls :meth:`connect` first.
    """

    def __init__(
        self,
        peripheral: Peripheral,
        radio: Radio,
        identity: DeviceIdentity | None = None,
        *,
        settings: Settings | None = None,
    ) -> None:
        self._peripheral = peripheral
        self._radio = radio
        self._identity = identity
        self._settings = settings or default_settings()
        self._state = ConnectionState.DISCONNECTED
        self._characteristics: CharacteristicSet | None = None
        self._explicitly_connected = False
        self._pending: asyncio.Future[bytes] | None = None
        self._discovery_abort: asyncio.Future[None] | None = None
        self._command_lock = asyncio.Lock()
        self._announced = False
        self._callback_tasks: set[asyncio.Future[Any]] = set()
        self.on_connect: LifecycleCallback | None = None
        self.on_disconnect: LifecycleCallback | None = None
        peripheral.set_disconnect_callback(self._handle_disconnect)

    def __repr__(self) -> str:
        return f"DeviceSession(id={self.id!r}, address={self.address!r}, state={self._state.value})"

    @property
    def identity(self) -> DeviceIdentity | None:
        return self._identity

    @property
    def id(self) -> str:
        return self._identity.id if self._identity else self._peripheral.id

    @property
    def address(self) -> str:
        return self._identity.address if self._identity else self._peripheral.address

    @property
    def model(self) -> str | None:
        return self._identity.model if self._identity else None

    @property
    def model_name(self) -> str | None:
        return self._identity.model_name if self._identity else None

    @property
    def model_friendly_name(self) -> str | None:
        return self._identity.model_friendly_name if self._identity else None

    @property
    def connection_state(self) -> ConnectionState:
        return self._state

    @property
    def characteristics(self) -> CharacteristicSet | None:
        return self._characteristics

    @property
    def explicitly_connected(self) -> bool:
        return self._explicitly_connected

    @property
    def has_pending_command(self) -> bool:
        return self._pending is not None

    def _set_state(self, state: ConnectionState) -> None:
        if state is not self._state:
            LOGGER.debug("[%s] %s -> %s", self.id, self._state.value, state.value)
        self._state = state

    async def connect(self) -> None:
        previous = self._explicitly_connected
        self._explicitly_connected = True
        try:
            await self._connect()
        except BaseException:
            self._explicitly_connected = previous
            raise

    async def disconnect(self) -> None:
        self._explicitly_connected = False
        await self._disconnect()

    @asynccontextmanager
    async def session(self) -> AsyncIterator[DeviceSession]:
        """Borrow a connected session for one operation.

        An explicitly connected session is reused as is; otherwise the link
        opened here is closed on exit, whether the body succeeded or not.
        """
        await self._connect()
        try:
            yield self
        finally:
            if not self._explicitly_connected:
                await self._disconnect()

    async def _connect(self) -> None:
        radio_state = self._radio.state
        if radio_state != RADIO_READY:
            raise RadioNotReadyError(f"Bluetooth radio is {radio_state}, expected {RADIO_READY}")
        if self._state is ConnectionState.CONNECTED:
            return
        if self._state in (ConnectionState.CONNECTING, ConnectionState.DISCONNECTING):
            raise BusyError(f"Device {self.id} is {self._state.value}; try again later")

        self._set_state(ConnectionState.CONNECTING)
        abort = asyncio.get_running_loop().create_future()
        self._discovery_abort = abort
        try:
            await self._open_link()
            characteristics = await self._discover(abort)
        except BaseException:
            await self._abandon_connect()
            raise
        finally:
            if self._discovery_abort is abort:
                self._discovery_abort = None

        self._characteristics = characteristics
        self._set_state(ConnectionState.CONNECTED)
        self._announced = True
        await self._run_callback(self.on_connect)

    async def _open_link(self) -> None:
        timeout_s = self._settings.timeouts.connect_s
        try:
            await asyncio.wait_for(self._peripheral.connect(), timeout_s)
        except asyncio.TimeoutError:
            raise TransportConnectError(f"Timed out after {timeout_s:g} s connecting to {self.id}") from None

    async def _discover(self, abort: asyncio.Future[None]) -> CharacteristicSet:
        timeout_s = self._settings.timeouts.discovery_s
        discovery = asyncio.ensure_future(self._discover_characteristics())
        try:
            done, _ = await asyncio.wait(
                {discovery, abort}, timeout=timeout_s, return_when=asyncio.FIRST_COMPLETED
            )
            if abort in done:
                raise DiscoveredWhileDisconnectedError(f"Device {self.id} disconnected during discovery")
            if discovery in done:
                return discovery.result()
            raise DiscoveryTimeoutError(f"Discovery on {self.id} did not finish within {timeout_s:g} s")
        finally:
            if not discovery.done():
                discovery.cancel()
            await asyncio.gather(discovery, return_exceptions=True)

    async def _discover_characteristics(self) -> CharacteristicSet:
        gatt = self._settings.gatt
        services = await self._peripheral.discover_services([gatt.service_uuid])
        primary = [service for service in services if _uuid_matches(service.uuid, gatt.service_uuid)]
        if not primary:
            raise ServiceNotFoundError(f"Primary service {gatt.service_uuid} not found on {self.id}")

        write = notify = device = None
        for service in primary:
            for characteristic in await self._peripheral.discover_characteristics(service):
                if _uuid_matches(characteristic.uuid, gatt.write_char_uuid):
                    write = characteristic
                elif _uuid_matches(characteristic.uuid, gatt.notify_char_uuid):
                    notify = characteristic
                elif _uuid_matches(characteristic.uuid, gatt.device_char_uuid):
                    device = characteristic

        if write is None or notify is None:
            missing = ", ".join(
                uuid
                for uuid, found in ((gatt.write_char_uuid, write), (gatt.notify_char_uuid, notify))
                if found is None
            )
            raise CharacteristicNotFoundError(f"Device {self.id} is missing characteristic(s): {missing}")

        try:
            await self._peripheral.subscribe(notify, self._handle_notification)
        except Exception as exc:
            raise SubscribeFailedError(f"Could not subscribe to notifications on {self.id}: {exc}") from exc

        return CharacteristicSet(write=write, notify=notify, device=device)

    async def _abandon_connect(self) -> None:
        self._characteristics = None
        try:
            await self._peripheral.disconnect()
        except Exception as exc:
            LOGGER.warning("[%s] Teardown after failed connect raised: %s", self.id, exc)
        self._set_state(ConnectionState.DISCONNECTED)

    async def _disconnect(self) -> None:
        if self._state is ConnectionState.DISCONNECTED:
            return
        if self._state in (ConnectionState.CONNECTING, ConnectionState.DISCONNECTING):
            raise BusyError(f"Device {self.id} is {self._state.value}; try again later")

        characteristics = self._characteristics
        self._characteristics = None
        self._set_state(ConnectionState.DISCONNECTING)
        try:
            if characteristics is not None:
                try:
                    await self._peripheral.unsubscribe(characteristics.notify)
                except Exception as exc:
                    LOGGER.warning("[%s] Unsubscribe failed during disconnect: %s", self.id, exc)
            await self._peripheral.disconnect()
        finally:
            # The transport callback normally got here first.
            self._handle_disconnect()

    def _handle_disconnect(self) -> None:
        self._characteristics = None
        # A connect in flight owns the state until it has torn down.
        if self._state is not ConnectionState.CONNECTING:
            self._set_state(ConnectionState.DISCONNECTED)

        pending = self._pending
        if pending is not None and not pending.done():
            pending.set_exception(
                DisconnectedWhileWaitingError(f"Device {self.id} disconnected while awaiting a response")
            )
        abort = self._discovery_abort
        if abort is not None and not abort.done():
            abort.set_result(None)

        if self._announced:
            self._announced = False
            self._schedule_callback(self.on_disconnect)

    def _handle_notification(self, data: bytes) -> None:
        LOGGER.debug("[%s] notification %s", self.id, bytes(data).hex())
        pending = self._pending
        if pending is None or pending.done():
            LOGGER.debug("[%s] no command awaiting this notification", self.id)
            return
        pending.set_result(bytes(data))

    async def _run_callback(self, callback: LifecycleCallback | None) -> None:
        if callback is None:
            return
        try:
            result = callback()
            if inspect.isawaitable(result):
                await result
        except Exception:
            LOGGER.exception("[%s] Lifecycle callback failed", self.id)

    def _schedule_callback(self, callback: LifecycleCallback | None) -> None:
        if callback is None:
            return
        try:
            result = callback()
        except Exception:
            LOGGER.exception("[%s] Lifecycle callback failed", self.id)
            return
        if inspect.isawaitable(result):
            task = asyncio.ensure_future(result)
            self._callback_tasks.add(task)
            task.add_done_callback(self._callback_done)

    def _callback_done(self, task: asyncio.Future[Any]) -> None:
        self._callback_tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            LOGGER.error("[%s] Lifecycle callback failed", self.id, exc_info=task.exception())

    async def read(self, characteristic: Any) -> bytes:
        timeout_s = self._settings.timeouts.read_s
        try:
            data = await asyncio.wait_for(self._peripheral.read(characteristic), timeout_s)
        except asyncio.TimeoutError:
            raise ReadTimeoutError(f"Read on {self.id} did not finish within {timeout_s:g} s") from None
        return bytes(data)

    async def write(self, characteristic: Any, data: bytes) -> None:
        timeout_s = self._settings.timeouts.write_s
        try:
            await asyncio.wait_for(self._peripheral.write(characteristic, bytes(data)), timeout_s)
        except asyncio.TimeoutError:
            raise WriteTimeoutError(f"Write on {self.id} did not finish within {timeout_s:g} s") from None

    async def command(self, payload: bytes | bytearray | memoryview, *, timeout_s: float | None = None) -> bytes:
        """Write ``payload`` and return the next notification verbatim.

        Concurrent callers on one session are served one at a time.
        """
        if not isinstance(payload, (bytes, bytearray, memoryview)):
            raise TypeError(f"command payload must be bytes-like, not {type(payload).__name__}")
        data = bytes(payload)

        async with self._command_lock:
            async with self.session():
                if timeout_s is None:
                    timeout_s = self._settings.timeouts.command_s
                return await self._exchange(data, timeout_s)

    async def _exchange(self, data: bytes, timeout_s: float) -> bytes:
        characteristics = self._characteristics
        if characteristics is None:
            raise DisconnectedWhileWaitingError(f"Device {self.id} disconnected before the command was sent")

        pending: asyncio.Future[bytes] = asyncio.get_running_loop().create_future()
        self._pending = pending
        try:
            LOGGER.debug("[%s] command %s", self.id, data.hex())
            await self.write(characteristics.write, data)
            try:
                return await asyncio.wait_for(pending, timeout_s)
            except asyncio.TimeoutError:
                raise CommandTimeoutError(f"No response from {self.id} within {timeout_s:g} s") from None
        finally:
            if not pending.done():
                pending.cancel()
            elif not pending.cancelled():
                # Retrieve a drop that raced a failing write.
                pending.exception()
            self._pending = None

    def _device_characteristic(self) -> Any:
        characteristics = self._characteristics
        if characteristics is None or characteristics.device is None:
            uuid = _short_uuid(self._settings.gatt.device_char_uuid or "")
            raise CharacteristicNotFoundError(f"The device does not support the characteristic UUID 0x{uuid}")
        return characteristics.device

    async def read_device_name(self) -> str:
        async with self.session():
            data = await self.read(self._device_characteristic())
        return data.decode("utf-8", errors="replace")

    async def set_device_name(self, name: str) -> None:
        if not isinstance(name, str):
            raise ParameterError(f"Device name must be a string, not {type(name).__name__}")
        encoded = name.encode("utf-8")
        if not 1 <= len(encoded) <= _MAX_NAME_BYTES:
            raise ParameterError(
                f"Device name must be 1 to {_MAX_NAME_BYTES} bytes of UTF-8, got {len(encoded)}"
            )
        async with self.session():
            await self.write(self._device_characteristic(), encoded)
