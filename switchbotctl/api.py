"""Stable public API for building tooling on top of switchbotctl.

This module is the supported integration surface for third-party callers.
Avoid importing from private/internal modules unless intentionally depending on
non-stable internals. Async callers can use ``SwitchBotService`` and
``DeviceSession`` directly; ``Client`` wraps them for synchronous scripts.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Coroutine
from typing import Any, TypeVar

from switchbotctl.core.advertising import decode, parse_advertisement
from switchbotctl.core.devices import (
    BlindTilt,
    Bot,
    Curtain,
    DeviceOperator,
    Humidifier,
    PlugMini,
    StripLight,
    operator_for,
)
from switchbotctl.core.errors import (
    BusyError,
    CharacteristicNotFoundError,
    CommandTimeoutError,
    ConfigLoadError,
    ConfigValidationError,
    DeviceReturnedError,
    DeviceSelectionError,
    DiscoveredWhileDisconnectedError,
    DiscoveryTimeoutError,
    DisconnectedWhileWaitingError,
    ParameterError,
    RadioNotReadyError,
    ReadTimeoutError,
    ServiceNotFoundError,
    SessionError,
    SessionTimeoutError,
    SubscribeFailedError,
    SwitchBotError,
    TransportConnectError,
    TransportError,
    TransportSendError,
    TransportTimeoutError,
    WriteTimeoutError,
)
from switchbotctl.core.model import (
    CommandResult,
    ConnectionState,
    DeviceIdentity,
    ModelInfo,
    OperationResult,
    ParsedAdvertisement,
    RawAdvertisement,
    ServiceData,
    Settings,
)
from switchbotctl.core.records import StatusRecord
from switchbotctl.core.service import SwitchBotService
from switchbotctl.core.session import DeviceSession
from switchbotctl.transports.base import Peripheral, Radio

__all__ = [
    "SwitchBotError",
    "ConfigLoadError",
    "ConfigValidationError",
    "DeviceReturnedError",
    "DeviceSelectionError",
    "ParameterError",
    "SessionError",
    "SessionTimeoutError",
    "RadioNotReadyError",
    "BusyError",
    "ServiceNotFoundError",
    "CharacteristicNotFoundError",
    "SubscribeFailedError",
    "DiscoveryTimeoutError",
    "DiscoveredWhileDisconnectedError",
    "WriteTimeoutError",
    "ReadTimeoutError",
    "CommandTimeoutError",
    "DisconnectedWhileWaitingError",
    "TransportError",
    "TransportConnectError",
    "TransportSendError",
    "TransportTimeoutError",
    "CommandResult",
    "ConnectionState",
    "DeviceIdentity",
    "ModelInfo",
    "OperationResult",
    "ParsedAdvertisement",
    "RawAdvertisement",
    "ServiceData",
    "Settings",
    "StatusRecord",
    "DeviceSession",
    "SwitchBotService",
    "Peripheral",
    "Radio",
    "DeviceOperator",
    "Bot",
    "Humidifier",
    "Curtain",
    "BlindTilt",
    "PlugMini",
    "StripLight",
    "operator_for",
    "decode",
    "parse_advertisement",
    "Client",
]

_T = TypeVar("_T")


class Client:
    """Synchronous client for switchbotctl core capabilities.

    Every method runs one complete operation (scan, resolve the target,
    open a session, act, close the session) on its own event loop, so a
    `Client` suits scripts and CLIs rather than long-running async apps.
    """

    def __init__(self, *, radio: Radio | None = None, settings: Settings | None = None) -> None:
        self._service = SwitchBotService(radio=radio, settings=settings)

    @property
    def load_warnings(self) -> tuple[str, ...]:
        return self._service.load_warnings

    @property
    def service(self) -> SwitchBotService:
        return self._service

    def _run(self, coro: Coroutine[Any, Any, _T]) -> _T:
        return asyncio.run(coro)

    def list_models(self) -> list[ModelInfo]:
        return self._service.list_models()

    def scan(
        self,
        *,
        duration_s: float | None = None,
        model: str | None = None,
        device_id: str | None = None,
    ) -> list[ParsedAdvertisement]:
        return self._run(self._service.scan(duration_s=duration_s, model=model, device_id=device_id))

    async def _with_target(
        self,
        device_hint: str | None,
        model: str | None,
        action: Callable[[DeviceSession], Awaitable[_T]],
    ) -> tuple[DeviceSession, _T]:
        session = await self._service.resolve_target(device_hint, model=model)
        return session, await action(session)

    @staticmethod
    def _identity(session: DeviceSession) -> DeviceIdentity:
        if session.identity is not None:
            return session.identity
        return DeviceIdentity(id=session.id, address=session.address, model="", model_name="", model_friendly_name="")

    def command(
        self,
        payload: bytes,
        *,
        device_hint: str | None = None,
        model: str | None = None,
    ) -> CommandResult:
        session, response = self._run(
            self._with_target(device_hint, model, lambda s: s.command(payload))
        )
        return CommandResult(
            target=self._identity(session),
            payload_hex=bytes(payload).hex(),
            response_hex=response.hex(),
        )

    def read_device_name(self, *, device_hint: str | None = None, model: str | None = None) -> str:
        _, name = self._run(self._with_target(device_hint, model, lambda s: s.read_device_name()))
        return name

    def set_device_name(self, name: str, *, device_hint: str | None = None, model: str | None = None) -> None:
        self._run(self._with_target(device_hint, model, lambda s: s.set_device_name(name)))

    def operate(
        self,
        action: str,
        *args: Any,
        device_hint: str | None = None,
        model: str | None = None,
    ) -> OperationResult:
        """Run a model-specific action such as ``press`` or ``run_to_pos``."""

        async def _act(session: DeviceSession) -> Any:
            operator = operator_for(session)
            if action not in operator.actions():
                available = ", ".join(operator.actions())
                raise ParameterError(
                    f"{session.model_friendly_name} does not support '{action}'. Available: {available}"
                )
            return await getattr(operator, action)(*args)

        session, value = self._run(self._with_target(device_hint, model, _act))
        return OperationResult(target=self._identity(session), action=action, value=value)
