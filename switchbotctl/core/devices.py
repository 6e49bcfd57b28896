"""Model-specific operations encoded on top of ``DeviceSession.command``."""

from __future__ import annotations

import inspect
import logging

from switchbotctl.core.errors import DeviceReturnedError, ParameterError
from switchbotctl.core.session import DeviceSession

LOGGER = logging.getLogger(__name__)

CURTAIN_MODE_DEFAULT = 0xFF
CURTAIN_MODE_QUIET = 0x01


def _require_int(value: object, name: str, low: int, high: int) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ParameterError(f"{name} must be an integer, not {type(value).__name__}")
    if not low <= value <= high:
        raise ParameterError(f"{name} must be between {low} and {high}, got {value}")
    return value


class DeviceOperator:
    model_codes: tuple[str, ...] = ()

    def __init__(self, session: DeviceSession) -> None:
        self.session = session

    @classmethod
    def actions(cls) -> tuple[str, ...]:
        return tuple(
            sorted(
                name
                for name, _ in inspect.getmembers(cls, inspect.iscoroutinefunction)
                if not name.startswith("_")
            )
        )

    async def _command(self, payload: bytes) -> bytes:
        response = await self.session.command(payload)
        LOGGER.debug("[%s] %s -> %s", self.session.id, payload.hex(), response.hex())
        return response


class Bot(DeviceOperator):
    """Bot press/switch actions; the humidifier reuses the same opcodes."""

    model_codes = ("H",)
    _ACCEPTED = (0x01, 0x05)

    async def _operate(self, action: int) -> None:
        response = await self._command(bytes([0x57, 0x01, action]))
        if len(response) != 3 or response[0] not in self._ACCEPTED:
            raise DeviceReturnedError(response)

    async def press(self) -> None:
        await self._operate(0x00)

    async def turn_on(self) -> None:
        await self._operate(0x01)

    async def turn_off(self) -> None:
        await self._operate(0x02)

    async def down(self) -> None:
        await self._operate(0x03)

    async def up(self) -> None:
        await self._operate(0x04)


class Humidifier(Bot):
    model_codes = ("e",)


class Curtain(DeviceOperator):
    model_codes = ("c", "{")

    async def _operate(self, payload: bytes) -> None:
        response = await self._command(payload)
        if len(response) != 3 or response[0] != 0x01:
            raise DeviceReturnedError(response)

    async def open(self, mode: int = CURTAIN_MODE_DEFAULT) -> None:
        await self.run_to_pos(0, mode)

    async def close(self, mode: int = CURTAIN_MODE_DEFAULT) -> None:
        await self.run_to_pos(100, mode)

    async def pause(self) -> None:
        await self._operate(bytes([0x57, 0x0F, 0x45, 0x01, 0x00, 0xFF]))

    async def run_to_pos(self, percent: int, mode: int = CURTAIN_MODE_DEFAULT) -> None:
        if isinstance(percent, bool) or not isinstance(percent, int):
            raise ParameterError(f"percent must be an integer, not {type(percent).__name__}")
        mode = _require_int(mode, "mode", 0, 0xFF)
        percent = max(0, min(100, percent))
        await self._operate(bytes([0x57, 0x0F, 0x45, 0x01, 0x05, mode, percent]))


class BlindTilt(Curtain):
    model_codes = ("x",)

    async def open(self) -> None:
        await self._operate(bytes([0x57, 0x0F, 0x45, 0x01, 0x05, 0xFF, 50]))

    async def close_up(self) -> None:
        await self._operate(bytes([0x57, 0x0F, 0x45, 0x01, 0x05, 0xFF, 100]))

    async def close_down(self) -> None:
        await self._operate(bytes([0x57, 0x0F, 0x45, 0x01, 0x05, 0xFF, 0]))

    async def close(self) -> None:
        await self.close_down()

    async def run_to_pos(self, percent: int, mode: int = 0) -> None:
        percent = _require_int(percent, "percent", 0, 100)
        mode = _require_int(mode, "mode", 0, 1)
        await self._operate(bytes([0x57, 0x0F, 0x45, 0x01, 0x05, mode, percent]))


class _SwitchOperator(DeviceOperator):
    """Devices that answer with a two-byte status whose second byte is 0x00/0x80."""

    _READ: bytes = b""
    _SET: bytes = b""

    async def _operate(self, payload: bytes) -> bool:
        response = await self._command(payload)
        if len(response) != 2:
            raise DeviceReturnedError(
                response, f"Expecting a 2-byte response, got instead: 0x{response.hex()}"
            )
        code = response[1]
        if code not in (0x00, 0x80):
            raise DeviceReturnedError(response)
        return code == 0x80

    async def read_state(self) -> bool:
        return await self._operate(self._READ)

    async def set_state(self, args: bytes) -> bool:
        return await self._operate(self._SET + bytes(args))


class PlugMini(_SwitchOperator):
    model_codes = ("g", "j")
    _READ = bytes([0x57, 0x0F, 0x51, 0x01])
    _SET = bytes([0x57, 0x0F, 0x50, 0x01])

    async def turn_on(self) -> bool:
        return await self.set_state(bytes([0x01, 0x80]))

    async def turn_off(self) -> bool:
        return await self.set_state(bytes([0x01, 0x00]))

    async def toggle(self) -> bool:
        return await self.set_state(bytes([0x02, 0x80]))


class StripLight(_SwitchOperator):
    model_codes = ("r",)
    _READ = bytes([0x57, 0x0F, 0x4A, 0x01])
    _SET = bytes([0x57, 0x0F, 0x49, 0x01])

    async def turn_on(self) -> bool:
        return await self.set_state(bytes([0x01, 0x01]))

    async def turn_off(self) -> bool:
        return await self.set_state(bytes([0x01, 0x02]))

    async def set_brightness(self, brightness: int) -> bool:
        brightness = _require_int(brightness, "brightness", 0, 100)
        return await self.set_state(bytes([0x02, 0x14, brightness]))

    async def set_rgb(self, brightness: int, red: int, green: int, blue: int) -> bool:
        for value, name in ((brightness, "brightness"), (red, "red"), (green, "green"), (blue, "blue")):
            if isinstance(value, bool) or not isinstance(value, int):
                raise ParameterError(f"{name} must be an integer, not {type(value).__name__}")
        values = [max(0, min(100, brightness))] + [max(0, min(255, v)) for v in (red, green, blue)]
        return await self.set_state(bytes([0x02, 0x12, *values]))


OPERATORS: tuple[type[DeviceOperator], ...] = (Bot, Humidifier, Curtain, BlindTilt, PlugMini, StripLight)


def operator_for(session: DeviceSession) -> DeviceOperator:
    for operator_cls in OPERATORS:
        if session.model in operator_cls.model_codes:
            return operator_cls(session)
    name = session.model_friendly_name or session.model or "unknown"
    raise ParameterError(f"No operations are available for model '{name}'")
