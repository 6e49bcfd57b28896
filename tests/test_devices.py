from __future__ import annotations

import asyncio

import pytest

from switchbotctl.core.devices import (
    CURTAIN_MODE_QUIET,
    BlindTilt,
    Bot,
    Curtain,
    Humidifier,
    PlugMini,
    StripLight,
    operator_for,
)
from switchbotctl.core.errors import DeviceReturnedError, ParameterError


class RecordingSession:
    def __init__(self, model: str | None = "H", responses: list[bytes] | None = None) -> None:
        self.id = "aabbccddeeff"
        self.model = model
        self.model_friendly_name = None
        self.responses = list(responses or [])
        self.payloads: list[bytes] = []

    async def command(self, payload: bytes) -> bytes:
        self.payloads.append(payload)
        return self.responses.pop(0)


@pytest.mark.parametrize(
    ("action", "opcode"),
    [("press", 0x00), ("turn_on", 0x01), ("turn_off", 0x02), ("down", 0x03), ("up", 0x04)],
)
def test_bot_actions(action: str, opcode: int) -> None:
    session = RecordingSession(responses=[b"\x01\xff\x00"])
    asyncio.run(getattr(Bot(session), action)())
    assert session.payloads == [bytes([0x57, 0x01, opcode])]


def test_bot_accepts_status_five() -> None:
    session = RecordingSession(responses=[b"\x05\xff\x00"])
    asyncio.run(Bot(session).press())


@pytest.mark.parametrize("response", [b"\x02\xff\x00", b"\x01", b"\x01\xff\x00\x00"])
def test_bot_rejects_error_response(response: bytes) -> None:
    session = RecordingSession(responses=[response])
    with pytest.raises(DeviceReturnedError) as excinfo:
        asyncio.run(Bot(session).press())
    assert excinfo.value.response == response
    assert f"0x{response.hex()}" in str(excinfo.value)


def test_humidifier_reuses_bot_opcodes() -> None:
    session = RecordingSession(model="e", responses=[b"\x01\x00\x00"])
    operator = operator_for(session)
    assert isinstance(operator, Humidifier)
    asyncio.run(operator.turn_on())
    assert session.payloads == [bytes.fromhex("570101")]


def test_curtain_open_close_pause() -> None:
    session = RecordingSession(model="c", responses=[b"\x01\x00\x00"] * 3)
    curtain = Curtain(session)

    async def scenario() -> None:
        await curtain.open()
        await curtain.close(CURTAIN_MODE_QUIET)
        await curtain.pause()

    asyncio.run(scenario())
    assert session.payloads == [
        bytes.fromhex("570f450105ff00"),
        bytes.fromhex("570f4501050164"),
        bytes.fromhex("570f450100ff"),
    ]


@pytest.mark.parametrize(("percent", "sent"), [(42, 42), (150, 100), (-5, 0)])
def test_curtain_position_is_clamped(percent: int, sent: int) -> None:
    session = RecordingSession(model="{", responses=[b"\x01\x00\x00"])
    asyncio.run(Curtain(session).run_to_pos(percent))
    assert session.payloads == [bytes([0x57, 0x0F, 0x45, 0x01, 0x05, 0xFF, sent])]


@pytest.mark.parametrize(("args", "message"), [(("50",), "percent"), ((50, 256), "mode"), ((True,), "percent")])
def test_curtain_position_parameters(args: tuple, message: str) -> None:
    session = RecordingSession(model="c")
    with pytest.raises(ParameterError, match=message):
        asyncio.run(Curtain(session).run_to_pos(*args))
    assert session.payloads == []


def test_curtain_rejects_error_response() -> None:
    session = RecordingSession(model="c", responses=[b"\x05\x00\x00"])
    with pytest.raises(DeviceReturnedError):
        asyncio.run(Curtain(session).pause())


def test_blind_tilt_positions() -> None:
    session = RecordingSession(model="x", responses=[b"\x01\x00\x00"] * 5)
    blind = BlindTilt(session)

    async def scenario() -> None:
        await blind.open()
        await blind.close_up()
        await blind.close_down()
        await blind.close()
        await blind.run_to_pos(30, 1)

    asyncio.run(scenario())
    assert [payload[-2:] for payload in session.payloads] == [
        bytes([0xFF, 50]),
        bytes([0xFF, 100]),
        bytes([0xFF, 0]),
        bytes([0xFF, 0]),
        bytes([0x01, 30]),
    ]


@pytest.mark.parametrize("args", [(101,), (-1,), (50, 2)])
def test_blind_tilt_rejects_out_of_range(args: tuple) -> None:
    session = RecordingSession(model="x")
    with pytest.raises(ParameterError):
        asyncio.run(BlindTilt(session).run_to_pos(*args))


@pytest.mark.parametrize(
    ("action", "payload"),
    [
        ("read_state", "570f5101"),
        ("turn_on", "570f50010180"),
        ("turn_off", "570f50010100"),
        ("toggle", "570f50010280"),
    ],
)
def test_plug_mini_payloads(action: str, payload: str) -> None:
    session = RecordingSession(model="g", responses=[b"\x01\x80"])
    assert asyncio.run(getattr(PlugMini(session), action)()) is True
    assert session.payloads == [bytes.fromhex(payload)]


def test_plug_mini_reports_off() -> None:
    session = RecordingSession(model="j", responses=[b"\x01\x00"])
    assert asyncio.run(PlugMini(session).turn_off()) is False


def test_switch_rejects_wrong_length() -> None:
    session = RecordingSession(model="g", responses=[b"\x01\x80\x00"])
    with pytest.raises(DeviceReturnedError, match="Expecting a 2-byte response, got instead: 0x018000"):
        asyncio.run(PlugMini(session).read_state())


def test_switch_rejects_unknown_status() -> None:
    session = RecordingSession(model="g", responses=[b"\x01\x01"])
    with pytest.raises(DeviceReturnedError):
        asyncio.run(PlugMini(session).read_state())


def test_strip_light_payloads() -> None:
    session = RecordingSession(model="r", responses=[b"\x01\x80"] * 5)
    strip = StripLight(session)

    async def scenario() -> None:
        await strip.read_state()
        await strip.turn_on()
        await strip.turn_off()
        await strip.set_brightness(40)
        await strip.set_rgb(120, 255, -3, 300)

    asyncio.run(scenario())
    assert session.payloads == [
        bytes.fromhex("570f4a01"),
        bytes.fromhex("570f49010101"),
        bytes.fromhex("570f49010102"),
        bytes.fromhex("570f4901021428"),
        bytes.fromhex("570f4901021264ff00ff"),
    ]


def test_strip_light_parameter_errors() -> None:
    session = RecordingSession(model="r")
    strip = StripLight(session)
    with pytest.raises(ParameterError):
        asyncio.run(strip.set_brightness(101))
    with pytest.raises(ParameterError, match="green"):
        asyncio.run(strip.set_rgb(50, 10, 1.5, 10))
    assert session.payloads == []


@pytest.mark.parametrize(
    ("model", "expected"),
    [("H", Bot), ("e", Humidifier), ("c", Curtain), ("{", Curtain), ("x", BlindTilt), ("g", PlugMini), ("r", StripLight)],
)
def test_operator_for(model: str, expected: type) -> None:
    assert type(operator_for(RecordingSession(model=model))) is expected


def test_operator_for_unsupported_model() -> None:
    with pytest.raises(ParameterError, match="'T'"):
        operator_for(RecordingSession(model="T"))


def test_actions_lists_public_coroutines() -> None:
    assert Bot.actions() == ("down", "press", "turn_off", "turn_on", "up")
    assert "run_to_pos" in Curtain.actions()
    assert "close_up" in BlindTilt.actions()
    assert "_operate" not in PlugMini.actions()
    assert set(PlugMini.actions()) == {"read_state", "set_state", "toggle", "turn_off", "turn_on"}
