"""Per-model advertisement decoders.

Every decoder takes the model's ``ModelInfo`` plus the raw service-data and
manufacturer-data buffers and returns a status record, or ``None`` when the
buffers do not have the lengths that model advertises. Manufacturer-data
offsets count the two-byte company identifier at the start of the buffer.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass

from switchbotctl.core.bitfield import (
    bits,
    clamp_percent,
    decode_temperature,
    flag,
    percent,
    word15,
)
from switchbotctl.core.model import ModelInfo
from switchbotctl.core.records import (
    BlindTiltStatus,
    BotStatus,
    ContactSensorStatus,
    CurtainStatus,
    Hub2Status,
    HumidifierStatus,
    LightStatus,
    LockStatus,
    MeterStatus,
    MotionSensorStatus,
    PlugMiniStatus,
    StatusRecord,
    StripLightStatus,
)

LOGGER = logging.getLogger(__name__)

Decoder = Callable[[ModelInfo, bytes, bytes], StatusRecord | None]

LOCK_STATUS = {
    0b0000000: "LOCKED",
    0b0010000: "UNLOCKED",
    0b0100000: "LOCKING",
    0b0110000: "UNLOCKING",
    0b1000000: "LOCKING_STOP",
    0b1010000: "UNLOCKING_STOP",
    0b1100000: "NOT_FULLY_LOCKED",  # EU lock type only
}

_HUMIDIFIER_QUICK_GEARS = {101: 33, 102: 66, 103: 100}


@dataclass(frozen=True)
class ModelDecoder:
    info: ModelInfo
    decode: Decoder


def lock_status(code: int) -> str:
    return LOCK_STATUS.get(code, "UNKNOWN")


def _reject(info: ModelInfo, buffer: str, length: int, expected: str) -> None:
    LOGGER.debug(
        "[%s] %s length %d, expected %s; ignoring advertisement",
        info.name,
        buffer,
        length,
        expected,
    )
    return None


def _decode_bot(info: ModelInfo, service_data: bytes, manufacturer_data: bytes) -> BotStatus | None:
    if len(service_data) != 3:
        return _reject(info, "service data", len(service_data), "3")

    byte1, byte2 = service_data[1], service_data[2]
    return BotStatus(
        model=info.code,
        model_name=info.name,
        model_friendly_name=info.friendly_name,
        mode=flag(byte1, 0b10000000),
        state=not flag(byte1, 0b01000000),
        battery=percent(byte2),
    )


def _decode_curtain(info: ModelInfo, service_data: bytes, manufacturer_data: bytes) -> CurtainStatus | None:
    if len(service_data) not in (5, 6):
        return _reject(info, "service data", len(service_data), "5 or 6")

    byte1, byte2 = service_data[1], service_data[2]
    # Newer firmware moves position and battery into the manufacturer data.
    if len(manufacturer_data) >= 13:
        device_data = manufacturer_data[8:11]
        battery_byte = manufacturer_data[12]
    elif len(manufacturer_data) >= 11:
        device_data = manufacturer_data[8:11]
        battery_byte = byte2
    else:
        device_data = service_data[3:6]
        battery_byte = byte2

    return CurtainStatus(
        model=info.code,
        model_name=info.name,
        model_friendly_name=info.friendly_name,
        calibration=flag(byte1, 0b01000000),
        battery=percent(battery_byte),
        in_motion=flag(device_data[0], 0b10000000),
        position=clamp_percent(percent(device_data[0])),
        light_level=bits(device_data[1], 0b11110000, 4),
        device_chain=bits(device_data[1], 0b00000111),
    )


def _decode_blind_tilt(info: ModelInfo, service_data: bytes, manufacturer_data: bytes) -> BlindTiltStatus | None:
    if len(manufacturer_data) < 11:
        return _reject(info, "manufacturer data", len(manufacturer_data), ">= 11")

    byte2 = service_data[2]
    device_data = manufacturer_data[8:11]
    return BlindTiltStatus(
        model=info.code,
        model_name=info.name,
        model_friendly_name=info.friendly_name,
        calibration=flag(device_data[1], 0b00000001),
        battery=percent(byte2),
        in_motion=flag(byte2, 0b10000000),
        tilt=clamp_percent(percent(device_data[2])),
        light_level=bits(device_data[1], 0b11110000, 4),
        sequence_number=device_data[0],
    )


def _decode_humidifier(info: ModelInfo, service_data: bytes, manufacturer_data: bytes) -> HumidifierStatus | None:
    if len(service_data) != 8:
        return _reject(info, "service data", len(service_data), "8")

    byte1, byte4 = service_data[1], service_data[4]
    auto_mode = flag(byte4, 0b10000000)
    level = percent(byte4)  # 0-100, or 101/102/103 for quick gears 1/2/3
    if auto_mode:
        level = 0
    return HumidifierStatus(
        model=info.code,
        model_name=info.name,
        model_friendly_name=info.friendly_name,
        on_state=flag(byte1, 0b10000000),
        auto_mode=auto_mode,
        percentage=level,
        humidity=_HUMIDIFIER_QUICK_GEARS.get(level, level),
    )


def _decode_meter(info: ModelInfo, service_data: bytes, manufacturer_data: bytes) -> MeterStatus | None:
    if len(service_data) != 6:
        return _reject(info, "service data", len(service_data), "6")

    byte2, byte3, byte4, byte5 = service_data[2:6]
    temperature = decode_temperature(byte4, byte3)
    return MeterStatus(
        model=info.code,
        model_name=info.name,
        model_friendly_name=info.friendly_name,
        celsius=temperature.celsius,
        fahrenheit=temperature.fahrenheit,
        fahrenheit_mode=flag(byte5, 0b10000000),
        humidity=percent(byte5),
        battery=percent(byte2),
    )


def _decode_outdoor_meter(info: ModelInfo, service_data: bytes, manufacturer_data: bytes) -> MeterStatus | None:
    if len(service_data) != 3:
        return _reject(info, "service data", len(service_data), "3")
    if len(manufacturer_data) != 14:
        return _reject(info, "manufacturer data", len(manufacturer_data), "14")

    byte10, byte11, byte12 = manufacturer_data[10:13]
    temperature = decode_temperature(byte11, byte10)
    return MeterStatus(
        model=info.code,
        model_name=info.name,
        model_friendly_name=info.friendly_name,
        celsius=temperature.celsius,
        fahrenheit=temperature.fahrenheit,
        fahrenheit_mode=flag(byte12, 0b10000000),
        humidity=percent(byte12),
        battery=percent(service_data[2]),
    )


def _decode_hub2(info: ModelInfo, service_data: bytes, manufacturer_data: bytes) -> Hub2Status | None:
    if len(manufacturer_data) != 16:
        return _reject(info, "manufacturer data", len(manufacturer_data), "16")

    byte0, byte1, byte2 = manufacturer_data[0:3]
    temperature = decode_temperature(byte1, byte0)
    return Hub2Status(
        model=info.code,
        model_name=info.name,
        model_friendly_name=info.friendly_name,
        celsius=temperature.celsius,
        fahrenheit=temperature.fahrenheit,
        fahrenheit_mode=flag(byte2, 0b10000000),
        humidity=percent(byte2),
        light_level=bits(manufacturer_data[12], 0b00011111),
    )


def _decode_motion_sensor(info: ModelInfo, service_data: bytes, manufacturer_data: bytes) -> MotionSensorStatus | None:
    if len(service_data) != 6:
        return _reject(info, "service data", len(service_data), "6")

    byte1, byte2, byte5 = service_data[1], service_data[2], service_data[5]
    light = bits(byte5, 0b00000011)
    return MotionSensorStatus(
        model=info.code,
        model_name=info.name,
        model_friendly_name=info.friendly_name,
        tested=flag(byte1, 0b10000000),
        movement=flag(byte1, 0b01000000),
        battery=percent(byte2),
        led=bits(byte5, 0b00100000, 5),
        iot=bits(byte5, 0b00010000, 4),
        sense_distance=bits(byte5, 0b00001100, 2),
        light_level={1: "dark", 2: "bright"}.get(light, "unknown"),
        is_light=flag(byte5, 0b00000010),
    )


def _decode_contact_sensor(info: ModelInfo, service_data: bytes, manufacturer_data: bytes) -> ContactSensorStatus | None:
    if len(service_data) != 9:
        return _reject(info, "service data", len(service_data), "9")

    byte1, byte2, byte3, byte8 = service_data[1], service_data[2], service_data[3], service_data[8]
    hall_state = bits(byte3, 0b00000110, 1)
    return ContactSensorStatus(
        model=info.code,
        model_name=info.name,
        model_friendly_name=info.friendly_name,
        tested=flag(byte1, 0b10000000),
        movement=flag(byte1, 0b01000000),
        battery=percent(byte2),
        contact_open=flag(byte3, 0b00000010),
        contact_timeout=flag(byte3, 0b00000100),
        light_level="bright" if flag(byte3, 0b00000001) else "dark",
        button_count=bits(byte8, 0b00001111),
        door_state={0: "close", 1: "open"}.get(hall_state, "timeout no closed"),
    )


def _light_status(info: ModelInfo, manufacturer_data: bytes) -> LightStatus:
    byte7, byte8 = manufacturer_data[7], manufacturer_data[8]
    return LightStatus(
        model=info.code,
        model_name=info.name,
        model_friendly_name=info.friendly_name,
        power=bool(manufacturer_data[1]),
        red=manufacturer_data[3],
        green=manufacturer_data[4],
        blue=manufacturer_data[5],
        color_temperature=manufacturer_data[6],
        state=flag(byte7, 0b01111111),
        brightness=percent(byte7),
        delay=flag(byte8, 0b10000000),
        preset=flag(byte8, 0b00001000),
        color_mode=bits(byte8, 0b00000111),
        speed=percent(manufacturer_data[9]),
        loop_index=bits(manufacturer_data[10], 0b11111110),
    )


def _decode_color_bulb(info: ModelInfo, service_data: bytes, manufacturer_data: bytes) -> LightStatus | None:
    if len(service_data) != 18:
        return _reject(info, "service data", len(service_data), "18")
    if len(manufacturer_data) != 13:
        return _reject(info, "manufacturer data", len(manufacturer_data), "13")
    return _light_status(info, manufacturer_data)


def _decode_ceiling_light(info: ModelInfo, service_data: bytes, manufacturer_data: bytes) -> LightStatus | None:
    if len(manufacturer_data) != 13:
        return _reject(info, "manufacturer data", len(manufacturer_data), "13")
    return _light_status(info, manufacturer_data)


def _decode_strip_light(info: ModelInfo, service_data: bytes, manufacturer_data: bytes) -> StripLightStatus | None:
    if len(service_data) != 18:
        return _reject(info, "service data", len(service_data), "18")

    byte7, byte8 = service_data[7], service_data[8]
    return StripLightStatus(
        model=info.code,
        model_name=info.name,
        model_friendly_name=info.friendly_name,
        power=flag(byte7, 0b10000000),
        state=flag(byte7, 0b10000000),
        brightness=percent(byte7),
        red=service_data[3],
        green=service_data[4],
        blue=service_data[5],
        delay=flag(byte8, 0b10000000),
        preset=flag(byte8, 0b00001000),
        color_mode=bits(byte8, 0b00000111),
        speed=percent(service_data[9]),
        loop_index=bits(service_data[10], 0b11111110),
    )


def _decode_plug_mini(info: ModelInfo, service_data: bytes, manufacturer_data: bytes) -> PlugMiniStatus | None:
    if len(manufacturer_data) != 14:
        return _reject(info, "manufacturer data", len(manufacturer_data), "14")

    byte9, byte10, byte11, byte12, byte13 = manufacturer_data[9:14]
    return PlugMiniStatus(
        model=info.code,
        model_name=info.name,
        model_friendly_name=info.friendly_name,
        state={0x00: "off", 0x80: "on"}.get(byte9, "unknown"),
        delay=flag(byte10, 0b00000001),
        timer=flag(byte10, 0b00000010),
        sync_utc_time=flag(byte10, 0b00000100),
        wifi_rssi=byte11,
        overload=flag(byte12, 0b10000000),
        current_power=word15(byte12, byte13) / 10,
    )


def _decode_lock(info: ModelInfo, service_data: bytes, manufacturer_data: bytes) -> LockStatus | None:
    if len(manufacturer_data) < 11:
        return _reject(info, "manufacturer data", len(manufacturer_data), ">= 11")

    state, alarms = manufacturer_data[9], manufacturer_data[10]
    night_latch = len(manufacturer_data) > 11 and flag(manufacturer_data[11], 0b00000001)
    return LockStatus(
        model=info.code,
        model_name=info.name,
        model_friendly_name=info.friendly_name,
        battery=percent(service_data[2]),
        calibration=flag(state, 0b10000000),
        status=lock_status(bits(state, 0b01110000)),
        update_from_secondary_lock=flag(state, 0b00001000),
        door_open=flag(state, 0b00000100),
        double_lock_mode=flag(alarms, 0b10000000),
        unclosed_alarm=flag(alarms, 0b00100000),
        unlocked_alarm=flag(alarms, 0b00010000),
        auto_lock_paused=flag(alarms, 0b00000010),
        night_latch=night_latch,
    )


def _decode_lock_pro(info: ModelInfo, service_data: bytes, manufacturer_data: bytes) -> LockStatus | None:
    if len(manufacturer_data) < 12:
        return _reject(info, "manufacturer data", len(manufacturer_data), ">= 12")

    byte7, byte8, byte9, byte11 = (
        manufacturer_data[7],
        manufacturer_data[8],
        manufacturer_data[9],
        manufacturer_data[11],
    )
    # Lock Pro packs the status code three bits lower than the Lock does.
    code = bits(byte7, 0b00111000, 3) << 4
    return LockStatus(
        model=info.code,
        model_name=info.name,
        model_friendly_name=info.friendly_name,
        battery=percent(service_data[2]),
        calibration=flag(byte7, 0b10000000),
        status=lock_status(code),
        update_from_secondary_lock=False,
        door_open=flag(byte8, 0b01100000),
        double_lock_mode=False,
        unclosed_alarm=flag(byte11, 0b10000000),
        unlocked_alarm=flag(byte11, 0b01000000),
        auto_lock_paused=flag(byte8, 0b00100000),
        night_latch=flag(byte9, 0b00000001),
    )


DECODERS: dict[str, ModelDecoder] = {
    entry.info.code: entry
    for entry in (
        ModelDecoder(ModelInfo("H", "WoHand", "Bot"), _decode_bot),
        ModelDecoder(ModelInfo("c", "WoCurtain", "Curtain"), _decode_curtain),
        ModelDecoder(ModelInfo("{", "WoCurtain3", "Curtain 3"), _decode_curtain),
        ModelDecoder(ModelInfo("e", "WoHumi", "Humidifier"), _decode_humidifier),
        ModelDecoder(ModelInfo("T", "WoSensorTH", "Meter"), _decode_meter),
        ModelDecoder(ModelInfo("i", "WoSensorTHPlus", "Meter Plus"), _decode_meter),
        ModelDecoder(ModelInfo("v", "WoHub2", "Hub 2"), _decode_hub2),
        ModelDecoder(ModelInfo("w", "WoIOSensorTH", "Outdoor Meter"), _decode_outdoor_meter),
        ModelDecoder(ModelInfo("s", "WoMotion", "Motion Sensor"), _decode_motion_sensor),
        ModelDecoder(ModelInfo("d", "WoContact", "Contact Sensor"), _decode_contact_sensor),
        ModelDecoder(ModelInfo("u", "WoBulb", "Color Bulb"), _decode_color_bulb),
        ModelDecoder(ModelInfo("r", "WoStrip", "Strip Light"), _decode_strip_light),
        ModelDecoder(ModelInfo("g", "WoPlugMini", "Plug Mini"), _decode_plug_mini),
        ModelDecoder(ModelInfo("j", "WoPlugMini", "Plug Mini"), _decode_plug_mini),
        ModelDecoder(ModelInfo("o", "WoSmartLock", "Lock"), _decode_lock),
        ModelDecoder(ModelInfo("$", "WoSmartLockPro", "Lock Pro"), _decode_lock_pro),
        ModelDecoder(ModelInfo("q", "WoCeilingLight", "Ceiling Light"), _decode_ceiling_light),
        ModelDecoder(ModelInfo("n", "WoCeilingLightPro", "Ceiling Light Pro"), _decode_ceiling_light),
        ModelDecoder(ModelInfo("x", "WoBlindTilt", "Blind Tilt"), _decode_blind_tilt),
    )
}
