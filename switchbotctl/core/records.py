"""Typed device-status records produced by the advertisement decoder."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any


@dataclass(frozen=True)
class StatusRecord:
    model: str
    model_name: str
    model_friendly_name: str

    def as_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class BotStatus(StatusRecord):
    mode: bool  # True when the light-switch add-on is in use
    state: bool
    battery: int


@dataclass(frozen=True)
class CurtainStatus(StatusRecord):
    calibration: bool
    battery: int
    in_motion: bool
    position: int
    light_level: int
    device_chain: int


@dataclass(frozen=True)
class BlindTiltStatus(StatusRecord):
    calibration: bool
    battery: int
    in_motion: bool
    tilt: int
    light_level: int
    sequence_number: int


@dataclass(frozen=True)
class HumidifierStatus(StatusRecord):
    on_state: bool
    auto_mode: bool
    percentage: int
    humidity: int


@dataclass(frozen=True)
class MeterStatus(StatusRecord):
    celsius: float
    fahrenheit: float
    fahrenheit_mode: bool
    humidity: int
    battery: int


@dataclass(frozen=True)
class Hub2Status(StatusRecord):
    celsius: float
    fahrenheit: float
    fahrenheit_mode: bool
    humidity: int
    light_level: int


@dataclass(frozen=True)
class MotionSensorStatus(StatusRecord):
    tested: bool
    movement: bool
    battery: int
    led: int
    iot: int
    sense_distance: int
    light_level: str
    is_light: bool


@dataclass(frozen=True)
class ContactSensorStatus(StatusRecord):
    tested: bool
    movement: bool
    battery: int
    contact_open: bool
    contact_timeout: bool
    light_level: str
    button_count: int
    door_state: str


@dataclass(frozen=True)
class LightStatus(StatusRecord):
    """Color bulb and ceiling light state."""

    power: bool
    red: int
    green: int
    blue: int
    color_temperature: int
    state: bool
    brightness: int
    delay: bool
    preset: bool
    color_mode: int
    speed: int
    loop_index: int


@dataclass(frozen=True)
class StripLightStatus(StatusRecord):
    power: bool
    state: bool
    brightness: int
    red: int
    green: int
    blue: int
    delay: bool
    preset: bool
    color_mode: int
    speed: int
    loop_index: int


@dataclass(frozen=True)
class PlugMiniStatus(StatusRecord):
    state: str
    delay: bool
    timer: bool
    sync_utc_time: bool
    wifi_rssi: int
    overload: bool
    current_power: float  # watts


@dataclass(frozen=True)
class LockStatus(StatusRecord):
    battery: int
    calibration: bool
    status: str
    update_from_secondary_lock: bool
    door_open: bool
    double_lock_mode: bool
    unclosed_alarm: bool
    unlocked_alarm: bool
    auto_lock_paused: bool
    night_latch: bool
