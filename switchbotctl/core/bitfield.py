"""Sub-byte field extraction for fixed-layout advertisement buffers."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

_TEN = Decimal(10)


@dataclass(frozen=True)
class Temperature:
    celsius: float
    fahrenheit: float


def flag(value: int, mask: int) -> bool:
    return bool(value & mask)


def bits(value: int, mask: int, shift: int = 0) -> int:
    return (value & mask) >> shift


def percent(value: int) -> int:
    """Low seven bits of a byte; bit 7 is left for a flag."""
    return value & 0b01111111


def clamp_percent(value: int) -> int:
    return max(min(value, 100), 0)


def word15(high: int, low: int) -> int:
    """Big-endian 15-bit value; bit 7 of ``high`` is a flag and is dropped."""
    return ((high & 0b01111111) << 8) + low


def _fahrenheit(celsius: Decimal) -> float:
    scaled = (celsius * 9 / 5 + 32) * _TEN
    # ROUND_HALF_UP in decimal rounds half away from zero.
    return float(scaled.quantize(Decimal(1), rounding=ROUND_HALF_UP) / _TEN)


def celsius_to_fahrenheit(celsius: float) -> float:
    return _fahrenheit(Decimal(str(celsius)))


def decode_temperature(magnitude_byte: int, fraction_byte: int) -> Temperature:
    """Decode a sign-magnitude temperature split across two bytes.

    Bit 7 of ``magnitude_byte`` set means above zero, its low seven bits are
    whole degrees, and the low nibble of ``fraction_byte`` is tenths.
    """
    sign = 1 if magnitude_byte & 0b10000000 else -1
    magnitude = Decimal(magnitude_byte & 0b01111111) + Decimal(fraction_byte & 0b00001111) / _TEN
    celsius = sign * magnitude
    return Temperature(celsius=float(celsius), fahrenheit=_fahrenheit(celsius))


def hex_address(buf: bytes) -> str:
    return ":".join(f"{b:02x}" for b in buf)
