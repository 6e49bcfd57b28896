"""Advertisement dispatch: discriminator lookup plus transport envelope."""

from __future__ import annotations

import logging

from switchbotctl.core.bitfield import hex_address
from switchbotctl.core.decoders import DECODERS
from switchbotctl.core.model import (
    DeviceIdentity,
    ModelInfo,
    ParsedAdvertisement,
    RawAdvertisement,
)
from switchbotctl.core.records import StatusRecord

LOGGER = logging.getLogger(__name__)

_MIN_BUFFER_LENGTH = 3
# Bytes of the manufacturer data (company id included) that carry the MAC.
_ADDRESS_SLICE = slice(2, 8)


def known_models() -> list[ModelInfo]:
    return [entry.info for entry in DECODERS.values()]


def model_info(code: str) -> ModelInfo | None:
    entry = DECODERS.get(code)
    return entry.info if entry else None


def _usable(buf: bytes | None) -> bool:
    return buf is not None and len(buf) >= _MIN_BUFFER_LENGTH


def decode(service_data: bytes | None, manufacturer_data: bytes | None) -> StatusRecord | None:
    """Decode one advertisement into a status record.

    Returns ``None`` for anything that is not a well-formed advertisement of
    a known model; foreign traffic on the channel is expected, not an error.
    """
    if not _usable(service_data) or not _usable(manufacturer_data):
        return None

    code = chr(service_data[0])
    entry = DECODERS.get(code)
    if entry is None:
        LOGGER.debug("Unknown model discriminator %r", code)
        return None
    return entry.decode(entry.info, bytes(service_data), bytes(manufacturer_data))


def format_address(raw: RawAdvertisement) -> str:
    if raw.address:
        return raw.address.replace("-", ":")
    if raw.manufacturer_data:
        return hex_address(raw.manufacturer_data[_ADDRESS_SLICE])
    return ""


def parse_advertisement(raw: RawAdvertisement) -> ParsedAdvertisement | None:
    if not raw.service_data:
        return None

    status = decode(raw.service_data[0].data, raw.manufacturer_data)
    if status is None:
        LOGGER.debug("[%s] advertisement not decoded", raw.id)
        return None

    parsed = ParsedAdvertisement(
        id=raw.id,
        address=format_address(raw),
        rssi=raw.rssi,
        status=status,
    )
    LOGGER.debug("[%s] decoded %s", raw.id, parsed.as_dict())
    return parsed


def identity_of(ad: ParsedAdvertisement) -> DeviceIdentity:
    return DeviceIdentity(
        id=ad.id,
        address=ad.address,
        model=ad.status.model,
        model_name=ad.status.model_name,
        model_friendly_name=ad.status.model_friendly_name,
    )
