"""Advertisement filtering and device-hint matching."""

from __future__ import annotations

import re
from collections.abc import Mapping, Sequence

from switchbotctl.core.model import DeviceAlias, DeviceIdentity, ParsedAdvertisement

_NON_ALNUM_RE = re.compile(r"[^a-z0-9]")


def compact_id(value: str) -> str:
    return _NON_ALNUM_RE.sub("", value.lower())


def filter_advertisement(ad: ParsedAdvertisement, device_id: str | None = None, model: str | None = None) -> bool:
    if device_id and compact_id(device_id) != compact_id(ad.address):
        return False
    if model and ad.status.model != model:
        return False
    return True


def match_score(identity: DeviceIdentity, hint: str, aliases: Mapping[str, DeviceAlias] | None = None) -> int:
    alias = (aliases or {}).get(hint)
    if alias is not None:
        if compact_id(alias.address) != compact_id(identity.address):
            return 0
        if alias.model is not None and alias.model != identity.model:
            return 0
        return 4

    compact_hint = compact_id(hint)
    compact_address = compact_id(identity.address)
    if compact_hint and compact_hint == compact_address:
        return 3
    if compact_hint and (compact_hint in compact_address or compact_hint in compact_id(identity.id)):
        return 2

    lowered = hint.lower()
    if lowered in identity.model_name.lower() or lowered in identity.model_friendly_name.lower():
        return 1
    return 0


def best_match(
    identities: Sequence[DeviceIdentity],
    hint: str,
    aliases: Mapping[str, DeviceAlias] | None = None,
) -> list[DeviceIdentity]:
    """Return every identity sharing the highest non-zero score for ``hint``."""
    best: list[DeviceIdentity] = []
    best_score = 0
    for identity in identities:
        score = match_score(identity, hint, aliases)
        if score > best_score:
            best = [identity]
            best_score = score
        elif score == best_score and score > 0:
            best.append(identity)
    return best
