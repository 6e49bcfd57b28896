"""Service layer used by CLI and API frontends."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import re
from collections.abc import Callable

from switchbotctl.core.advertising import identity_of, known_models, parse_advertisement
from switchbotctl.core.config_loader import load_settings
from switchbotctl.core.decoders import DECODERS
from switchbotctl.core.device_match import best_match, filter_advertisement
from switchbotctl.core.errors import BusyError, DeviceSelectionError, ParameterError, RadioNotReadyError
from switchbotctl.core.model import ModelInfo, ParsedAdvertisement, RawAdvertisement, Settings
from switchbotctl.core.session import DeviceSession
from switchbotctl.transports.base import RADIO_READY, Radio

LOGGER = logging.getLogger(__name__)

_MAX_DURATION_S = 60.0
_MAC_RE = re.compile(r"^[0-9a-f]{2}([:-]?[0-9a-f]{2}){5}$", re.IGNORECASE)

DiscoverCallback = Callable[[DeviceSession], None]
AdvertisementCallback = Callable[[ParsedAdvertisement], None]


class SwitchBotService:
    def __init__(self, *, radio: Radio | None = None, settings: Settings | None = None) -> None:
        if settings is None:
            loaded = load_settings()
            settings = loaded.settings
            self.load_warnings = loaded.warnings
        else:
            self.load_warnings = ()
        self.settings = settings
        if radio is None:
            from switchbotctl.transports.ble_gatt import BleakRadio

            radio = BleakRadio()
        self.radio = radio
        self._sessions: dict[str, DeviceSession] = {}
        self._scanning = False

    def list_models(self) -> list[ModelInfo]:
        return known_models()

    def _check_filters(self, model: str | None, device_id: str | None) -> None:
        if model is not None and model not in DECODERS:
            known = ", ".join(sorted(DECODERS))
            raise ParameterError(f"Unknown model '{model}'. Known model codes: {known}")
        if device_id is not None and not 12 <= len(device_id) <= 17:
            raise ParameterError(f"Device id must be 12 to 17 characters, got '{device_id}'")

    def _check_duration(self, duration_s: float | None) -> float:
        if duration_s is None:
            return self.settings.scan_duration_s
        if isinstance(duration_s, bool) or not isinstance(duration_s, (int, float)):
            raise ParameterError(f"Scan duration must be a number, not {type(duration_s).__name__}")
        if not 0 < duration_s <= _MAX_DURATION_S:
            raise ParameterError(f"Scan duration must be greater than 0 and at most {_MAX_DURATION_S:g} s")
        return float(duration_s)

    def _check_idle(self) -> None:
        if self._scanning:
            raise BusyError("A scan is already running")

    async def _ensure_radio(self) -> None:
        state = await self.radio.initialize()
        if state != RADIO_READY:
            raise RadioNotReadyError(f"Bluetooth radio is {state}, expected {RADIO_READY}")

    async def _begin_scan(self, handler: Callable[[RawAdvertisement], None]) -> None:
        self._check_idle()
        self._scanning = True
        try:
            await self.radio.start_scan(handler)
        except BaseException:
            self._scanning = False
            raise

    def _advertisement_filter(
        self,
        callback: AdvertisementCallback,
        model: str | None,
        device_id: str | None,
    ) -> Callable[[RawAdvertisement], None]:
        def _handler(raw: RawAdvertisement) -> None:
            ad = parse_advertisement(raw)
            if ad is None or not filter_advertisement(ad, device_id, model):
                return
            callback(ad)

        return _handler

    async def discover(
        self,
        *,
        duration_s: float | None = None,
        model: str | None = None,
        device_id: str | None = None,
        quick: bool = False,
        on_discover: DiscoverCallback | None = None,
    ) -> list[DeviceSession]:
        """Scan for accessories and return one session per matched device.

        With ``quick`` the scan stops at the first match instead of running
        for the whole duration.
        """
        duration = self._check_duration(duration_s)
        self._check_filters(model, device_id)
        self._check_idle()
        await self._ensure_radio()

        found: dict[str, DeviceSession] = {}
        first_match = asyncio.Event()

        def _on_match(ad: ParsedAdvertisement) -> None:
            if ad.id in found:
                return
            session = self.session_for(ad)
            found[ad.id] = session
            LOGGER.debug("Discovered %s (%s) at %s", ad.status.model_friendly_name, ad.id, ad.address)
            if on_discover is not None:
                on_discover(session)
            if quick:
                first_match.set()

        await self._begin_scan(self._advertisement_filter(_on_match, model, device_id))
        try:
            with contextlib.suppress(asyncio.TimeoutError):
                await asyncio.wait_for(first_match.wait(), duration)
        finally:
            await self.stop_scan()
        return list(found.values())

    async def start_scan(
        self,
        on_advertisement: AdvertisementCallback,
        *,
        model: str | None = None,
        device_id: str | None = None,
    ) -> None:
        self._check_filters(model, device_id)
        self._check_idle()
        await self._ensure_radio()
        await self._begin_scan(self._advertisement_filter(on_advertisement, model, device_id))

    async def scan(
        self,
        *,
        duration_s: float | None = None,
        model: str | None = None,
        device_id: str | None = None,
    ) -> list[ParsedAdvertisement]:
        """Collect the latest advertisement of every matching device for ``duration_s``."""
        duration = self._check_duration(duration_s)
        latest: dict[str, ParsedAdvertisement] = {}

        def _record(ad: ParsedAdvertisement) -> None:
            latest[ad.id] = ad

        await self.start_scan(_record, model=model, device_id=device_id)
        try:
            await asyncio.sleep(duration)
        finally:
            await self.stop_scan()
        return sorted(latest.values(), key=lambda ad: ad.address or ad.id)

    async def stop_scan(self) -> None:
        if not self._scanning:
            return
        try:
            await self.radio.stop_scan()
        finally:
            self._scanning = False

    def session_for(self, ad: ParsedAdvertisement) -> DeviceSession:
        session = self._sessions.get(ad.id)
        if session is None:
            peripheral = self.radio.peripheral(ad.id)
            session = DeviceSession(peripheral, self.radio, identity_of(ad), settings=self.settings)
            self._sessions[ad.id] = session
        return session

    async def resolve_target(
        self,
        device_hint: str | None,
        *,
        model: str | None = None,
        duration_s: float | None = None,
    ) -> DeviceSession:
        device_id: str | None = None
        alias = self.settings.aliases.get(device_hint) if device_hint else None
        if alias is not None:
            device_id = alias.address
            model = model or alias.model
        elif device_hint and _MAC_RE.match(device_hint):
            device_id = device_hint

        sessions = await self.discover(
            duration_s=duration_s,
            model=model,
            device_id=device_id,
            quick=device_id is not None,
        )
        if not sessions:
            if device_hint:
                raise DeviceSelectionError(f"No device found matching '{device_hint}'")
            raise DeviceSelectionError("No SwitchBot devices found. Ensure the device is in range and awake.")

        candidates = sessions
        if device_hint:
            matched = best_match([s.identity for s in sessions if s.identity], device_hint, self.settings.aliases)
            candidates = [s for s in sessions if s.identity in matched]
            if not candidates:
                raise DeviceSelectionError(f"No device found matching '{device_hint}'")

        if len(candidates) > 1:
            candidate_desc = ", ".join(f"{s.address} ({s.model_friendly_name})" for s in candidates)
            raise DeviceSelectionError(
                f"Multiple candidate devices found: {candidate_desc}. Use --device to choose one."
            )
        return candidates[0]
