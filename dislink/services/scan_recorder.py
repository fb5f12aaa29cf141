"""
Scan recorder: one append-only event per presentation of a code.

The event is stored immediately with whatever the client sent. When
coordinates are present, reverse geocoding runs in a background task with a
timeout and attaches the place name if it finishes in time. record() never
waits on it.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Protocol
from uuid import UUID

from dislink import config
from dislink.models.introduction_code import IntroductionCode
from dislink.models.scan_event import ScanContext, ScanEvent
from dislink.repos.scan_event_repo import ScanEventRepo
from dislink.services.geocoding import geocoder as default_geocoder

logger = logging.getLogger(__name__)


class Geocoder(Protocol):
    async def reverse(self, latitude: float, longitude: float) -> str | None: ...


class ScanRecorder:
    def __init__(
        self,
        events: ScanEventRepo | None = None,
        geocoder: Geocoder | None = None,
        geocode_timeout: float | None = None,
    ) -> None:
        self._events = events or ScanEventRepo()
        self._geocoder = geocoder or default_geocoder
        self._timeout = geocode_timeout if geocode_timeout is not None else config.settings.GEOCODE_TIMEOUT_SECONDS
        self._pending: set[asyncio.Task] = set()

    async def record(self, code: IntroductionCode, context: ScanContext) -> UUID:
        """
        Record a scan of `code`.

        Args:
            code: The presented code (active or not; stale scans count too)
            context: Optional location, referrer and fingerprint

        Returns:
            ID of the new scan event
        """
        event = await self._events.create(code, context)
        if event.location is not None:
            task = asyncio.create_task(self._resolve_place(event))
            self._pending.add(task)
            task.add_done_callback(self._pending.discard)
        return event.id

    async def drain(self) -> None:
        """Wait for outstanding geocoding lookups. Used at shutdown."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def _resolve_place(self, event: ScanEvent) -> None:
        location = event.location
        try:
            place_name = await asyncio.wait_for(
                self._geocoder.reverse(location.latitude, location.longitude),
                timeout=self._timeout,
            )
        except TimeoutError:
            logger.warning("scan_recorder: geocoding timed out for event=%s", event.id)
            return
        except Exception:
            logger.warning("scan_recorder: geocoding failed for event=%s", event.id, exc_info=True)
            return

        if not place_name:
            return
        try:
            await self._events.attach_place_name(event, place_name)
        except Exception:
            logger.warning("scan_recorder: could not attach place name to event=%s", event.id, exc_info=True)


scan_recorder = ScanRecorder()
