"""Reverse geocoding via Nominatim."""

from __future__ import annotations

import logging

import httpx

from dislink import config

logger = logging.getLogger(__name__)


class NominatimGeocoder:
    """
    HTTP client for the Nominatim reverse endpoint.

    Best-effort: any failure yields None. Callers bound the total time with
    their own timeout as well.
    """

    def __init__(self, base_url: str | None = None, timeout: float | None = None) -> None:
        self._base_url = (base_url or config.settings.NOMINATIM_URL).rstrip("/")
        self._timeout = timeout if timeout is not None else config.settings.GEOCODE_TIMEOUT_SECONDS

    async def reverse(self, latitude: float, longitude: float) -> str | None:
        """
        Resolve coordinates to a place name.

        Args:
            latitude: WGS84 latitude
            longitude: WGS84 longitude

        Returns:
            A short place name like "Lisbon, Portugal", or None if unresolved
        """
        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                response = await client.get(
                    f"{self._base_url}/reverse",
                    params={
                        "lat": latitude,
                        "lon": longitude,
                        "format": "json",
                        "zoom": 10,
                        "addressdetails": 1,
                    },
                    headers={"User-Agent": config.settings.GEOCODE_USER_AGENT},
                )
                response.raise_for_status()
                data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("geocoding: reverse lookup failed for %.4f,%.4f: %s", latitude, longitude, e)
            return None

        return _place_name(data)


def _place_name(data: dict) -> str | None:
    address = data.get("address") or {}
    city = address.get("city") or address.get("town") or address.get("village") or address.get("hamlet")
    country = address.get("country")
    if city and country:
        return f"{city}, {country}"
    return data.get("display_name") or None


geocoder = NominatimGeocoder()
