# FleetDesk - Geolocation Resolver
# Reverse geocoding for clock-in/out and trip locations

from typing import Optional, Any

import httpx

from fleetdesk.config import get_settings
from fleetdesk.logging import get_logger


settings = get_settings()
logger = get_logger(__name__)


def coordinate_address(latitude: float, longitude: float) -> str:
    """Fallback address when no street address can be resolved."""
    return f"{latitude:.6f}, {longitude:.6f}"


class GeolocationResolver:
    """
    Turns device coordinates into {latitude, longitude, address}.

    Every failure is soft: missing or invalid coordinates give None, and a
    reverse-geocoding failure (timeout, HTTP error, bad payload) falls back
    to the coordinates as the address. Nothing here raises.

    Usage:
        resolver = GeolocationResolver()
        location = resolver.resolve({"latitude": 59.33, "longitude": 18.06})
    """

    def __init__(
        self,
        url: Optional[str] = None,
        timeout: Optional[float] = None,
        enabled: Optional[bool] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.url = url or settings.geocode_url
        self.timeout = settings.geocode_timeout_seconds if timeout is None else timeout
        self.enabled = settings.geocode_enabled if enabled is None else enabled
        self.transport = transport

    def resolve(self, raw: Optional[dict[str, Any]]) -> Optional[dict[str, Any]]:
        if not raw:
            return None

        try:
            latitude = float(raw["latitude"])
            longitude = float(raw["longitude"])
        except (KeyError, TypeError, ValueError):
            logger.warning("geolocation_invalid", payload=raw)
            return None

        if not (-90 <= latitude <= 90 and -180 <= longitude <= 180):
            logger.warning("geolocation_out_of_range", latitude=latitude, longitude=longitude)
            return None

        address = raw.get("address") or self.reverse_geocode(latitude, longitude)
        return {"latitude": latitude, "longitude": longitude, "address": address}

    def reverse_geocode(self, latitude: float, longitude: float) -> str:
        fallback = coordinate_address(latitude, longitude)
        if not self.enabled:
            return fallback

        headers = {}
        if settings.geocode_user_agent:
            headers["User-Agent"] = settings.geocode_user_agent

        try:
            with httpx.Client(timeout=self.timeout, transport=self.transport, headers=headers) as client:
                response = client.get(
                    self.url,
                    params={
                        "format": "json",
                        "lat": latitude,
                        "lon": longitude,
                        "accept-language": "sv",
                    },
                )
                response.raise_for_status()
                data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("reverse_geocode_failed", latitude=latitude, longitude=longitude, error=str(e))
            return fallback

        if isinstance(data, dict) and data.get("display_name"):
            return data["display_name"]
        return fallback
