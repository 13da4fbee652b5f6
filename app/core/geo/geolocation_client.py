"""
HTTP client for an IP geolocation service.

Used as a location source when the caller did not send coordinates.
The service is expected to answer GET /{ip} with JSON containing
``latitude`` and ``longitude`` (``lat``/``lon`` accepted too).
"""

import logging
from typing import Optional

import httpx

from app.config import get_settings
from app.core.errors import LocationUnavailable
from app.core.geo.location import Location

logger = logging.getLogger(__name__)


class GeolocationClient:
    """Looks up approximate coordinates for a client IP."""

    def __init__(self, base_url: Optional[str] = None, timeout: Optional[float] = None):
        """Initialize client.

        Args:
            base_url: Service base URL (defaults to settings)
            timeout: Request timeout in seconds (defaults to settings)
        """
        settings = get_settings()
        self.base_url = base_url or settings.geolocation_url
        self.timeout = timeout if timeout is not None else settings.location_timeout_seconds
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def enabled(self) -> bool:
        return bool(self.base_url)

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url or "",
                timeout=self.timeout,
            )
        return self._client

    async def close(self) -> None:
        """Close HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def lookup(self, ip_address: str) -> Optional[Location]:
        """Resolve an IP address to coordinates.

        Returns:
            Location, or None when the service has no answer for this IP

        Raises:
            LocationUnavailable: Transport or HTTP failure, or a body that
                is not a JSON object
        """
        if not self.enabled:
            return None

        client = await self._get_client()

        try:
            response = await client.get(f"/{ip_address}")
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise LocationUnavailable(f"Geolocation lookup failed: {e}") from e

        try:
            data = response.json()
        except ValueError as e:
            raise LocationUnavailable(f"Geolocation answer is not JSON: {e}") from e

        if not isinstance(data, dict):
            raise LocationUnavailable(f"Unexpected geolocation answer: {type(data).__name__}")

        latitude = data.get("latitude", data.get("lat"))
        longitude = data.get("longitude", data.get("lon"))

        if latitude is None or longitude is None:
            logger.debug(f"No coordinates for {ip_address}")
            return None

        return Location.parse(latitude, longitude)


# Singleton
_client: Optional[GeolocationClient] = None


def get_geolocation_client() -> GeolocationClient:
    """Get singleton GeolocationClient."""
    global _client
    if _client is None:
        _client = GeolocationClient()
    return _client
