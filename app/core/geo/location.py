"""
Requester location.

A location is either known (a validated coordinate pair) or unknown. Every
way of acquiring one is bounded by a timeout and degrades to unknown rather
than failing the request.
"""

import asyncio
import logging
from typing import Awaitable, Callable, NamedTuple, Optional

from app.core.errors import ExternalServiceError, ValidationError
from app.core.geo.distance import coerce_coordinate

logger = logging.getLogger(__name__)


class Location(NamedTuple):
    """A (latitude, longitude) pair in degrees."""

    latitude: float
    longitude: float

    @classmethod
    def parse(cls, latitude: object, longitude: object) -> "Location":
        """Validate raw coordinates.

        Raises:
            ValidationError: Non-numeric or out-of-range coordinates
        """
        lat = coerce_coordinate(latitude, "latitude")
        lon = coerce_coordinate(longitude, "longitude")

        if not -90.0 <= lat <= 90.0:
            raise ValidationError(f"latitude out of range: {lat}")
        if not -180.0 <= lon <= 180.0:
            raise ValidationError(f"longitude out of range: {lon}")

        return cls(lat, lon)

    @classmethod
    def from_optional(
        cls,
        latitude: Optional[object],
        longitude: Optional[object],
    ) -> Optional["Location"]:
        """Build a location only when both coordinates are present."""
        if latitude is None or longitude is None:
            return None
        return cls.parse(latitude, longitude)

    def to_dict(self) -> dict:
        return {"latitude": self.latitude, "longitude": self.longitude}


LocationSource = Callable[[], Awaitable[Optional[Location]]]


async def acquire_location(
    source: LocationSource,
    timeout: float,
) -> Optional[Location]:
    """Run a location source with a deadline.

    Args:
        source: Coroutine factory producing a Location (or None if denied)
        timeout: Seconds to wait before giving up

    Returns:
        The location, or None when it timed out, was denied or was invalid
    """
    try:
        return await asyncio.wait_for(source(), timeout=timeout)
    except asyncio.TimeoutError:
        logger.warning(f"Location lookup timed out after {timeout}s, continuing without it")
    except ExternalServiceError as e:
        logger.warning(f"Location lookup failed: {e}")
    except ValidationError as e:
        logger.warning(f"Location lookup returned invalid coordinates: {e}")
    return None
