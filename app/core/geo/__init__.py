"""
Geo Module

Haversine distance, requester location handling and IP geolocation.

Usage:
    from app.core.geo import haversine_km, Location, acquire_location

    km = haversine_km((52.52, 13.40), (48.85, 2.35))
    here = await acquire_location(source, timeout=3.0)  # None if unknown
"""

from app.core.geo.distance import (
    EARTH_RADIUS_KM,
    MAX_DISTANCE_KM,
    haversine_km,
)
from app.core.geo.location import (
    Location,
    LocationSource,
    acquire_location,
)
from app.core.geo.geolocation_client import (
    GeolocationClient,
    get_geolocation_client,
)

__all__ = [
    "EARTH_RADIUS_KM",
    "MAX_DISTANCE_KM",
    "haversine_km",
    "Location",
    "LocationSource",
    "acquire_location",
    "GeolocationClient",
    "get_geolocation_client",
]
