"""Great-circle distance between two coordinates."""

import math
from numbers import Real
from typing import Sequence

from app.core.errors import ValidationError

EARTH_RADIUS_KM = 6371.0

# Half the circumference: no two points are further apart than this.
MAX_DISTANCE_KM = math.pi * EARTH_RADIUS_KM


def coerce_coordinate(value: object, name: str) -> float:
    """Coerce a single coordinate, rejecting non-numeric input."""
    if isinstance(value, bool) or not isinstance(value, Real):
        raise ValidationError(f"{name} must be a number, got {value!r}")

    result = float(value)
    if not math.isfinite(result):
        raise ValidationError(f"{name} must be finite, got {value!r}")
    return result


def haversine_km(a: Sequence[float], b: Sequence[float]) -> float:
    """Distance in kilometers between two (latitude, longitude) pairs in degrees.

    Args:
        a: First point as (latitude, longitude)
        b: Second point as (latitude, longitude)

    Returns:
        Great-circle distance in km

    Raises:
        ValidationError: If either point is not a pair of finite numbers

    Example:
        >>> round(haversine_km((0.0, 0.0), (0.0, 1.0)), 2)
        111.19
    """
    if len(a) != 2 or len(b) != 2:
        raise ValidationError("Coordinates must be (latitude, longitude) pairs")

    lat1 = coerce_coordinate(a[0], "latitude")
    lon1 = coerce_coordinate(a[1], "longitude")
    lat2 = coerce_coordinate(b[0], "latitude")
    lon2 = coerce_coordinate(b[1], "longitude")

    d_lat = math.radians(lat2 - lat1)
    d_lon = math.radians(lon2 - lon1)

    h = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lon / 2) ** 2
    )
    # Rounding can push h a hair outside [0, 1] for antipodal points
    h = min(1.0, max(0.0, h))

    return EARTH_RADIUS_KM * 2 * math.atan2(math.sqrt(h), math.sqrt(1 - h))
