"""
Doctor ranking and filtering.

Pure functions over an in-memory roster; no I/O and no locks.
"""

from dataclasses import dataclass
from numbers import Real
from typing import Iterable, Optional

from app.core.errors import ValidationError
from app.core.geo import Location, haversine_km
from app.models.database import Doctor


@dataclass(frozen=True)
class SearchFilters:
    """Conjunctive search filters. Empty values are no-ops."""

    specialty: Optional[str] = None
    search_term: Optional[str] = None
    max_distance_km: Optional[float] = None

    def __post_init__(self):
        if self.max_distance_km is None:
            return
        if isinstance(self.max_distance_km, bool) or not isinstance(self.max_distance_km, Real):
            raise ValidationError("max_distance_km must be a number")
        if self.max_distance_km < 0:
            raise ValidationError("max_distance_km must not be negative")


@dataclass
class RankedDoctor:
    """A doctor in search results, with distance when it could be computed."""

    doctor: Doctor
    distance_km: Optional[float] = None

    def to_dict(self) -> dict:
        data = self.doctor.to_snapshot()
        data["distance_km"] = (
            round(self.distance_km, 2) if self.distance_km is not None else None
        )
        return data


def distance_to(doctor: Doctor, location: Optional[Location]) -> Optional[float]:
    """Distance from the requester, or None if either side has no location."""
    if location is None or not doctor.has_location:
        return None
    return haversine_km(location, (doctor.latitude, doctor.longitude))


def _matches_term(doctor: Doctor, term: str) -> bool:
    fields = (doctor.full_name, doctor.specialty, doctor.bio or "")
    return any(term in field.lower() for field in fields)


def _name_key(doctor: Doctor) -> tuple[str, str]:
    return (doctor.full_name.casefold(), doctor.full_name)


def search(
    doctors: Iterable[Doctor],
    filters: SearchFilters,
    requester_location: Optional[Location] = None,
) -> list[RankedDoctor]:
    """Filter and order doctors for a patient.

    Doctors without coordinates are kept even when a distance limit
    applies; they sort after every doctor with a known distance.

    Args:
        doctors: Candidate roster
        filters: Specialty / free text / radius filters
        requester_location: Patient location, None when unknown

    Returns:
        Full ordered result list (no pagination)
    """
    term = filters.search_term.strip().lower() if filters.search_term else ""

    results: list[RankedDoctor] = []
    for doctor in doctors:
        if filters.specialty and doctor.specialty != filters.specialty:
            continue
        if term and not _matches_term(doctor, term):
            continue

        distance = distance_to(doctor, requester_location)
        if (
            filters.max_distance_km is not None
            and distance is not None
            and distance > filters.max_distance_km
        ):
            continue

        results.append(RankedDoctor(doctor=doctor, distance_km=distance))

    if requester_location is None:
        results.sort(key=lambda r: _name_key(r.doctor))
    else:
        results.sort(
            key=lambda r: (
                r.distance_km is None,
                r.distance_km if r.distance_km is not None else 0.0,
                _name_key(r.doctor),
            )
        )

    return results
