"""
Matching Module

Doctor search: filters, distance ranking and roster access.

Usage:
    from app.core.matching import search, SearchFilters

    ranked = search(doctors, SearchFilters(specialty="Cardiology"), location)
    for item in ranked:
        print(item.doctor.full_name, item.distance_km)
"""

from app.core.matching.ranking import (
    RankedDoctor,
    SearchFilters,
    distance_to,
    search,
)
from app.core.matching.directory import (
    DoctorDirectory,
    ReviewSummary,
)

__all__ = [
    "RankedDoctor",
    "SearchFilters",
    "distance_to",
    "search",
    "DoctorDirectory",
    "ReviewSummary",
]
