"""Tests for doctor ranking and filtering."""

import uuid

import pytest

from app.core.errors import ValidationError
from app.core.geo import Location
from app.core.matching import RankedDoctor, SearchFilters, distance_to, search
from app.models.database import Doctor


def make_doctor(name, specialty, location=None, bio=None) -> Doctor:
    return Doctor(
        id=uuid.uuid4(),
        full_name=name,
        specialty=specialty,
        latitude=location[0] if location else None,
        longitude=location[1] if location else None,
        rating=4.0,
        consultation_fee=50.0,
        is_verified=False,
        bio=bio,
    )


BERLIN = Location(52.5200, 13.4050)


class TestSearch:
    """Test search filters and ordering."""

    @pytest.fixture
    def doctors(self):
        return [
            make_doctor("Dr. Munich", "Dermatology", (48.1374, 11.5755)),
            make_doctor("Dr. Nowhere", "Cardiology", bio="Remote second opinions"),
            make_doctor("Dr. Berlin", "Cardiology", (52.5200, 13.4050), bio="Heart failure clinic"),
            make_doctor("Dr. Potsdam", "Neurology", (52.3906, 13.0645)),
            make_doctor("Dr. Hamburg", "cardiology", (53.5511, 9.9937)),
            make_doctor("Dr. Anywhere", "Neurology"),
        ]

    def names(self, results: list[RankedDoctor]) -> list[str]:
        return [r.doctor.full_name for r in results]

    def test_specialty_is_exact_and_case_sensitive(self, doctors):
        """Test specialty matches only the identical string."""
        results = search(doctors, SearchFilters(specialty="Cardiology"))

        assert self.names(results) == ["Dr. Berlin", "Dr. Nowhere"]
        assert all(r.doctor.specialty == "Cardiology" for r in results)

    def test_empty_specialty_is_noop(self, doctors):
        """Test empty specialty does not filter."""
        assert len(search(doctors, SearchFilters(specialty=""))) == len(doctors)

    def test_search_term_case_insensitive(self, doctors):
        """Test search term matches name, specialty or bio in any case."""
        assert self.names(search(doctors, SearchFilters(search_term="POTSDAM"))) == ["Dr. Potsdam"]
        assert self.names(search(doctors, SearchFilters(search_term="heart failure"))) == ["Dr. Berlin"]
        assert self.names(search(doctors, SearchFilters(search_term="neuro"))) == [
            "Dr. Anywhere",
            "Dr. Potsdam",
        ]

    def test_filters_are_conjunctive(self, doctors):
        """Test all filters must match."""
        results = search(doctors, SearchFilters(specialty="Cardiology", search_term="remote"))

        assert self.names(results) == ["Dr. Nowhere"]

    def test_unknown_location_orders_by_name(self, doctors):
        """Test name order and no distances without a requester location."""
        results = search(doctors, SearchFilters())

        assert self.names(results) == sorted(d.full_name for d in doctors)
        assert all(r.distance_km is None for r in results)

    def test_known_location_orders_by_distance(self, doctors):
        """Test nearest first, doctors without location last by name."""
        results = search(doctors, SearchFilters(), BERLIN)

        assert self.names(results) == [
            "Dr. Berlin",
            "Dr. Potsdam",
            "Dr. Hamburg",
            "Dr. Munich",
            "Dr. Anywhere",
            "Dr. Nowhere",
        ]
        distances = [r.distance_km for r in results if r.distance_km is not None]
        assert distances == sorted(distances)
        assert results[0].distance_km == pytest.approx(0.0)

    def test_radius_keeps_doctors_without_location(self, doctors):
        """Test the radius drops far doctors but never location-less ones."""
        results = search(doctors, SearchFilters(max_distance_km=50), BERLIN)

        assert self.names(results) == ["Dr. Berlin", "Dr. Potsdam", "Dr. Anywhere", "Dr. Nowhere"]
        assert all(r.distance_km is None or r.distance_km <= 50 for r in results)

    def test_radius_without_location_is_noop(self, doctors):
        """Test a radius cannot filter when the requester location is unknown."""
        results = search(doctors, SearchFilters(max_distance_km=1))

        assert len(results) == len(doctors)

    def test_zero_radius(self, doctors):
        """Test a zero radius keeps only co-located and location-less doctors."""
        results = search(doctors, SearchFilters(max_distance_km=0), BERLIN)

        assert self.names(results) == ["Dr. Berlin", "Dr. Anywhere", "Dr. Nowhere"]

    def test_ties_broken_by_name(self):
        """Test doctors at the same distance are ordered by name."""
        same_place = (50.0, 10.0)
        doctors = [
            make_doctor("Dr. Zed", "GP", same_place),
            make_doctor("Dr. Amy", "GP", same_place),
            make_doctor("dr. bea", "GP", same_place),
        ]

        results = search(doctors, SearchFilters(), Location(50.1, 10.0))

        assert self.names(results) == ["Dr. Amy", "dr. bea", "Dr. Zed"]

    def test_empty_roster(self):
        """Test empty input gives empty output."""
        assert search([], SearchFilters(specialty="Cardiology"), BERLIN) == []


class TestSearchFilters:
    """Test filter validation."""

    def test_negative_radius(self):
        with pytest.raises(ValidationError):
            SearchFilters(max_distance_km=-1)

    def test_non_numeric_radius(self):
        with pytest.raises(ValidationError):
            SearchFilters(max_distance_km="50")


class TestDistanceTo:
    """Test distance annotation."""

    def test_unknown_requester(self):
        doctor = make_doctor("Dr. Berlin", "Cardiology", (52.52, 13.405))
        assert distance_to(doctor, None) is None

    def test_doctor_without_location(self):
        doctor = make_doctor("Dr. Nowhere", "Cardiology")
        assert distance_to(doctor, BERLIN) is None

    def test_ranked_to_dict(self):
        doctor = make_doctor("Dr. Potsdam", "Neurology", (52.3906, 13.0645))
        ranked = RankedDoctor(doctor=doctor, distance_km=distance_to(doctor, BERLIN))

        data = ranked.to_dict()

        assert data["full_name"] == "Dr. Potsdam"
        assert data["distance_km"] == pytest.approx(27, abs=2)
