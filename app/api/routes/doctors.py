"""
Doctor API Endpoints.

Search, profiles and open slots.
"""

import logging
import uuid
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from app.api.dependencies import get_request_context, get_service
from app.config import settings
from app.core.matching import RankedDoctor, SearchFilters
from app.core.scheduling import DateRange
from app.core.scheduling.lifecycle import as_utc
from app.core.service import ConsultationService, RequestContext
from app.models.database import AvailableSlot, Doctor, Review

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/doctors", tags=["Doctors"])


class DoctorOut(BaseModel):
    """Doctor in search results."""

    id: uuid.UUID
    full_name: str
    specialty: str
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    rating: float = 0.0
    consultation_fee: float = 0.0
    is_verified: bool = False
    bio: Optional[str] = None
    distance_km: Optional[float] = Field(
        default=None,
        description="Distance from the patient; null when either location is unknown",
    )

    @classmethod
    def build(cls, doctor: Doctor, distance_km: Optional[float] = None) -> "DoctorOut":
        return cls(
            id=doctor.id,
            full_name=doctor.full_name,
            specialty=doctor.specialty,
            latitude=doctor.latitude,
            longitude=doctor.longitude,
            rating=doctor.rating or 0.0,
            consultation_fee=doctor.consultation_fee or 0.0,
            is_verified=bool(doctor.is_verified),
            bio=doctor.bio,
            distance_km=round(distance_km, 2) if distance_km is not None else None,
        )

    @classmethod
    def from_ranked(cls, ranked: RankedDoctor) -> "DoctorOut":
        return cls.build(ranked.doctor, ranked.distance_km)


class ReviewOut(BaseModel):
    """Patient review."""

    id: uuid.UUID
    rating: int
    comment: Optional[str] = None
    reviewer_name: Optional[str] = None
    created_at: datetime

    @classmethod
    def from_model(cls, review: Review) -> "ReviewOut":
        return cls(
            id=review.id,
            rating=review.rating,
            comment=review.comment,
            reviewer_name=review.reviewer_name,
            created_at=as_utc(review.created_at),
        )


class DoctorProfileOut(DoctorOut):
    """Doctor profile with reviews."""

    email: Optional[str] = None
    phone: Optional[str] = None
    review_count: int = 0
    average_review_rating: Optional[float] = None
    reviews: list[ReviewOut] = Field(default_factory=list)


class SlotOut(BaseModel):
    """Open appointment slot."""

    id: uuid.UUID
    doctor_id: uuid.UUID
    slot_date: datetime
    is_booked: bool

    @classmethod
    def from_model(cls, slot: AvailableSlot) -> "SlotOut":
        return cls(
            id=slot.id,
            doctor_id=slot.doctor_id,
            slot_date=as_utc(slot.slot_date),
            is_booked=slot.is_booked,
        )


@router.get(
    "",
    response_model=list[DoctorOut],
    summary="Search doctors",
    description=(
        "Filter by specialty, free text and radius. Sorted by distance when the "
        "patient location is known, by name otherwise. Doctors without a "
        "location are never dropped by the radius filter."
    ),
)
async def search_doctors(
    specialty: Optional[str] = Query(default=None, description="Exact specialty"),
    search: Optional[str] = Query(default=None, description="Name, specialty or bio text"),
    max_distance_km: Optional[float] = Query(default=None, ge=0),
    context: RequestContext = Depends(get_request_context),
    service: ConsultationService = Depends(get_service),
) -> list[DoctorOut]:
    if max_distance_km is None and context.location is not None:
        max_distance_km = settings.default_max_distance_km

    filters = SearchFilters(
        specialty=specialty,
        search_term=search,
        max_distance_km=max_distance_km,
    )
    results = await service.search_doctors(filters, context.location)
    return [DoctorOut.from_ranked(r) for r in results]


@router.get(
    "/specialties",
    response_model=list[str],
    summary="List specialties",
)
async def list_specialties(
    service: ConsultationService = Depends(get_service),
) -> list[str]:
    return await service.list_specialties()


@router.get(
    "/{doctor_id}",
    response_model=DoctorProfileOut,
    summary="Doctor profile",
    responses={404: {"description": "Doctor not found"}},
)
async def get_doctor(
    doctor_id: str,
    context: RequestContext = Depends(get_request_context),
    service: ConsultationService = Depends(get_service),
) -> DoctorProfileOut:
    profile = await service.get_doctor_profile(doctor_id, context.location)
    base = DoctorOut.build(profile.doctor, profile.distance_km)

    return DoctorProfileOut(
        **base.model_dump(),
        email=profile.doctor.email,
        phone=profile.doctor.phone,
        review_count=profile.reviews.count,
        average_review_rating=profile.reviews.average_rating,
        reviews=[ReviewOut.from_model(r) for r in profile.reviews.reviews],
    )


@router.get(
    "/{doctor_id}/slots",
    response_model=list[SlotOut],
    summary="Open slots",
    description="Unbooked slots ascending by time. Defaults to the next 14 days.",
    responses={404: {"description": "Doctor not found"}},
)
async def get_available_slots(
    doctor_id: str,
    start: Optional[datetime] = Query(default=None),
    end: Optional[datetime] = Query(default=None),
    service: ConsultationService = Depends(get_service),
) -> list[SlotOut]:
    date_range = None
    if start is not None or end is not None:
        default = DateRange.next_days(settings.default_slot_window_days)
        date_range = DateRange(
            start=as_utc(start) if start else default.start,
            end=as_utc(end) if end else default.end,
        )

    slots = await service.get_available_slots(doctor_id, date_range)
    return [SlotOut.from_model(s) for s in slots]
