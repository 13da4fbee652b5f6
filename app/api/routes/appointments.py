"""
Appointment API Endpoints.

Booking, cancellation and the patient's appointment list.
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field

from app.api.dependencies import get_service, require_patient_id
from app.core.scheduling import display_status
from app.core.scheduling.lifecycle import as_utc
from app.core.service import ConsultationService
from app.models.database import Appointment

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/appointments", tags=["Appointments"])


class BookingRequest(BaseModel):
    """Appointment booking request."""

    slot_id: str = Field(
        ...,
        description="Slot to book",
        examples=["550e8400-e29b-41d4-a716-446655440000"],
    )
    visit_type: str = Field(
        ...,
        description="video or in-person",
        examples=["video"],
    )
    reason: str = Field(
        ...,
        description="Reason for the visit",
        examples=["fever"],
    )


class AppointmentOut(BaseModel):
    """Appointment with its derived display status."""

    id: uuid.UUID
    patient_id: str
    doctor_id: uuid.UUID
    doctor_name: Optional[str] = None
    doctor_specialty: Optional[str] = None
    slot_id: uuid.UUID
    appointment_date: datetime
    visit_type: str
    reason: str
    status: str = Field(..., description="Persisted status: scheduled, cancelled or completed")
    display_status: str = Field(..., description="status, or 'missed' for past scheduled visits")
    created_at: datetime
    cancelled_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    @classmethod
    def from_model(
        cls,
        appointment: Appointment,
        now: Optional[datetime] = None,
    ) -> "AppointmentOut":
        doctor = appointment.doctor
        return cls(
            id=appointment.id,
            patient_id=appointment.patient_id,
            doctor_id=appointment.doctor_id,
            doctor_name=doctor.full_name if doctor else None,
            doctor_specialty=doctor.specialty if doctor else None,
            slot_id=appointment.slot_id,
            appointment_date=as_utc(appointment.appointment_date),
            visit_type=appointment.visit_type.value,
            reason=appointment.reason,
            status=appointment.status.value,
            display_status=display_status(appointment, now),
            created_at=as_utc(appointment.created_at),
            cancelled_at=as_utc(appointment.cancelled_at) if appointment.cancelled_at else None,
            completed_at=as_utc(appointment.completed_at) if appointment.completed_at else None,
        )


class AppointmentListOut(BaseModel):
    """Patient dashboard view."""

    upcoming: list[AppointmentOut]
    past: list[AppointmentOut]


@router.post(
    "",
    response_model=AppointmentOut,
    status_code=status.HTTP_201_CREATED,
    summary="Book an appointment",
    responses={
        404: {"description": "Slot not found"},
        409: {"description": "Slot already booked; pick another slot"},
        422: {"description": "Invalid reason or visit type"},
    },
)
async def book_appointment(
    request: BookingRequest,
    patient_id: str = Depends(require_patient_id),
    service: ConsultationService = Depends(get_service),
) -> AppointmentOut:
    appointment = await service.book_appointment(
        patient_id=patient_id,
        slot_id=request.slot_id,
        visit_type=request.visit_type,
        reason=request.reason,
    )
    return AppointmentOut.from_model(appointment)


@router.get(
    "",
    response_model=AppointmentListOut,
    summary="List my appointments",
)
async def list_appointments(
    patient_id: str = Depends(require_patient_id),
    service: ConsultationService = Depends(get_service),
) -> AppointmentListOut:
    now = datetime.now(timezone.utc)
    appointments = await service.list_appointments(patient_id, now)
    return AppointmentListOut(
        upcoming=[AppointmentOut.from_model(a, now) for a in appointments.upcoming],
        past=[AppointmentOut.from_model(a, now) for a in appointments.past],
    )


@router.post(
    "/{appointment_id}/cancel",
    response_model=AppointmentOut,
    summary="Cancel an appointment",
    responses={
        404: {"description": "Appointment not found"},
        409: {"description": "Appointment is already cancelled or completed"},
    },
)
async def cancel_appointment(
    appointment_id: str,
    patient_id: str = Depends(require_patient_id),
    service: ConsultationService = Depends(get_service),
) -> AppointmentOut:
    appointment = await service.cancel_appointment(appointment_id, patient_id)
    return AppointmentOut.from_model(appointment)
