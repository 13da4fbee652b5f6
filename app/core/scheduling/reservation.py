"""
Slot Reservation Engine.

Lists open slots and books them. Input is validated before the store is
touched; the store's conditional claim decides who wins a race.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from app.core.errors import DoctorNotFound, SlotNotFound, SlotUnavailable, ValidationError
from app.core.scheduling.lifecycle import as_utc
from app.core.scheduling.store import IdLike, ReservationStore, parse_id
from app.models.database import Appointment, AvailableSlot, VisitType

logger = logging.getLogger(__name__)

MAX_REASON_LENGTH = 2000


@dataclass(frozen=True)
class DateRange:
    """Inclusive time window."""

    start: datetime
    end: datetime

    def __post_init__(self):
        if as_utc(self.start) > as_utc(self.end):
            raise ValidationError("Date range start must not be after its end")

    @classmethod
    def next_days(cls, days: int, now: Optional[datetime] = None) -> "DateRange":
        """Window from now until `days` days ahead."""
        now = now or datetime.now(timezone.utc)
        return cls(start=now, end=now + timedelta(days=days))

    @classmethod
    def for_day(cls, day: datetime) -> "DateRange":
        """Whole calendar day containing `day`."""
        start = day.replace(hour=0, minute=0, second=0, microsecond=0)
        return cls(start=start, end=start + timedelta(days=1) - timedelta(microseconds=1))


def parse_visit_type(value: object) -> VisitType:
    """Validate a visit type ("video" or "in-person")."""
    if isinstance(value, VisitType):
        return value
    try:
        return VisitType(value)
    except ValueError:
        allowed = ", ".join(v.value for v in VisitType)
        raise ValidationError(f"visit_type must be one of: {allowed}") from None


def validate_reason(value: object) -> str:
    """Validate the free-text reason for the visit."""
    if not isinstance(value, str) or not value.strip():
        raise ValidationError("reason must be non-empty text")
    reason = value.strip()
    if len(reason) > MAX_REASON_LENGTH:
        raise ValidationError(f"reason must be at most {MAX_REASON_LENGTH} characters")
    return reason


class ReservationEngine:
    """
    Books slots.

    Never reads a slot and then writes it: reservation is delegated to the
    store's compare-and-set claim. Retrying after SlotUnavailable is up to
    the caller.
    """

    def __init__(self, store: ReservationStore):
        self._store = store

    async def list_available(
        self,
        doctor_id: IdLike,
        date_range: DateRange,
    ) -> list[AvailableSlot]:
        """Unbooked slots for a doctor, ascending by time.

        Raises:
            DoctorNotFound: Unknown doctor id
        """
        parsed = parse_id(doctor_id)
        if parsed is None or not await self._store.doctor_exists(parsed):
            raise DoctorNotFound(f"Doctor {doctor_id} not found")

        return await self._store.list_open_slots(
            parsed,
            as_utc(date_range.start),
            as_utc(date_range.end),
        )

    async def reserve(
        self,
        slot_id: IdLike,
        patient_id: str,
        visit_type: object,
        reason: object,
    ) -> Appointment:
        """Claim a slot for a patient and create the appointment.

        Raises:
            ValidationError: Bad reason, visit type or patient id (store untouched)
            SlotNotFound: Slot id does not resolve
            SlotUnavailable: Someone else already holds the slot
        """
        parsed_visit_type = parse_visit_type(visit_type)
        parsed_reason = validate_reason(reason)
        if not patient_id or not str(patient_id).strip():
            raise ValidationError("patient_id is required")

        parsed_slot = parse_id(slot_id)
        if parsed_slot is None:
            raise SlotNotFound(f"Slot {slot_id} does not exist")

        try:
            appointment = await self._store.claim_slot(
                parsed_slot,
                patient_id=str(patient_id),
                visit_type=parsed_visit_type,
                reason=parsed_reason,
            )
        except SlotUnavailable:
            logger.info(f"Reservation conflict on slot {parsed_slot} for patient {patient_id}")
            raise

        logger.info(
            f"Appointment {appointment.id} booked: slot={parsed_slot} "
            f"patient={patient_id} visit_type={parsed_visit_type.value}"
        )
        return appointment
