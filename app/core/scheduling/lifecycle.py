"""Appointment lifecycle state machine."""

import logging
from datetime import datetime, timezone
from typing import Optional, Set

from app.core.errors import AppointmentNotFound, InvalidTransition
from app.core.scheduling.store import IdLike, ReservationStore, parse_id
from app.models.database import Appointment, AppointmentStatus

logger = logging.getLogger(__name__)

MISSED = "missed"


# Valid status transitions
VALID_TRANSITIONS: dict[AppointmentStatus, Set[AppointmentStatus]] = {
    AppointmentStatus.SCHEDULED: {
        AppointmentStatus.CANCELLED,
        AppointmentStatus.COMPLETED,
    },
    AppointmentStatus.CANCELLED: set(),  # Terminal state
    AppointmentStatus.COMPLETED: set(),  # Terminal state
}


def can_transition(from_status: AppointmentStatus, to_status: AppointmentStatus) -> bool:
    """Check if a status transition is valid."""
    return to_status in VALID_TRANSITIONS.get(from_status, set())


def is_terminal_status(status: AppointmentStatus) -> bool:
    """Check if status is terminal (no further transitions)."""
    return not VALID_TRANSITIONS.get(status)


def as_utc(value: datetime) -> datetime:
    """Treat naive datetimes (SQLite drops the offset) as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def is_missed(
    status: AppointmentStatus,
    appointment_time: datetime,
    now: Optional[datetime] = None,
) -> bool:
    """A scheduled appointment whose time has passed. Never persisted."""
    now = now or datetime.now(timezone.utc)
    return status == AppointmentStatus.SCHEDULED and as_utc(now) > as_utc(appointment_time)


def display_status(appointment: Appointment, now: Optional[datetime] = None) -> str:
    """Status label for display: the persisted status, or "missed"."""
    if is_missed(appointment.status, appointment.appointment_date, now):
        return MISSED
    return appointment.status.value


def is_upcoming(appointment: Appointment, now: Optional[datetime] = None) -> bool:
    """Scheduled and not yet due."""
    now = now or datetime.now(timezone.utc)
    return (
        appointment.status == AppointmentStatus.SCHEDULED
        and as_utc(appointment.appointment_date) >= as_utc(now)
    )


class AppointmentLifecycle:
    """
    Applies status transitions to stored appointments.

    Every transition is a conditional update on the current status, so
    two racing cancellations cannot both succeed.
    """

    def __init__(self, store: ReservationStore, release_slot_on_cancel: bool = False):
        """Initialize lifecycle.

        Args:
            store: Reservation store
            release_slot_on_cancel: Reopen the slot when cancelling
        """
        self._store = store
        self._release_slot_on_cancel = release_slot_on_cancel

    async def cancel(self, appointment_id: IdLike, acting_patient_id: str) -> Appointment:
        """Cancel a scheduled appointment on behalf of its patient.

        Raises:
            AppointmentNotFound: Unknown id, or owned by another patient
            InvalidTransition: Already cancelled or completed
        """
        appointment = await self._load(appointment_id)
        if appointment.patient_id != acting_patient_id:
            # Same answer as a missing id: do not reveal other patients' bookings
            raise AppointmentNotFound(f"Appointment {appointment_id} not found")

        updated = await self._transition(
            appointment,
            AppointmentStatus.CANCELLED,
            release_slot=self._release_slot_on_cancel,
        )
        logger.info(
            f"Appointment {updated.id} cancelled by patient {acting_patient_id}"
            + (" (slot released)" if self._release_slot_on_cancel else "")
        )
        return updated

    async def complete(self, appointment_id: IdLike) -> Appointment:
        """Mark a scheduled appointment as completed (fulfillment side)."""
        appointment = await self._load(appointment_id)
        updated = await self._transition(appointment, AppointmentStatus.COMPLETED)
        logger.info(f"Appointment {updated.id} completed")
        return updated

    async def _load(self, appointment_id: IdLike) -> Appointment:
        parsed = parse_id(appointment_id)
        appointment = await self._store.get_appointment(parsed) if parsed else None
        if appointment is None:
            raise AppointmentNotFound(f"Appointment {appointment_id} not found")
        return appointment

    async def _transition(
        self,
        appointment: Appointment,
        new_status: AppointmentStatus,
        release_slot: bool = False,
    ) -> Appointment:
        if not can_transition(appointment.status, new_status):
            raise InvalidTransition(appointment.status.value, new_status.value)

        updated = await self._store.update_status(
            appointment.id,
            expected=appointment.status,
            new=new_status,
            release_slot=release_slot,
        )
        if updated is None:
            # Lost a race with another transition; report what it became
            current = await self._store.get_appointment(appointment.id)
            current_status = current.status.value if current else appointment.status.value
            logger.warning(
                f"Concurrent transition on appointment {appointment.id}: now {current_status}"
            )
            raise InvalidTransition(current_status, new_status.value)

        return updated
