"""
Reservation store.

The only writer of slot-booking state. Claims are a single conditional
UPDATE (flip is_booked only while it is still false) paired with the
appointment INSERT in one transaction, so a lost race never leaves an
appointment behind.
"""

import logging
import uuid
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Optional, Union

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import selectinload

from app.core.errors import AppointmentNotFound, SlotNotFound, SlotUnavailable
from app.models.database import (
    Appointment,
    AppointmentStatus,
    AvailableSlot,
    Doctor,
    VisitType,
)

logger = logging.getLogger(__name__)

IdLike = Union[uuid.UUID, str]


def _utcnow() -> datetime:
    """Get current UTC time as timezone-aware datetime."""
    return datetime.now(timezone.utc)


def parse_id(value: IdLike) -> Optional[uuid.UUID]:
    """Parse an identifier, returning None when it is malformed."""
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except ValueError:
        return None


class ReservationStore(ABC):
    """
    Persistence operations the booking engine relies on.

    Implementations must make claim_slot atomic: either the slot flips
    and the appointment exists, or neither happened.
    """

    @abstractmethod
    async def doctor_exists(self, doctor_id: uuid.UUID) -> bool:
        pass

    @abstractmethod
    async def list_open_slots(
        self,
        doctor_id: uuid.UUID,
        start: datetime,
        end: datetime,
    ) -> list[AvailableSlot]:
        """Unbooked slots for a doctor within [start, end], ascending."""
        pass

    @abstractmethod
    async def claim_slot(
        self,
        slot_id: uuid.UUID,
        patient_id: str,
        visit_type: VisitType,
        reason: str,
    ) -> Appointment:
        """Book a slot and create its appointment atomically.

        Raises:
            SlotNotFound: No slot with this id
            SlotUnavailable: The slot is already booked
        """
        pass

    @abstractmethod
    async def get_appointment(self, appointment_id: uuid.UUID) -> Optional[Appointment]:
        pass

    @abstractmethod
    async def list_patient_appointments(self, patient_id: str) -> list[Appointment]:
        """All appointments of a patient, ascending by appointment time."""
        pass

    @abstractmethod
    async def update_status(
        self,
        appointment_id: uuid.UUID,
        expected: AppointmentStatus,
        new: AppointmentStatus,
        release_slot: bool = False,
    ) -> Optional[Appointment]:
        """Move an appointment from `expected` to `new`.

        Returns:
            The updated appointment, or None if its status was no longer
            `expected` (a concurrent transition won)
        """
        pass


class SqlReservationStore(ReservationStore):
    """ReservationStore backed by async SQLAlchemy."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def doctor_exists(self, doctor_id: uuid.UUID) -> bool:
        async with self._session_factory() as session:
            found = await session.scalar(select(Doctor.id).where(Doctor.id == doctor_id))
            return found is not None

    async def list_open_slots(
        self,
        doctor_id: uuid.UUID,
        start: datetime,
        end: datetime,
    ) -> list[AvailableSlot]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(AvailableSlot)
                .where(
                    AvailableSlot.doctor_id == doctor_id,
                    AvailableSlot.is_booked.is_(False),
                    AvailableSlot.slot_date >= start,
                    AvailableSlot.slot_date <= end,
                )
                .order_by(AvailableSlot.slot_date.asc())
            )
            return list(result.scalars().all())

    async def claim_slot(
        self,
        slot_id: uuid.UUID,
        patient_id: str,
        visit_type: VisitType,
        reason: str,
    ) -> Appointment:
        async with self._session_factory() as session:
            async with session.begin():
                result = await session.execute(
                    update(AvailableSlot)
                    .where(
                        AvailableSlot.id == slot_id,
                        AvailableSlot.is_booked.is_(False),
                    )
                    .values(is_booked=True)
                    .execution_options(synchronize_session=False)
                )

                if result.rowcount != 1:
                    # Nothing was written; tell a missing slot from a taken one
                    exists = await session.scalar(
                        select(AvailableSlot.id).where(AvailableSlot.id == slot_id)
                    )
                    if exists is None:
                        raise SlotNotFound(f"Slot {slot_id} does not exist")
                    raise SlotUnavailable(f"Slot {slot_id} is already booked")

                slot = await session.scalar(
                    select(AvailableSlot)
                    .options(selectinload(AvailableSlot.doctor))
                    .where(AvailableSlot.id == slot_id)
                )
                appointment = Appointment(
                    id=uuid.uuid4(),
                    patient_id=patient_id,
                    doctor_id=slot.doctor_id,
                    doctor=slot.doctor,
                    slot_id=slot.id,
                    appointment_date=slot.slot_date,
                    visit_type=visit_type,
                    reason=reason,
                    status=AppointmentStatus.SCHEDULED,
                    created_at=_utcnow(),
                )
                session.add(appointment)
                # Any failure from here on rolls back the slot flip as well

            logger.debug(f"Slot {slot_id} claimed by appointment {appointment.id}")
            return appointment

    async def get_appointment(self, appointment_id: uuid.UUID) -> Optional[Appointment]:
        async with self._session_factory() as session:
            return await session.scalar(
                select(Appointment)
                .options(selectinload(Appointment.doctor))
                .where(Appointment.id == appointment_id)
            )

    async def list_patient_appointments(self, patient_id: str) -> list[Appointment]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(Appointment)
                .options(selectinload(Appointment.doctor))
                .where(Appointment.patient_id == patient_id)
                .order_by(Appointment.appointment_date.asc())
            )
            return list(result.scalars().all())

    async def update_status(
        self,
        appointment_id: uuid.UUID,
        expected: AppointmentStatus,
        new: AppointmentStatus,
        release_slot: bool = False,
    ) -> Optional[Appointment]:
        values: dict = {"status": new}
        if new == AppointmentStatus.CANCELLED:
            values["cancelled_at"] = _utcnow()
        elif new == AppointmentStatus.COMPLETED:
            values["completed_at"] = _utcnow()

        async with self._session_factory() as session:
            async with session.begin():
                result = await session.execute(
                    update(Appointment)
                    .where(
                        Appointment.id == appointment_id,
                        Appointment.status == expected,
                    )
                    .values(**values)
                    .execution_options(synchronize_session=False)
                )
                if result.rowcount != 1:
                    return None

                appointment = await session.scalar(
                    select(Appointment)
                    .options(selectinload(Appointment.doctor))
                    .where(Appointment.id == appointment_id)
                )
                if appointment is None:
                    raise AppointmentNotFound(f"Appointment {appointment_id} does not exist")

                if release_slot:
                    await session.execute(
                        update(AvailableSlot)
                        .where(AvailableSlot.id == appointment.slot_id)
                        .values(is_booked=False)
                        .execution_options(synchronize_session=False)
                    )
                    logger.info(f"Slot {appointment.slot_id} released by {appointment_id}")

            return appointment
