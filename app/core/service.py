"""
Consultation Service - transport-agnostic facade.

Coordinates search, reservation, lifecycle and the matching assistant.
Callers pass the acting patient and location explicitly on every call;
nothing here reads ambient request state.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.config import Settings, get_settings
from app.core.assistant import (
    ClaudeRecommendationService,
    ConversationSession,
    ConversationStore,
    MatchingAssistant,
    RecommendationService,
    get_conversation_store,
)
from app.core.errors import DoctorNotFound
from app.core.geo import Location
from app.core.matching import (
    DoctorDirectory,
    RankedDoctor,
    ReviewSummary,
    SearchFilters,
    distance_to,
    search,
)
from app.core.scheduling import (
    AppointmentLifecycle,
    DateRange,
    ReservationEngine,
    SqlReservationStore,
    is_upcoming,
    parse_id,
)
from app.core.scheduling.store import IdLike
from app.models.database import Appointment, AvailableSlot, Doctor

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RequestContext:
    """Who is asking, and from where. Built per request by the caller."""

    patient_id: Optional[str] = None
    location: Optional[Location] = None


@dataclass
class DoctorProfile:
    """Doctor detail view with distance and reviews."""

    doctor: Doctor
    distance_km: Optional[float]
    reviews: ReviewSummary


@dataclass
class PatientAppointments:
    """A patient's appointments split for the dashboard."""

    upcoming: list[Appointment] = field(default_factory=list)
    past: list[Appointment] = field(default_factory=list)


class ConsultationService:
    """
    Core operations exposed to callers.

    Coordinates:
    - Doctor search and ranking
    - Slot listing and reservation
    - Appointment lifecycle
    - Conversational matching
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        recommender: Optional[RecommendationService] = None,
        conversation_store: Optional[ConversationStore] = None,
        settings: Optional[Settings] = None,
    ):
        """Initialize service.

        Args:
            session_factory: Async SQLAlchemy session factory
            recommender: Recommendation service (defaults to Claude)
            conversation_store: Chat session storage (defaults to singleton)
            settings: Settings override
        """
        self._settings = settings or get_settings()
        self.directory = DoctorDirectory(session_factory)
        self.store = SqlReservationStore(session_factory)
        self.reservations = ReservationEngine(self.store)
        self.lifecycle = AppointmentLifecycle(
            self.store,
            release_slot_on_cancel=self._settings.release_slot_on_cancel,
        )
        self.assistant = MatchingAssistant(
            store=conversation_store or get_conversation_store(),
            recommender=recommender or ClaudeRecommendationService(),
            load_roster=self.directory.list_doctors,
        )

    # === Doctors ===

    async def search_doctors(
        self,
        filters: SearchFilters,
        requester_location: Optional[Location] = None,
    ) -> list[RankedDoctor]:
        """Filtered doctors, nearest first when the location is known."""
        roster = await self.directory.list_doctors(specialty=filters.specialty or None)
        results = search(roster, filters, requester_location)
        logger.debug(
            f"Search returned {len(results)} of {len(roster)} doctors "
            f"(location {'known' if requester_location else 'unknown'})"
        )
        return results

    async def list_specialties(self) -> list[str]:
        return await self.directory.list_specialties()

    async def get_doctor_profile(
        self,
        doctor_id: IdLike,
        requester_location: Optional[Location] = None,
    ) -> DoctorProfile:
        doctor = await self._require_doctor(doctor_id)
        return DoctorProfile(
            doctor=doctor,
            distance_km=distance_to(doctor, requester_location),
            reviews=await self.directory.get_reviews(doctor.id),
        )

    async def _require_doctor(self, doctor_id: IdLike) -> Doctor:
        parsed = parse_id(doctor_id)
        doctor = await self.directory.get_doctor(parsed) if parsed else None
        if doctor is None:
            raise DoctorNotFound(f"Doctor {doctor_id} not found")
        return doctor

    # === Slots & Appointments ===

    async def get_available_slots(
        self,
        doctor_id: IdLike,
        date_range: Optional[DateRange] = None,
    ) -> list[AvailableSlot]:
        """Open slots, defaulting to the configured window from now."""
        date_range = date_range or DateRange.next_days(self._settings.default_slot_window_days)
        return await self.reservations.list_available(doctor_id, date_range)

    async def book_appointment(
        self,
        patient_id: str,
        slot_id: IdLike,
        visit_type: object,
        reason: object,
    ) -> Appointment:
        return await self.reservations.reserve(slot_id, patient_id, visit_type, reason)

    async def cancel_appointment(self, appointment_id: IdLike, patient_id: str) -> Appointment:
        return await self.lifecycle.cancel(appointment_id, patient_id)

    async def complete_appointment(self, appointment_id: IdLike) -> Appointment:
        return await self.lifecycle.complete(appointment_id)

    async def list_appointments(
        self,
        patient_id: str,
        now: Optional[datetime] = None,
    ) -> PatientAppointments:
        """Upcoming (scheduled, not yet due) and past, each ascending by time."""
        now = now or datetime.now(timezone.utc)
        appointments = await self.store.list_patient_appointments(patient_id)

        result = PatientAppointments()
        for appointment in appointments:
            if is_upcoming(appointment, now):
                result.upcoming.append(appointment)
            else:
                result.past.append(appointment)
        return result

    # === Chat ===

    async def start_chat(self, patient_id: Optional[str] = None) -> ConversationSession:
        return await self.assistant.start_session(patient_id)

    async def get_chat(self, session_id: str) -> ConversationSession:
        return await self.assistant.get_session(session_id)

    async def end_chat(self, session_id: str) -> bool:
        return await self.assistant.end_session(session_id)

    async def send_chat_message(
        self,
        session_id: str,
        text: str,
        requester_location: Optional[Location] = None,
    ) -> str:
        return await self.assistant.send_message(session_id, text, requester_location)
