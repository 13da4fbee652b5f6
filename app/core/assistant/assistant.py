"""
Conversational Matching Assistant.

Keeps the turn history of a chat session and asks the recommendation
service for each reply, using the same doctor roster as search.
"""

import logging
from typing import Awaitable, Callable, Optional

from app.core.assistant.recommender import RecommendationRequest, RecommendationService
from app.core.assistant.session import ConversationSession, ConversationStore
from app.core.errors import ExternalServiceError, ValidationError
from app.core.geo import Location
from app.models.database import Doctor

logger = logging.getLogger(__name__)

MAX_MESSAGE_LENGTH = 2000

RosterLoader = Callable[[], Awaitable[list[Doctor]]]


class MatchingAssistant:
    """
    Chat front end for doctor recommendations.

    History rules:
    - the patient turn is stored before the service is called
    - the assistant turn is stored only when the service answered
    - at most one call per session is in flight
    """

    def __init__(
        self,
        store: ConversationStore,
        recommender: RecommendationService,
        load_roster: RosterLoader,
    ):
        """Initialize assistant.

        Args:
            store: Conversation session storage
            recommender: External recommendation service
            load_roster: Coroutine returning the current doctor roster
        """
        self._store = store
        self._recommender = recommender
        self._load_roster = load_roster

    async def start_session(self, patient_id: Optional[str] = None) -> ConversationSession:
        return await self._store.create(patient_id=patient_id)

    async def get_session(self, session_id: str) -> ConversationSession:
        return await self._store.require(session_id)

    async def end_session(self, session_id: str) -> bool:
        return await self._store.delete(session_id)

    async def send_message(
        self,
        session_id: str,
        text: str,
        requester_location: Optional[Location] = None,
    ) -> str:
        """Send a patient message and return the assistant's reply.

        Raises:
            ValidationError: Blank or oversized message (history untouched)
            SessionNotFound: Unknown session
            SessionBusy: A previous message is still being answered
            ExternalServiceError: The recommendation service failed; the
                patient turn stays in history without a reply
        """
        if not isinstance(text, str) or not text.strip():
            raise ValidationError("message must be non-empty text")
        message = text.strip()
        if len(message) > MAX_MESSAGE_LENGTH:
            raise ValidationError(f"message must be at most {MAX_MESSAGE_LENGTH} characters")

        await self._store.require(session_id)

        async with self._store.in_flight(session_id):
            # Re-read under the guard so no concurrent write is lost
            session = await self._store.require(session_id)
            prior_history = session.history()

            session.add_patient_turn(message)
            await self._store.save(session)

            roster = await self._load_roster()
            request = RecommendationRequest(
                doctor_roster=[doctor.to_snapshot() for doctor in roster],
                conversation_history=prior_history,
                new_message=message,
                requester_location=requester_location,
            )

            try:
                reply = await self._recommender.recommend(request)
            except ExternalServiceError as e:
                logger.warning(
                    f"No reply for session {session_id}, patient turn kept: {e}"
                )
                raise

            session.add_assistant_turn(reply)
            await self._store.save(session)

        logger.debug(f"Session {session_id} now has {len(session.turns)} turns")
        return reply
