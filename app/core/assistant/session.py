"""
Conversation sessions for the matching assistant.

A session is an append-only list of role-tagged turns. Sessions live in
Redis with a TTL, or in process memory when Redis is unavailable.
"""

import json
import logging
import math
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import AsyncGenerator, Optional
from uuid import uuid4

from redis.exceptions import RedisError

from app.config import settings
from app.core.errors import SessionBusy, SessionNotFound
from app.infra.redis import APP_PREFIX, get_redis


def _utcnow() -> datetime:
    """Get current UTC time as timezone-aware datetime."""
    return datetime.now(timezone.utc)


logger = logging.getLogger(__name__)

SESSION_PREFIX = f"{APP_PREFIX}chat:session:"
INFLIGHT_PREFIX = f"{APP_PREFIX}chat:inflight:"

# Slack on top of the recommendation timeout for roster loading and saves
INFLIGHT_MARGIN_SECONDS = 15


class Role(str, Enum):
    """Who said a turn."""

    PATIENT = "patient"
    ASSISTANT = "assistant"


@dataclass(frozen=True)
class Turn:
    """One message in a conversation."""

    role: Role
    text: str

    def to_dict(self) -> dict:
        return {"role": self.role.value, "text": self.text}

    @classmethod
    def from_dict(cls, data: dict) -> "Turn":
        return cls(role=Role(data["role"]), text=data["text"])


@dataclass
class ConversationSession:
    """
    Ordered dialogue between one patient and the assistant.

    Turns are only ever appended. An assistant turn must answer a patient
    turn; a patient turn may follow an unanswered one after a failed call.
    """

    session_id: str = field(default_factory=lambda: str(uuid4()))
    patient_id: Optional[str] = None
    turns: list[Turn] = field(default_factory=list)
    created_at: datetime = field(default_factory=_utcnow)
    updated_at: datetime = field(default_factory=_utcnow)

    @property
    def awaiting_reply(self) -> bool:
        """Last turn is a patient turn without an answer."""
        return bool(self.turns) and self.turns[-1].role == Role.PATIENT

    def add_patient_turn(self, text: str) -> Turn:
        turn = Turn(Role.PATIENT, text)
        self.turns.append(turn)
        self.updated_at = _utcnow()
        return turn

    def add_assistant_turn(self, text: str) -> Turn:
        if not self.awaiting_reply:
            raise ValueError("Assistant turn must follow a patient turn")
        turn = Turn(Role.ASSISTANT, text)
        self.turns.append(turn)
        self.updated_at = _utcnow()
        return turn

    def history(self) -> list[dict]:
        """Turns as plain dicts, oldest first."""
        return [t.to_dict() for t in self.turns]

    def to_json(self) -> str:
        return json.dumps({
            "session_id": self.session_id,
            "patient_id": self.patient_id,
            "turns": self.history(),
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        })

    @classmethod
    def from_json(cls, raw: str) -> "ConversationSession":
        data = json.loads(raw)
        return cls(
            session_id=data["session_id"],
            patient_id=data.get("patient_id"),
            turns=[Turn.from_dict(t) for t in data.get("turns", [])],
            created_at=datetime.fromisoformat(data["created_at"]),
            updated_at=datetime.fromisoformat(data["updated_at"]),
        )


class ConversationStore:
    """
    Session storage with an in-flight guard.

    Key pattern: doctormatch:v1:chat:session:{session_id}

    Gracefully handles Redis unavailability with in-memory fallback.
    """

    def __init__(self, ttl: Optional[int] = None, inflight_ttl: Optional[int] = None):
        """Initialize conversation store.

        Args:
            ttl: Session TTL in seconds (defaults to settings)
            inflight_ttl: Lifetime of the in-flight marker in seconds, so a
                worker that dies mid-call only blocks its session briefly
                (defaults to the recommendation timeout plus a margin)
        """
        self._ttl = ttl or settings.chat_session_ttl
        self._inflight_ttl = inflight_ttl or (
            math.ceil(settings.recommendation_timeout_seconds) + INFLIGHT_MARGIN_SECONDS
        )
        self._in_memory_fallback: dict[str, ConversationSession] = {}
        self._in_memory_inflight: set[str] = set()

    def _key(self, session_id: str) -> str:
        return f"{SESSION_PREFIX}{session_id}"

    def _inflight_key(self, session_id: str) -> str:
        return f"{INFLIGHT_PREFIX}{session_id}"

    async def create(self, patient_id: Optional[str] = None) -> ConversationSession:
        """Start a new, empty session."""
        session = ConversationSession(patient_id=patient_id)
        await self.save(session)
        logger.debug(f"Chat session created: {session.session_id}")
        return session

    async def get(self, session_id: str) -> Optional[ConversationSession]:
        redis = await get_redis()

        if redis:
            data = await redis.get(self._key(session_id))
            if data:
                return ConversationSession.from_json(data)
            return None

        return self._in_memory_fallback.get(session_id)

    async def require(self, session_id: str) -> ConversationSession:
        """Get a session or raise SessionNotFound."""
        session = await self.get(session_id)
        if session is None:
            raise SessionNotFound(f"Chat session {session_id} not found")
        return session

    async def save(self, session: ConversationSession) -> None:
        redis = await get_redis()

        if redis:
            await redis.setex(self._key(session.session_id), self._ttl, session.to_json())
        else:
            self._in_memory_fallback[session.session_id] = session

    async def delete(self, session_id: str) -> bool:
        redis = await get_redis()

        if redis:
            deleted = await redis.delete(self._key(session_id))
            return bool(deleted)

        return self._in_memory_fallback.pop(session_id, None) is not None

    async def try_acquire(self, session_id: str) -> bool:
        """Mark a session as having a call in flight. False if already marked."""
        redis = await get_redis()

        if redis:
            acquired = await redis.set(
                self._inflight_key(session_id), "1", nx=True, ex=self._inflight_ttl
            )
            return bool(acquired)

        if session_id in self._in_memory_inflight:
            return False
        self._in_memory_inflight.add(session_id)
        return True

    async def release(self, session_id: str) -> None:
        redis = await get_redis()

        if redis:
            try:
                await redis.delete(self._inflight_key(session_id))
            except RedisError as e:
                # The marker expires on its own shortly after the call timeout
                logger.error(f"Failed to release in-flight marker for {session_id}: {e}")
            return

        self._in_memory_inflight.discard(session_id)

    @asynccontextmanager
    async def in_flight(self, session_id: str) -> AsyncGenerator[None, None]:
        """Hold the session's single in-flight slot.

        Raises:
            SessionBusy: Another call on this session has not finished
        """
        if not await self.try_acquire(session_id):
            raise SessionBusy(f"Chat session {session_id} is still answering a message")
        try:
            yield
        finally:
            await self.release(session_id)


# Singleton
_store: Optional[ConversationStore] = None


def get_conversation_store() -> ConversationStore:
    """Get singleton ConversationStore."""
    global _store
    if _store is None:
        _store = ConversationStore()
    return _store
