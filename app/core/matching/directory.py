"""Read access to doctor profiles and reviews."""

import logging
import uuid
from dataclasses import dataclass, field
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.models.database import Doctor, Review

logger = logging.getLogger(__name__)


@dataclass
class ReviewSummary:
    """Reviews for one doctor, newest first."""

    reviews: list[Review] = field(default_factory=list)

    @property
    def count(self) -> int:
        return len(self.reviews)

    @property
    def average_rating(self) -> Optional[float]:
        if not self.reviews:
            return None
        return round(sum(r.rating for r in self.reviews) / len(self.reviews), 2)


class DoctorDirectory:
    """Queries over the doctor roster. Never writes."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def list_doctors(
        self,
        specialty: Optional[str] = None,
        name: Optional[str] = None,
    ) -> list[Doctor]:
        """All doctors, optionally narrowed by exact specialty or name fragment."""
        stmt = select(Doctor).order_by(Doctor.full_name.asc())
        if specialty:
            stmt = stmt.where(Doctor.specialty == specialty)
        if name:
            stmt = stmt.where(func.lower(Doctor.full_name).contains(name.lower()))

        async with self._session_factory() as session:
            result = await session.execute(stmt)
            doctors = list(result.scalars().all())

        logger.debug(f"Loaded {len(doctors)} doctors")
        return doctors

    async def get_doctor(self, doctor_id: uuid.UUID) -> Optional[Doctor]:
        async with self._session_factory() as session:
            return await session.get(Doctor, doctor_id)

    async def list_specialties(self) -> list[str]:
        """Distinct specialties, sorted."""
        async with self._session_factory() as session:
            result = await session.execute(
                select(Doctor.specialty).distinct().order_by(Doctor.specialty.asc())
            )
            return [s for s in result.scalars().all() if s]

    async def get_reviews(self, doctor_id: uuid.UUID) -> ReviewSummary:
        async with self._session_factory() as session:
            result = await session.execute(
                select(Review)
                .where(Review.doctor_id == doctor_id)
                .order_by(Review.created_at.desc())
            )
            return ReviewSummary(reviews=list(result.scalars().all()))
