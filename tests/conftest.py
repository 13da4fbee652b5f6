"""Shared fixtures: a throwaway SQLite database seeded with doctors and slots."""

import os

# Must be set before app.config is imported anywhere
os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ.setdefault("APP_ENV", "development")
os.environ.pop("ANTHROPIC_API_KEY", None)
os.environ.pop("GEOLOCATION_URL", None)

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from unittest.mock import patch
import uuid

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import AsyncAdaptedQueuePool

from app.models.database import AvailableSlot, Base, Doctor, Review


BERLIN = (52.5200, 13.4050)
POTSDAM = (52.3906, 13.0645)
HAMBURG = (53.5511, 9.9937)
MUNICH = (48.1374, 11.5755)


@dataclass
class SeedData:
    """Ids of the seeded rows."""

    now: datetime
    doctors: dict[str, uuid.UUID] = field(default_factory=dict)
    slots: dict[str, uuid.UUID] = field(default_factory=dict)


@pytest_asyncio.fixture
async def session_factory(tmp_path):
    """Session factory over a file database.

    A single pooled connection makes concurrent writers queue up the way
    row locks would on a server database.
    """
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'doctor_match.db'}",
        poolclass=AsyncAdaptedQueuePool,
        pool_size=1,
        max_overflow=0,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    factory = async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )
    yield factory

    await engine.dispose()


@pytest_asyncio.fixture
async def seeded(session_factory) -> SeedData:
    """Four doctors (one without a location) and a handful of slots."""
    now = datetime.now(timezone.utc).replace(microsecond=0)
    data = SeedData(now=now)

    doctors = {
        "heart": Doctor(
            id=uuid.uuid4(),
            full_name="Dr. Alice Heart",
            specialty="Cardiology",
            latitude=BERLIN[0],
            longitude=BERLIN[1],
            rating=4.8,
            consultation_fee=80.0,
            is_verified=True,
            bio="Interventional cardiologist",
        ),
        "brain": Doctor(
            id=uuid.uuid4(),
            full_name="Dr. Bob Brain",
            specialty="Neurology",
            latitude=POTSDAM[0],
            longitude=POTSDAM[1],
            rating=4.5,
            consultation_fee=90.0,
            bio="Headaches and migraines",
        ),
        "skin": Doctor(
            id=uuid.uuid4(),
            full_name="Dr. Carol Skin",
            specialty="Dermatology",
            latitude=MUNICH[0],
            longitude=MUNICH[1],
            rating=4.1,
            consultation_fee=60.0,
        ),
        "remote": Doctor(
            id=uuid.uuid4(),
            full_name="Dr. Dan Remote",
            specialty="Cardiology",
            rating=3.9,
            consultation_fee=50.0,
            bio="Video consultations only",
        ),
    }

    heart_id = doctors["heart"].id
    slots = {
        "past": AvailableSlot(id=uuid.uuid4(), doctor_id=heart_id, slot_date=now - timedelta(days=1)),
        "day1": AvailableSlot(id=uuid.uuid4(), doctor_id=heart_id, slot_date=now + timedelta(days=1)),
        "day2": AvailableSlot(id=uuid.uuid4(), doctor_id=heart_id, slot_date=now + timedelta(days=2)),
        "day3_booked": AvailableSlot(
            id=uuid.uuid4(),
            doctor_id=heart_id,
            slot_date=now + timedelta(days=3),
            is_booked=True,
        ),
        "far": AvailableSlot(id=uuid.uuid4(), doctor_id=heart_id, slot_date=now + timedelta(days=30)),
        "brain_day1": AvailableSlot(
            id=uuid.uuid4(),
            doctor_id=doctors["brain"].id,
            slot_date=now + timedelta(days=1),
        ),
    }

    reviews = [
        Review(
            doctor_id=heart_id,
            patient_id="patient-a",
            reviewer_name="Anna",
            rating=5,
            comment="Very thorough",
            created_at=now - timedelta(days=10),
        ),
        Review(
            doctor_id=heart_id,
            patient_id="patient-b",
            reviewer_name="Ben",
            rating=4,
            comment="Good, a bit rushed",
            created_at=now - timedelta(days=2),
        ),
    ]

    async with session_factory() as session:
        async with session.begin():
            session.add_all(list(doctors.values()))
            await session.flush()
            session.add_all(list(slots.values()))
            session.add_all(reviews)

    data.doctors = {key: doctor.id for key, doctor in doctors.items()}
    data.slots = {key: slot.id for key, slot in slots.items()}
    return data


@pytest.fixture
def no_redis():
    """Run chat session storage on the in-memory fallback."""
    with patch("app.core.assistant.session.get_redis", return_value=None):
        yield
