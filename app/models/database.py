"""
Database Models

SQLAlchemy ORM models for the doctor matching and appointment booking system.
"""

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Optional, List

from sqlalchemy import (
    Boolean, DateTime, Float, ForeignKey, Index, Integer, String, Text,
    UniqueConstraint, Uuid, Enum as SQLEnum, text
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


def _utcnow() -> datetime:
    """Get current UTC time as timezone-aware datetime."""
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    """Base class for all database models."""
    pass


class TimestampMixin:
    """Mixin that adds a created_at timestamp column."""

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=_utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
        nullable=False
    )


class VisitType(str, Enum):
    """How the consultation takes place."""
    VIDEO = "video"
    IN_PERSON = "in-person"


class AppointmentStatus(str, Enum):
    """Persisted appointment status.

    "missed" is deliberately absent: it is derived at read time.
    """
    SCHEDULED = "scheduled"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


class Doctor(Base, TimestampMixin):
    """
    Doctor profile.

    Owned by profile management; the booking engine only reads it.
    Coordinates are optional: a doctor without them is still searchable,
    just never filtered or ranked by distance.
    """

    __tablename__ = "doctors"
    __table_args__ = (
        Index("idx_doctor_specialty", "specialty"),
        Index("idx_doctor_name", "full_name"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4
    )
    full_name: Mapped[str] = mapped_column(String(200), nullable=False)
    specialty: Mapped[str] = mapped_column(String(100), nullable=False)
    latitude: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    longitude: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    rating: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    consultation_fee: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    is_verified: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    bio: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    phone: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)

    # Relationships
    slots: Mapped[List["AvailableSlot"]] = relationship(
        "AvailableSlot",
        back_populates="doctor"
    )
    appointments: Mapped[List["Appointment"]] = relationship(
        "Appointment",
        back_populates="doctor"
    )
    reviews: Mapped[List["Review"]] = relationship(
        "Review",
        back_populates="doctor"
    )

    @property
    def has_location(self) -> bool:
        """True when both coordinates are present."""
        return self.latitude is not None and self.longitude is not None

    def to_snapshot(self) -> dict:
        """Plain-data view handed to the recommendation service."""
        return {
            "id": str(self.id),
            "full_name": self.full_name,
            "specialty": self.specialty,
            "latitude": self.latitude,
            "longitude": self.longitude,
            "rating": self.rating,
            "consultation_fee": self.consultation_fee,
            "is_verified": self.is_verified,
            "bio": self.bio,
        }

    def __repr__(self) -> str:
        return f"<Doctor(id={self.id}, name='{self.full_name}', specialty='{self.specialty}')>"


class AvailableSlot(Base, TimestampMixin):
    """
    A single bookable point in time for one doctor.

    is_booked only flips to true through a conditional update in the
    reservation store, and back only through the configured release policy.
    """

    __tablename__ = "available_slots"
    __table_args__ = (
        UniqueConstraint("doctor_id", "slot_date", name="uq_slot_doctor_date"),
        Index("idx_slot_doctor_open", "doctor_id", "is_booked", "slot_date"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4
    )
    doctor_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("doctors.id", ondelete="CASCADE"),
        nullable=False
    )
    slot_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    is_booked: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    # Relationships
    doctor: Mapped["Doctor"] = relationship("Doctor", back_populates="slots")

    def __repr__(self) -> str:
        return (
            f"<AvailableSlot(id={self.id}, doctor_id={self.doctor_id}, "
            f"slot_date={self.slot_date}, is_booked={self.is_booked})>"
        )


class Appointment(Base, TimestampMixin):
    """
    Appointment model.

    Created only together with a successful slot reservation. Never
    deleted; cancelled and completed appointments are kept for history.
    """

    __tablename__ = "appointments"
    __table_args__ = (
        Index("idx_appointment_patient_date", "patient_id", "appointment_date"),
        Index("idx_appointment_doctor", "doctor_id"),
        Index("idx_appointment_slot", "slot_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4
    )
    patient_id: Mapped[str] = mapped_column(String(100), nullable=False)
    doctor_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("doctors.id", ondelete="CASCADE"),
        nullable=False
    )
    slot_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("available_slots.id", ondelete="RESTRICT"),
        nullable=False
    )
    appointment_date: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False
    )
    visit_type: Mapped[VisitType] = mapped_column(SQLEnum(VisitType), nullable=False)
    reason: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[AppointmentStatus] = mapped_column(
        SQLEnum(AppointmentStatus),
        default=AppointmentStatus.SCHEDULED,
        nullable=False
    )
    cancelled_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True
    )
    completed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True
    )

    # Relationships
    doctor: Mapped["Doctor"] = relationship("Doctor", back_populates="appointments")

    def __repr__(self) -> str:
        return (
            f"<Appointment(id={self.id}, patient_id={self.patient_id}, "
            f"doctor_id={self.doctor_id}, start={self.appointment_date}, "
            f"status={self.status.value})>"
        )


class Review(Base, TimestampMixin):
    """Patient review of a doctor. Display only."""

    __tablename__ = "reviews"
    __table_args__ = (
        Index("idx_review_doctor_time", "doctor_id", "created_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4
    )
    doctor_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("doctors.id", ondelete="CASCADE"),
        nullable=False
    )
    patient_id: Mapped[str] = mapped_column(String(100), nullable=False)
    reviewer_name: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    rating: Mapped[int] = mapped_column(Integer, nullable=False)
    comment: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Relationships
    doctor: Mapped["Doctor"] = relationship("Doctor", back_populates="reviews")

    def __repr__(self) -> str:
        return f"<Review(id={self.id}, doctor_id={self.doctor_id}, rating={self.rating})>"
