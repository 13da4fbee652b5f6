"""
Scheduling Module

Slot reservation, appointment lifecycle and the store they share.

Usage:
    from app.core.scheduling import (
        ReservationEngine,
        AppointmentLifecycle,
        SqlReservationStore,
        DateRange,
    )

    store = SqlReservationStore(async_session_factory)
    engine = ReservationEngine(store)

    slots = await engine.list_available(doctor_id, DateRange.next_days(14))
    appointment = await engine.reserve(slots[0].id, "patient-1", "video", "fever")

    lifecycle = AppointmentLifecycle(store)
    await lifecycle.cancel(appointment.id, "patient-1")
"""

# Store
from app.core.scheduling.store import (
    ReservationStore,
    SqlReservationStore,
    parse_id,
)

# Lifecycle
from app.core.scheduling.lifecycle import (
    AppointmentLifecycle,
    MISSED,
    can_transition,
    display_status,
    is_missed,
    is_terminal_status,
    is_upcoming,
)

# Reservation Engine
from app.core.scheduling.reservation import (
    DateRange,
    ReservationEngine,
    parse_visit_type,
    validate_reason,
)

__all__ = [
    # Store
    "ReservationStore",
    "SqlReservationStore",
    "parse_id",
    # Lifecycle
    "AppointmentLifecycle",
    "MISSED",
    "can_transition",
    "display_status",
    "is_missed",
    "is_terminal_status",
    "is_upcoming",
    # Reservation Engine
    "DateRange",
    "ReservationEngine",
    "parse_visit_type",
    "validate_reason",
]
