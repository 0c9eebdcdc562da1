"""
Doctor double-booking check.

Two appointments conflict when they share a doctor and an identical start
instant and neither is cancelled. Appointments carry no duration, so
overlapping ranges are not considered.
"""

import logging
from datetime import date, datetime, timedelta
from typing import List, Optional

from .business_rules import ClinicPolicy, evaluate, generate_time_slots
from .domain import AppointmentFilter, AppointmentStatus
from .results import PersistenceFailure, Result, ScheduleConflict, TransientFailure
from .stores import AppointmentStore, StoreError, TransientStoreError

logger = logging.getLogger(__name__)

INACTIVE_STATUSES = frozenset({AppointmentStatus.CANCELADA})


def store_failure(exc: StoreError):
    """Map a store exception onto the matching tagged failure."""
    if isinstance(exc, TransientStoreError):
        return TransientFailure(reason=str(exc) or "Store temporarily unavailable")
    return PersistenceFailure(reason=str(exc) or "Store error")


class ConflictChecker:
    """Looks up active bookings for a doctor through the appointment store."""

    def __init__(self, appointments: AppointmentStore):
        self.appointments = appointments

    def check_conflict(
        self,
        doctor_id: Optional[str],
        scheduled_at: datetime,
        exclude_appointment_id: Optional[str] = None,
    ) -> Result:
        """
        Result.success() when the slot is free; otherwise a failure holding
        ScheduleConflict, or TransientFailure/PersistenceFailure if the store
        could not be read. Unassigned doctors never conflict.
        """
        if not doctor_id:
            return Result.success()

        criteria = AppointmentFilter(
            doctor_id=doctor_id,
            exact_timestamp=scheduled_at,
            exclude_id=exclude_appointment_id,
            status_not_in=INACTIVE_STATUSES,
        )
        try:
            existing = self.appointments.find_appointments(criteria)
        except StoreError as e:
            logger.warning("Conflict lookup failed for doctor %s at %s: %s", doctor_id, scheduled_at.isoformat(), e)
            return Result.failure(store_failure(e))

        if existing:
            blocking = existing[0]
            logger.info(
                "Schedule conflict: doctor %s at %s already booked by appointment %s",
                doctor_id, scheduled_at.isoformat(), blocking.id,
            )
            return Result.failure(ScheduleConflict(existing_appointment_id=blocking.id))

        return Result.success()

    def available_slots(
        self,
        day: date,
        policy: ClinicPolicy,
        doctor_id: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> List[datetime]:
        """
        Slots on ``day`` that pass the business rules at ``now`` and, when a
        doctor is given, are not already taken by one of their active bookings.

        Store failures propagate as ``StoreError``.
        """
        slots = [slot for slot in generate_time_slots(day, policy) if evaluate(slot, policy, now).ok]
        if not doctor_id or not slots:
            return slots

        booked = self.appointments.find_appointments(AppointmentFilter(
            doctor_id=doctor_id,
            status_not_in=INACTIVE_STATUSES,
            starts_from=slots[0],
            starts_before=slots[-1] + timedelta(minutes=1),
        ))
        taken = {appointment.scheduled_at for appointment in booked}
        return [slot for slot in slots if slot not in taken]
