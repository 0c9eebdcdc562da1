"""
Appointment lifecycle state machine.

PROGRAMADA -> CONFIRMADA -> PRESENTE -> COMPLETADA, with CANCELADA,
NO_ASISTIO and REAGENDADA as side exits. COMPLETADA and NO_ASISTIO are
terminal; a CANCELADA appointment can still be rescheduled.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, List, Optional, Union

from .business_rules import ClinicPolicy, evaluate
from .conflicts import ConflictChecker, store_failure
from .domain import AppointmentAction, AppointmentRecord, AppointmentStatus, HistoryEntry
from .results import (
    InvalidCurrentStatus,
    Result,
    ScheduleConflict,
    TransientFailure,
    TransitionError,
    TransitionErrorKind,
)
from .stores import AppointmentStore, RecordNotFoundError, SlotTakenError, StaleRecordError, StoreError

logger = logging.getLogger(__name__)

S = AppointmentStatus
A = AppointmentAction

# viewHistory is read-only and allowed from every status, so it is not listed.
TRANSITIONS: Dict[AppointmentStatus, Dict[AppointmentAction, AppointmentStatus]] = {
    S.PROGRAMADA: {
        A.CONFIRM: S.CONFIRMADA,
        A.CHECK_IN: S.PRESENTE,
        A.CANCEL: S.CANCELADA,
        A.NO_SHOW: S.NO_ASISTIO,
        A.RESCHEDULE: S.REAGENDADA,
    },
    S.CONFIRMADA: {
        A.CHECK_IN: S.PRESENTE,
        A.CANCEL: S.CANCELADA,
        A.NO_SHOW: S.NO_ASISTIO,
        A.RESCHEDULE: S.REAGENDADA,
    },
    S.PRESENTE: {
        A.COMPLETE: S.COMPLETADA,
    },
    S.COMPLETADA: {},
    S.CANCELADA: {
        A.RESCHEDULE: S.REAGENDADA,
    },
    S.NO_ASISTIO: {},
    S.REAGENDADA: {},
}

_unmapped = set(AppointmentStatus) - set(TRANSITIONS)
if _unmapped:
    raise RuntimeError(f"Transition table has no entry for: {sorted(s.value for s in _unmapped)}")


def _coerce(status: Union[str, AppointmentStatus], action: Union[str, AppointmentAction]):
    return AppointmentStatus(status), AppointmentAction(action)


def can_transition(current_status: Union[str, AppointmentStatus], action: Union[str, AppointmentAction]) -> bool:
    """True when ``action`` is permitted from ``current_status``. Unknown values are never permitted."""
    try:
        status, action = _coerce(current_status, action)
    except ValueError:
        return False
    if action is A.VIEW_HISTORY:
        return True
    return action in TRANSITIONS[status]


def available_actions(current_status: Union[str, AppointmentStatus]) -> List[AppointmentAction]:
    status = AppointmentStatus(current_status)
    return [A.VIEW_HISTORY] + [action for action in AppointmentAction if action in TRANSITIONS[status]]


def append_note(existing: Optional[str], note: str, when: datetime, policy: ClinicPolicy) -> str:
    stamped = f"[{policy.localize(when):%d/%m/%Y %H:%M}] {note.strip()}"
    return f"{existing} | {stamped}" if existing else stamped


@dataclass
class TransitionContext:
    """
    Inputs that accompany an action.

    Attributes:
        now: evaluation instant (defaults to the current UTC time)
        new_scheduled_at: required for reschedule
        reason: free text stored with the history rows
        note: appended to the appointment notes when given
        expected_updated_at: optimistic-lock token read by the caller
    """
    now: Optional[datetime] = None
    new_scheduled_at: Optional[datetime] = None
    reason: Optional[str] = None
    note: Optional[str] = None
    expected_updated_at: Optional[datetime] = None


def _error(kind: TransitionErrorKind, reason: str, cause=None) -> Result:
    return Result.failure(TransitionError(kind=kind, reason=reason, cause=cause))


class StatusTransitionGuard:
    """Validates lifecycle actions and applies them through the appointment store."""

    def __init__(
        self,
        appointments: AppointmentStore,
        policy: ClinicPolicy,
        conflict_checker: Optional[ConflictChecker] = None,
    ):
        self.appointments = appointments
        self.policy = policy
        self.conflict_checker = conflict_checker or ConflictChecker(appointments)

    def apply_transition(
        self,
        appointment: AppointmentRecord,
        action: Union[str, AppointmentAction],
        context: Optional[TransitionContext] = None,
    ) -> Result:
        """
        Apply ``action`` to ``appointment``.

        Returns Result.success(updated AppointmentRecord) or a failure holding
        a TransitionError. viewHistory returns the appointment unchanged.
        """
        context = context or TransitionContext()
        now = context.now or datetime.now(timezone.utc)
        action = AppointmentAction(action)

        if action is A.VIEW_HISTORY:
            return Result.success(appointment)

        target = TRANSITIONS[appointment.status].get(action)
        if target is None:
            invalid = InvalidCurrentStatus(current_status=appointment.status.value, action=action.value)
            logger.info("Rejected %s on appointment %s: %s", action.value, appointment.id, invalid.reason)
            return _error(TransitionErrorKind.INVALID_CURRENT_STATUS, invalid.reason, invalid)

        new_scheduled_at = None
        if action is A.RESCHEDULE:
            if context.new_scheduled_at is None:
                return _error(TransitionErrorKind.MISSING_SCHEDULED_AT, "A new date and time is required to reschedule")
            new_scheduled_at = self.policy.localize(context.new_scheduled_at)
            rejection = self._check_new_slot(appointment, new_scheduled_at, now)
            if rejection is not None:
                return rejection

        notes = append_note(appointment.notes, context.note, now, self.policy) if context.note else None

        try:
            updated = self.appointments.update_appointment_status(
                appointment.id,
                target,
                new_scheduled_at=new_scheduled_at,
                notes=notes,
                expected_updated_at=context.expected_updated_at,
            )
        except StaleRecordError as e:
            logger.warning("Appointment %s changed concurrently: %s", appointment.id, e)
            return _error(
                TransitionErrorKind.CONCURRENT_MODIFICATION,
                "The appointment was modified by another process. Refresh and retry.",
            )
        except RecordNotFoundError:
            return _error(TransitionErrorKind.NOT_FOUND, f"Appointment {appointment.id} not found")
        except SlotTakenError as e:
            logger.warning("Reschedule of %s lost the slot to a concurrent booking: %s", appointment.id, e)
            return self._slot_taken(appointment, new_scheduled_at)
        except StoreError as e:
            failure = store_failure(e)
            logger.error("Failed to update appointment %s to %s: %s", appointment.id, target.value, e)
            kind = (TransitionErrorKind.TRANSIENT_FAILURE if isinstance(failure, TransientFailure)
                    else TransitionErrorKind.PERSISTENCE_FAILURE)
            return _error(kind, failure.reason, failure)

        logger.info("Appointment %s: %s -> %s", appointment.id, appointment.status.value, updated.status.value)
        self._record_history(appointment, updated, context.reason, now)
        return Result.success(updated)

    def history(self, appointment_id: str) -> Result:
        """Result.success(list of HistoryEntry, oldest first)."""
        try:
            return Result.success(self.appointments.list_history(appointment_id))
        except StoreError as e:
            logger.warning("Failed to read history for appointment %s: %s", appointment_id, e)
            return Result.failure(store_failure(e))

    def _check_new_slot(self, appointment: AppointmentRecord, new_scheduled_at: datetime, now: datetime):
        rules = evaluate(new_scheduled_at, self.policy, now)
        if not rules.ok:
            logger.info("Reschedule of %s rejected: %s", appointment.id, rules.error.reason)
            return _error(TransitionErrorKind.RULE_VIOLATION, rules.error.reason, rules.error)

        conflict = self.conflict_checker.check_conflict(
            appointment.doctor_id, new_scheduled_at, exclude_appointment_id=appointment.id
        )
        if conflict.ok:
            return None
        if isinstance(conflict.error, ScheduleConflict):
            return _error(TransitionErrorKind.SCHEDULE_CONFLICT, conflict.error.reason, conflict.error)
        kind = (TransitionErrorKind.TRANSIENT_FAILURE if isinstance(conflict.error, TransientFailure)
                else TransitionErrorKind.PERSISTENCE_FAILURE)
        return _error(kind, conflict.error.reason, conflict.error)

    def _slot_taken(self, appointment: AppointmentRecord, new_scheduled_at: Optional[datetime]) -> Result:
        winner = None
        if new_scheduled_at is not None:
            lookup = self.conflict_checker.check_conflict(
                appointment.doctor_id, new_scheduled_at, exclude_appointment_id=appointment.id
            )
            if not lookup.ok and isinstance(lookup.error, ScheduleConflict):
                winner = lookup.error
        reason = winner.reason if winner else "Another active appointment already occupies this doctor's slot"
        return _error(TransitionErrorKind.SCHEDULE_CONFLICT, reason, winner)

    def _record_history(self, before: AppointmentRecord, after: AppointmentRecord, reason: Optional[str], now: datetime):
        entries = [HistoryEntry(
            appointment_id=after.id,
            field_changed="status",
            value_before=before.status.value,
            value_after=after.status.value,
            change_reason=reason or f"Status change: {before.status.value} -> {after.status.value}",
            changed_at=now,
        )]
        if before.scheduled_at != after.scheduled_at:
            entries.append(HistoryEntry(
                appointment_id=after.id,
                field_changed="scheduled_at",
                value_before=self.policy.localize(before.scheduled_at).isoformat(),
                value_after=self.policy.localize(after.scheduled_at).isoformat(),
                change_reason=reason or "Appointment rescheduled",
                changed_at=now,
            ))
        try:
            self.appointments.record_history(entries)
        except StoreError as e:
            logger.warning("History not recorded for appointment %s: %s", after.id, e)
