import pytest

from clinic_admission.services.domain import AppointmentAction, AppointmentRecord, AppointmentStatus
from clinic_admission.services.results import (
    InvalidCurrentStatus,
    RuleViolation,
    RuleViolationKind,
    ScheduleConflict,
    TransitionErrorKind,
)
from clinic_admission.services.status_transitions import (
    TRANSITIONS,
    StatusTransitionGuard,
    TransitionContext,
    append_note,
    available_actions,
    can_transition,
)
from clinic_admission.services.stores import SlotTakenError, StoreError, TransientStoreError

from .conftest import NEXT_SUNDAY_10, NEXT_TUESDAY_10, NOW, local

S = AppointmentStatus
A = AppointmentAction

ALLOWED = {
    (S.PROGRAMADA, A.CONFIRM), (S.PROGRAMADA, A.CHECK_IN), (S.PROGRAMADA, A.CANCEL),
    (S.PROGRAMADA, A.NO_SHOW), (S.PROGRAMADA, A.RESCHEDULE),
    (S.CONFIRMADA, A.CHECK_IN), (S.CONFIRMADA, A.CANCEL),
    (S.CONFIRMADA, A.NO_SHOW), (S.CONFIRMADA, A.RESCHEDULE),
    (S.PRESENTE, A.COMPLETE),
    (S.CANCELADA, A.RESCHEDULE),
}


@pytest.fixture
def guard(appointments, policy):
    return StatusTransitionGuard(appointments, policy)


@pytest.fixture
def make_appointment(appointments):
    def _make(status=S.PROGRAMADA, id='apt-1', doctor_id='doc-1', scheduled_at=NEXT_TUESDAY_10, notes=None):
        return appointments.add(AppointmentRecord(
            id=id, patient_id='pat-1', doctor_id=doctor_id, scheduled_at=scheduled_at,
            status=status, reasons=['Control'], notes=notes, updated_at=local(2026, 3, 1, 9, 0),
        ))
    return _make


def test_every_status_has_a_transition_row():
    assert set(TRANSITIONS) == set(AppointmentStatus)


@pytest.mark.parametrize('status', list(AppointmentStatus))
@pytest.mark.parametrize('action', [a for a in AppointmentAction if a is not A.VIEW_HISTORY])
def test_can_transition_matches_the_table(status, action):
    assert can_transition(status, action) == ((status, action) in ALLOWED)


@pytest.mark.parametrize('status', list(AppointmentStatus))
def test_view_history_is_always_allowed(status):
    assert can_transition(status, A.VIEW_HISTORY)


def test_can_transition_accepts_raw_strings():
    assert can_transition('PROGRAMADA', 'checkIn')
    assert not can_transition('COMPLETADA', 'checkIn')
    assert not can_transition('NO_ASISTIO', 'cancel')


def test_unknown_values_are_never_allowed():
    assert not can_transition('PROGRAMADA', 'teleport')
    assert not can_transition('ARCHIVADA', 'checkIn')


def test_available_actions():
    assert available_actions(S.PROGRAMADA) == [A.VIEW_HISTORY, A.CONFIRM, A.CHECK_IN, A.CANCEL, A.NO_SHOW, A.RESCHEDULE]
    assert available_actions(S.PRESENTE) == [A.VIEW_HISTORY, A.COMPLETE]
    assert available_actions(S.COMPLETADA) == [A.VIEW_HISTORY]
    assert available_actions('CANCELADA') == [A.VIEW_HISTORY, A.RESCHEDULE]


def test_check_in(guard, make_appointment, appointments):
    appointment = make_appointment()

    result = guard.apply_transition(appointment, A.CHECK_IN, TransitionContext(now=NOW))

    assert result.ok
    assert result.value.status is S.PRESENTE
    assert appointments.rows['apt-1'].status is S.PRESENTE


def test_confirm_then_complete_path(guard, make_appointment):
    appointment = make_appointment()
    context = TransitionContext(now=NOW)

    confirmed = guard.apply_transition(appointment, 'confirm', context).value
    present = guard.apply_transition(confirmed, 'checkIn', context).value
    completed = guard.apply_transition(present, 'complete', context).value

    assert [confirmed.status, present.status, completed.status] == [S.CONFIRMADA, S.PRESENTE, S.COMPLETADA]


def test_cancel_from_presente_is_rejected(guard, make_appointment, appointments):
    appointment = make_appointment(status=S.PRESENTE)

    result = guard.apply_transition(appointment, A.CANCEL, TransitionContext(now=NOW))

    assert not result.ok
    assert result.error.kind is TransitionErrorKind.INVALID_CURRENT_STATUS
    assert isinstance(result.error.cause, InvalidCurrentStatus)
    assert result.error.cause.current_status == 'PRESENTE'
    assert appointments.called('update_appointment_status') == []


@pytest.mark.parametrize('status', [S.COMPLETADA, S.NO_ASISTIO])
@pytest.mark.parametrize('action', [A.CHECK_IN, A.COMPLETE, A.CANCEL, A.NO_SHOW, A.RESCHEDULE])
def test_terminal_states_reject_forward_actions(guard, make_appointment, status, action):
    appointment = make_appointment(status=status)
    context = TransitionContext(now=NOW, new_scheduled_at=local(2026, 3, 11, 10, 0))

    result = guard.apply_transition(appointment, action, context)

    assert result.error.kind is TransitionErrorKind.INVALID_CURRENT_STATUS


def test_view_history_changes_nothing(guard, make_appointment, appointments):
    appointment = make_appointment(status=S.COMPLETADA)

    result = guard.apply_transition(appointment, A.VIEW_HISTORY)

    assert result.value is appointment
    assert appointments.called('update_appointment_status') == []


def test_reschedule_requires_a_new_time(guard, make_appointment):
    result = guard.apply_transition(make_appointment(), A.RESCHEDULE, TransitionContext(now=NOW))

    assert result.error.kind is TransitionErrorKind.MISSING_SCHEDULED_AT


def test_reschedule_checks_business_rules(guard, make_appointment, appointments):
    context = TransitionContext(now=NOW, new_scheduled_at=NEXT_SUNDAY_10)

    result = guard.apply_transition(make_appointment(), A.RESCHEDULE, context)

    assert result.error.kind is TransitionErrorKind.RULE_VIOLATION
    assert isinstance(result.error.cause, RuleViolation)
    assert result.error.cause.kind is RuleViolationKind.WEEKDAY_DISALLOWED
    assert appointments.called('update_appointment_status') == []


def test_reschedule_checks_conflicts(guard, make_appointment):
    other_slot = local(2026, 3, 10, 11, 0)
    make_appointment(id='apt-2', scheduled_at=other_slot)
    appointment = make_appointment()

    result = guard.apply_transition(appointment, A.RESCHEDULE,
                                    TransitionContext(now=NOW, new_scheduled_at=other_slot))

    assert result.error.kind is TransitionErrorKind.SCHEDULE_CONFLICT
    assert isinstance(result.error.cause, ScheduleConflict)
    assert result.error.cause.existing_appointment_id == 'apt-2'


def test_reschedule_to_own_slot_is_not_a_conflict(guard, make_appointment):
    appointment = make_appointment()

    result = guard.apply_transition(appointment, A.RESCHEDULE,
                                    TransitionContext(now=NOW, new_scheduled_at=NEXT_TUESDAY_10))

    assert result.ok


def test_reschedule_cancelled_appointment(guard, make_appointment, appointments):
    appointment = make_appointment(status=S.CANCELADA)
    new_time = local(2026, 3, 12, 13, 30)

    result = guard.apply_transition(appointment, A.RESCHEDULE,
                                    TransitionContext(now=NOW, new_scheduled_at=new_time, reason='Patient called'))

    assert result.ok
    assert result.value.status is S.REAGENDADA
    assert result.value.scheduled_at == new_time
    fields = [(entry.field_changed, entry.value_before, entry.value_after) for entry in appointments.history]
    assert fields == [
        ('status', 'CANCELADA', 'REAGENDADA'),
        ('scheduled_at', NEXT_TUESDAY_10.isoformat(), new_time.isoformat()),
    ]
    assert all(entry.change_reason == 'Patient called' for entry in appointments.history)


def test_status_change_records_one_history_row(guard, make_appointment, appointments):
    guard.apply_transition(make_appointment(), A.NO_SHOW, TransitionContext(now=NOW))

    assert len(appointments.history) == 1
    entry = appointments.history[0]
    assert (entry.field_changed, entry.value_before, entry.value_after) == ('status', 'PROGRAMADA', 'NO_ASISTIO')
    assert entry.changed_at == NOW


def test_history_write_failure_does_not_fail_the_transition(guard, make_appointment, appointments):
    appointments.fail_on['record_history'] = StoreError('disk full')

    result = guard.apply_transition(make_appointment(), A.CANCEL, TransitionContext(now=NOW))

    assert result.ok
    assert result.value.status is S.CANCELADA


def test_notes_are_appended_with_a_timestamp(guard, make_appointment):
    appointment = make_appointment(notes='Primera vez')

    result = guard.apply_transition(appointment, A.CANCEL, TransitionContext(now=NOW, note='Paciente avisó'))

    assert result.value.notes == 'Primera vez | [04/03/2026 08:00] Paciente avisó'


def test_append_note_without_existing_notes(policy):
    assert append_note(None, ' llegó tarde ', NOW, policy) == '[04/03/2026 08:00] llegó tarde'


def test_stale_update_is_reported(guard, make_appointment):
    appointment = make_appointment()
    context = TransitionContext(now=NOW, expected_updated_at=local(2026, 2, 1, 9, 0))

    result = guard.apply_transition(appointment, A.CONFIRM, context)

    assert result.error.kind is TransitionErrorKind.CONCURRENT_MODIFICATION


def test_matching_lock_token_is_accepted(guard, make_appointment):
    appointment = make_appointment()
    context = TransitionContext(now=NOW, expected_updated_at=appointment.updated_at)

    assert guard.apply_transition(appointment, A.CONFIRM, context).ok


def test_missing_appointment_is_reported(guard, make_appointment, appointments):
    appointment = make_appointment()
    del appointments.rows['apt-1']

    result = guard.apply_transition(appointment, A.CONFIRM, TransitionContext(now=NOW))

    assert result.error.kind is TransitionErrorKind.NOT_FOUND


@pytest.mark.parametrize('error, kind', [
    (TransientStoreError('timeout'), TransitionErrorKind.TRANSIENT_FAILURE),
    (StoreError('constraint'), TransitionErrorKind.PERSISTENCE_FAILURE),
])
def test_store_failures_on_update(guard, make_appointment, appointments, error, kind):
    appointments.fail_on['update_appointment_status'] = error

    result = guard.apply_transition(make_appointment(), A.CHECK_IN, TransitionContext(now=NOW))

    assert result.error.kind is kind


def test_reschedule_that_loses_its_slot_on_write_is_a_conflict(guard, make_appointment, appointments):
    appointments.fail_on['update_appointment_status'] = SlotTakenError('slot already taken')

    result = guard.apply_transition(
        make_appointment(), A.RESCHEDULE, TransitionContext(now=NOW, new_scheduled_at=local(2026, 3, 11, 9, 30)),
    )

    assert result.error.kind is TransitionErrorKind.SCHEDULE_CONFLICT
    assert appointments.called('record_history') == []


def test_history_lookup(guard, make_appointment):
    appointment = make_appointment()
    guard.apply_transition(appointment, A.CONFIRM, TransitionContext(now=NOW))

    result = guard.history('apt-1')

    assert result.ok
    assert [entry.value_after for entry in result.value] == ['CONFIRMADA']
