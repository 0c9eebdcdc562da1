from flask import Blueprint, request, jsonify

from clinic_admission.services.business_rules import evaluate
from clinic_admission.services.conflicts import ConflictChecker, store_failure
from clinic_admission.services.domain import AppointmentAction
from clinic_admission.services.results import ScheduleConflict, TransientFailure, TransitionErrorKind
from clinic_admission.services.status_transitions import (
    StatusTransitionGuard,
    TransitionContext,
    available_actions,
)
from clinic_admission.services.stores import StoreError
from clinic_admission.utils.context import appointment_store, get_now, get_policy
from clinic_admission.utils.parsing import parse_date, parse_datetime, parse_text

appointment_bp = Blueprint('appointment', __name__, url_prefix='/api/appointments')

TRANSITION_STATUS_CODES = {
    TransitionErrorKind.INVALID_CURRENT_STATUS: 422,
    TransitionErrorKind.MISSING_SCHEDULED_AT: 400,
    TransitionErrorKind.RULE_VIOLATION: 422,
    TransitionErrorKind.SCHEDULE_CONFLICT: 409,
    TransitionErrorKind.NOT_FOUND: 404,
    TransitionErrorKind.CONCURRENT_MODIFICATION: 409,
    TransitionErrorKind.PERSISTENCE_FAILURE: 500,
    TransitionErrorKind.TRANSIENT_FAILURE: 503,
}


def _store_error_response(exc):
    failure = store_failure(exc)
    status = 503 if isinstance(failure, TransientFailure) else 500
    return jsonify({
        'success': False,
        'error': failure.reason
    }), status


def _load_appointment(store, appointment_id):
    """Returns (appointment, None) or (None, error response)."""
    try:
        appointment = store.get_appointment(appointment_id)
    except StoreError as e:
        return None, _store_error_response(e)
    if appointment is None:
        return None, (jsonify({
            'success': False,
            'error': 'Appointment not found'
        }), 404)
    return appointment, None


def _appointment_to_dict(appointment):
    data = appointment.to_dict()
    data['available_actions'] = [action.value for action in available_actions(appointment.status)]
    return data


@appointment_bp.route('/<appointment_id>', methods=['GET'])
def get_appointment(appointment_id):
    """Get a single appointment with the actions its status allows"""
    appointment, error = _load_appointment(appointment_store(), appointment_id)
    if error:
        return error

    return jsonify({
        'success': True,
        'data': _appointment_to_dict(appointment)
    }), 200


@appointment_bp.route('/<appointment_id>/status', methods=['PATCH'])
def update_appointment_status(appointment_id):
    """
    Apply a lifecycle action.
    Body: action, scheduled_at (reschedule only), reason, notes, expected_updated_at
    """
    # Step 1: Get data from request
    data = request.get_json(silent=True)
    if data is not None and not isinstance(data, dict):
        return jsonify({
            'success': False,
            'error': 'Request body must be a JSON object'
        }), 400
    if not data or not data.get('action'):
        return jsonify({
            'success': False,
            'error': 'Field "action" is required'
        }), 400

    try:
        action = AppointmentAction(data['action'])
    except ValueError:
        return jsonify({
            'success': False,
            'error': f'Unknown action. Must be one of: {", ".join(a.value for a in AppointmentAction)}'
        }), 400

    policy = get_policy()

    # Step 2: Parse optional timestamps and free text
    try:
        new_scheduled_at = parse_datetime(data['scheduled_at'], policy) if data.get('scheduled_at') else None
        expected_updated_at = (parse_datetime(data['expected_updated_at'], policy)
                               if data.get('expected_updated_at') else None)
    except ValueError:
        return jsonify({
            'success': False,
            'error': 'Invalid date-time. Use ISO-8601, e.g. 2026-03-10T09:30:00-06:00'
        }), 400

    try:
        reason = parse_text(data.get('reason'), 'reason')
        note = parse_text(data.get('notes'), 'notes')
    except ValueError as e:
        return jsonify({
            'success': False,
            'error': str(e)
        }), 400

    # Step 3: Load the appointment
    store = appointment_store()
    appointment, error = _load_appointment(store, appointment_id)
    if error:
        return error

    # Step 4: Apply the transition
    guard = StatusTransitionGuard(store, policy)
    context = TransitionContext(
        now=get_now(),
        new_scheduled_at=new_scheduled_at,
        reason=reason,
        note=note,
        expected_updated_at=expected_updated_at,
    )
    result = guard.apply_transition(appointment, action, context)

    if not result.ok:
        body = {
            'success': False,
            'error': result.error.reason,
            'kind': result.error.kind.value,
        }
        if isinstance(result.error.cause, ScheduleConflict):
            body['conflicting_appointment_id'] = result.error.cause.existing_appointment_id
        return jsonify(body), TRANSITION_STATUS_CODES[result.error.kind]

    return jsonify({
        'success': True,
        'message': f'Appointment status is now {result.value.status.value}',
        'data': _appointment_to_dict(result.value)
    }), 200


@appointment_bp.route('/<appointment_id>/history', methods=['GET'])
def get_appointment_history(appointment_id):
    """Status and schedule changes for one appointment, oldest first"""
    store = appointment_store()
    appointment, error = _load_appointment(store, appointment_id)
    if error:
        return error

    result = StatusTransitionGuard(store, get_policy()).history(appointment.id)
    if not result.ok:
        status = 503 if isinstance(result.error, TransientFailure) else 500
        return jsonify({
            'success': False,
            'error': result.error.reason
        }), status

    return jsonify({
        'success': True,
        'data': [entry.to_dict() for entry in result.value]
    }), 200


@appointment_bp.route('/validate', methods=['POST'])
def validate_slot():
    """
    Check a proposed start time without booking it.
    Body: scheduled_at, doctor_id (optional), exclude_appointment_id (optional)
    """
    data = request.get_json(silent=True)
    if not isinstance(data, dict) or not data.get('scheduled_at'):
        return jsonify({
            'success': False,
            'error': 'Field "scheduled_at" is required'
        }), 400

    policy = get_policy()
    try:
        scheduled_at = parse_datetime(data['scheduled_at'], policy)
    except ValueError:
        return jsonify({
            'success': False,
            'error': 'Invalid scheduled_at. Use ISO-8601, e.g. 2026-03-10T09:30:00-06:00'
        }), 400

    try:
        doctor_id = parse_text(data.get('doctor_id'), 'doctor_id')
        exclude_appointment_id = parse_text(data.get('exclude_appointment_id'), 'exclude_appointment_id')
    except ValueError as e:
        return jsonify({
            'success': False,
            'error': str(e)
        }), 400

    rules = evaluate(scheduled_at, policy, get_now())
    if not rules.ok:
        return jsonify({
            'success': True,
            'data': {
                'valid': False,
                'kind': rules.error.kind.value,
                'reason': rules.error.reason,
            }
        }), 200

    conflict = ConflictChecker(appointment_store()).check_conflict(
        doctor_id,
        scheduled_at,
        exclude_appointment_id=exclude_appointment_id,
    )
    if not conflict.ok:
        if not isinstance(conflict.error, ScheduleConflict):
            status = 503 if isinstance(conflict.error, TransientFailure) else 500
            return jsonify({
                'success': False,
                'error': conflict.error.reason
            }), status
        return jsonify({
            'success': True,
            'data': {
                'valid': False,
                'kind': 'SCHEDULE_CONFLICT',
                'reason': conflict.error.reason,
                'conflicting_appointment_id': conflict.error.existing_appointment_id,
            }
        }), 200

    return jsonify({
        'success': True,
        'data': {'valid': True}
    }), 200


@appointment_bp.route('/slots', methods=['GET'])
def list_available_slots():
    """
    Bookable start times for a day.
    Query params: date (YYYY-MM-DD), doctor_id (optional)
    """
    try:
        day = parse_date(request.args.get('date', ''))
    except ValueError:
        day = None
    if day is None:
        return jsonify({
            'success': False,
            'error': 'Query parameter "date" is required. Use YYYY-MM-DD'
        }), 400

    policy = get_policy()
    checker = ConflictChecker(appointment_store())
    try:
        slots = checker.available_slots(day, policy, doctor_id=request.args.get('doctor_id') or None, now=get_now())
    except StoreError as e:
        return _store_error_response(e)

    return jsonify({
        'success': True,
        'data': {
            'date': day.isoformat(),
            'timezone': policy.timezone,
            'slots': [slot.isoformat() for slot in slots],
        }
    }), 200
