from flask import Blueprint, request, jsonify

from clinic_admission.services.admission import AdmissionService
from clinic_admission.services.domain import AppointmentDraft, PatientDraft
from clinic_admission.services.results import AdmissionErrorKind
from clinic_admission.utils.context import appointment_store, get_now, get_policy, patient_store
from clinic_admission.utils.parsing import parse_bool, parse_date, parse_datetime, parse_reasons, parse_text

admission_bp = Blueprint('admission', __name__, url_prefix='/api/admission')

ADMISSION_STATUS_CODES = {
    AdmissionErrorKind.RULE_VIOLATION: 422,
    AdmissionErrorKind.SCHEDULE_CONFLICT: 409,
    AdmissionErrorKind.DUPLICATE_PATIENT: 409,
    AdmissionErrorKind.PATIENT_CREATION_FAILED: 500,
    AdmissionErrorKind.APPOINTMENT_CREATION_FAILED: 500,
    AdmissionErrorKind.PERSISTENCE_FAILURE: 500,
    AdmissionErrorKind.TRANSIENT_FAILURE: 503,
}


def _admission_error_body(error):
    body = {
        'success': False,
        'error': error.reason,
        'kind': error.kind.value,
    }
    if error.violation is not None:
        body['violation'] = error.violation.kind.value
    if error.conflicting_appointment_id:
        body['conflicting_appointment_id'] = error.conflicting_appointment_id
    if error.existing_patient_id:
        body['existing_patient_id'] = error.existing_patient_id
    if error.warnings:
        body['warnings'] = list(error.warnings)
    return body


@admission_bp.route('', methods=['POST'])
def admit_patient():
    """
    Register a new patient together with their first appointment.

    Body: first_name, last_name, scheduled_at (ISO-8601), reasons, plus the
    optional phone, email, age, birth_date (YYYY-MM-DD), gender,
    principal_diagnosis, registration_notes, doctor_id, notes, is_first_visit.
    """
    # Step 1: Get data from request
    data = request.get_json(silent=True)
    if not data or not isinstance(data, dict):
        return jsonify({
            'success': False,
            'error': 'Request body must be a JSON object'
        }), 400

    # Step 2: Validate required fields
    required_fields = ['first_name', 'last_name', 'scheduled_at', 'reasons']
    for field in required_fields:
        if not data.get(field):
            return jsonify({
                'success': False,
                'error': f'Field "{field}" is required'
            }), 400

    policy = get_policy()

    # Step 3: Parse and build the drafts
    try:
        scheduled_at = parse_datetime(data['scheduled_at'], policy)
    except ValueError:
        return jsonify({
            'success': False,
            'error': 'Invalid scheduled_at. Use ISO-8601, e.g. 2026-03-10T09:30:00-06:00'
        }), 400

    try:
        birth_date = parse_date(data.get('birth_date'))
    except ValueError:
        return jsonify({
            'success': False,
            'error': 'Invalid birth_date format. Use YYYY-MM-DD'
        }), 400

    age = data.get('age')
    if age is not None and age != '':
        try:
            age = int(age)
        except (TypeError, ValueError):
            return jsonify({
                'success': False,
                'error': 'age must be an integer'
            }), 400
    else:
        age = None

    try:
        patient_draft = PatientDraft(
            first_name=parse_text(data['first_name'], 'first_name'),
            last_name=parse_text(data['last_name'], 'last_name'),
            phone=parse_text(data.get('phone'), 'phone'),
            email=parse_text(data.get('email'), 'email'),
            age=age,
            birth_date=birth_date,
            gender=parse_text(data.get('gender'), 'gender'),
            principal_diagnosis=parse_text(data.get('principal_diagnosis'), 'principal_diagnosis'),
            registration_notes=parse_text(data.get('registration_notes'), 'registration_notes'),
        )
        appointment_draft = AppointmentDraft(
            scheduled_at=scheduled_at,
            reasons=parse_reasons(data['reasons']),
            doctor_id=parse_text(data.get('doctor_id'), 'doctor_id'),
            notes=parse_text(data.get('notes'), 'notes'),
            is_first_visit=parse_bool(data.get('is_first_visit'), 'is_first_visit', True),
        )
    except ValueError as e:
        return jsonify({
            'success': False,
            'error': str(e)
        }), 400

    # Step 4: Run the admission
    appointments = appointment_store()
    service = AdmissionService(patient_store(), appointments, policy)
    result = service.admit(patient_draft, appointment_draft, now=get_now())

    if not result.ok:
        error = result.error
        return jsonify(_admission_error_body(error)), ADMISSION_STATUS_CODES[error.kind]

    outcome = result.value
    return jsonify({
        'success': True,
        'message': 'Patient and appointment created successfully',
        'data': {
            'patient_id': outcome.patient_id,
            'appointment_id': outcome.appointment_id,
            'appointment': outcome.appointment.to_dict(),
        }
    }), 201
