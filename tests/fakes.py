"""
In-memory stores for exercising the services without a database.

Failures are injected per method: ``store.fail_on['create_appointment'] = StoreError('boom')``.
"""
import itertools
from datetime import datetime, timedelta, timezone

from clinic_admission.services.domain import AppointmentRecord, PatientRecord
from clinic_admission.services.stores import (
    AppointmentStore,
    PatientStore,
    RecordNotFoundError,
    StaleRecordError,
)

EPOCH = datetime(2026, 1, 1, tzinfo=timezone.utc)


class _Recording:

    def __init__(self):
        self.calls = []
        self.fail_on = {}

    def _enter(self, name, *args):
        self.calls.append((name,) + args)
        error = self.fail_on.get(name)
        if error is not None:
            raise error

    def called(self, name):
        return [call for call in self.calls if call[0] == name]


class InMemoryAppointmentStore(_Recording, AppointmentStore):

    def __init__(self):
        super().__init__()
        self.rows = {}
        self.history = []
        self._ids = itertools.count(1)
        self._ticks = itertools.count(1)

    def _stamp(self):
        return EPOCH + timedelta(seconds=next(self._ticks))

    def add(self, record):
        """Seed a record directly, bypassing failure injection."""
        self.rows[record.id] = record
        return record

    def find_appointments(self, criteria):
        self._enter('find_appointments', criteria)
        matches = []
        for row in self.rows.values():
            if criteria.doctor_id is not None and row.doctor_id != criteria.doctor_id:
                continue
            if criteria.exact_timestamp is not None and row.scheduled_at != criteria.exact_timestamp:
                continue
            if criteria.starts_from is not None and row.scheduled_at < criteria.starts_from:
                continue
            if criteria.starts_before is not None and row.scheduled_at >= criteria.starts_before:
                continue
            if criteria.exclude_id is not None and row.id == criteria.exclude_id:
                continue
            if row.status in criteria.status_not_in:
                continue
            matches.append(row)
        return sorted(matches, key=lambda row: row.scheduled_at)

    def get_appointment(self, appointment_id):
        self._enter('get_appointment', appointment_id)
        return self.rows.get(appointment_id)

    def create_appointment(self, draft):
        self._enter('create_appointment', draft)
        stamp = self._stamp()
        record = AppointmentRecord(
            id=f"apt-{next(self._ids)}",
            patient_id=draft.patient_id,
            doctor_id=draft.doctor_id,
            scheduled_at=draft.scheduled_at,
            reasons=list(draft.reasons),
            status=draft.status,
            is_first_visit=draft.is_first_visit,
            notes=draft.notes,
            created_at=stamp,
            updated_at=stamp,
        )
        self.rows[record.id] = record
        return record

    def update_appointment_status(self, appointment_id, new_status, new_scheduled_at=None,
                                  notes=None, expected_updated_at=None):
        self._enter('update_appointment_status', appointment_id, new_status, new_scheduled_at)
        current = self.rows.get(appointment_id)
        if current is None:
            raise RecordNotFoundError(f"Appointment {appointment_id} not found")
        if expected_updated_at is not None and current.updated_at != expected_updated_at:
            raise StaleRecordError(f"Appointment {appointment_id} was modified")
        changes = {'status': new_status, 'updated_at': self._stamp()}
        if new_scheduled_at is not None:
            changes['scheduled_at'] = new_scheduled_at
        if notes is not None:
            changes['notes'] = notes
        updated = current.with_changes(**changes)
        self.rows[appointment_id] = updated
        return updated

    def record_history(self, entries):
        self._enter('record_history', entries)
        self.history.extend(entries)

    def list_history(self, appointment_id):
        self._enter('list_history', appointment_id)
        return [entry for entry in self.history if entry.appointment_id == appointment_id]


class InMemoryPatientStore(_Recording, PatientStore):

    def __init__(self):
        super().__init__()
        self.rows = {}
        self._ids = itertools.count(1)

    def find_patient_by_name_and_birth_date(self, first_name, last_name, birth_date):
        self._enter('find_patient_by_name_and_birth_date', first_name, last_name, birth_date)
        for row in self.rows.values():
            if (row.first_name, row.last_name, row.birth_date) == (first_name, last_name, birth_date):
                return row
        return None

    def create_patient(self, draft):
        self._enter('create_patient', draft)
        record = PatientRecord(
            id=f"pat-{next(self._ids)}",
            first_name=draft.first_name,
            last_name=draft.last_name,
            birth_date=draft.birth_date,
            status='PENDIENTE DE CONSULTA',
        )
        self.rows[record.id] = record
        return record

    def delete_patient(self, patient_id):
        self._enter('delete_patient', patient_id)
        self.rows.pop(patient_id, None)
