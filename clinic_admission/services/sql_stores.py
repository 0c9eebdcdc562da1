"""
Flask-SQLAlchemy implementations of the store collaborators.

Every write commits on its own; on any database error the session is rolled
back and the error re-raised as a StoreError subclass. Datetimes are stored as
naive UTC and handed back timezone-aware.
"""

import logging
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy.exc import DisconnectionError, IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError

from clinic_admission.extensions import db
from clinic_admission.models import Appointment, AppointmentHistory, Patient
from .domain import (
    AppointmentDraft,
    AppointmentFilter,
    AppointmentRecord,
    AppointmentStatus,
    HistoryEntry,
    PatientDraft,
    PatientRecord,
)
from .stores import (
    AppointmentStore,
    PatientStore,
    RecordNotFoundError,
    SlotTakenError,
    StaleRecordError,
    StoreError,
    TransientStoreError,
)

logger = logging.getLogger(__name__)

TRANSIENT_DB_ERRORS = (OperationalError, DisconnectionError, PoolTimeoutError)


def to_db_time(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return None
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def from_db_time(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return None
    return value.replace(tzinfo=timezone.utc)


@contextmanager
def translate_errors(operation: str):
    """Roll back and convert SQLAlchemy errors raised inside the block."""
    try:
        yield
    except StoreError:
        db.session.rollback()
        raise
    except TRANSIENT_DB_ERRORS as e:
        db.session.rollback()
        logger.warning("%s failed (transient): %s", operation, e)
        raise TransientStoreError(f"{operation} failed: {e}") from e
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error("%s failed: %s", operation, e)
        raise StoreError(f"{operation} failed: {e}") from e


def _appointment_record(row: Appointment) -> AppointmentRecord:
    return AppointmentRecord(
        id=row.id,
        patient_id=row.patient_id,
        doctor_id=row.doctor_id,
        scheduled_at=from_db_time(row.scheduled_at),
        reasons=list(row.reasons or []),
        status=AppointmentStatus(row.status),
        is_first_visit=bool(row.is_first_visit),
        notes=row.notes,
        created_at=from_db_time(row.created_at),
        updated_at=from_db_time(row.updated_at),
    )


def _patient_record(row: Patient) -> PatientRecord:
    return PatientRecord(
        id=row.id,
        first_name=row.first_name,
        last_name=row.last_name,
        birth_date=row.birth_date,
        status=row.status,
    )


class SqlAppointmentStore(AppointmentStore):

    def find_appointments(self, criteria: AppointmentFilter) -> List[AppointmentRecord]:
        with translate_errors("Appointment lookup"):
            query = Appointment.query
            if criteria.doctor_id is not None:
                query = query.filter(Appointment.doctor_id == criteria.doctor_id)
            if criteria.exact_timestamp is not None:
                query = query.filter(Appointment.scheduled_at == to_db_time(criteria.exact_timestamp))
            if criteria.starts_from is not None:
                query = query.filter(Appointment.scheduled_at >= to_db_time(criteria.starts_from))
            if criteria.starts_before is not None:
                query = query.filter(Appointment.scheduled_at < to_db_time(criteria.starts_before))
            if criteria.exclude_id is not None:
                query = query.filter(Appointment.id != criteria.exclude_id)
            if criteria.status_not_in:
                query = query.filter(Appointment.status.notin_([s.value for s in criteria.status_not_in]))
            rows = query.order_by(Appointment.scheduled_at.asc()).all()
        return [_appointment_record(row) for row in rows]

    def get_appointment(self, appointment_id: str) -> Optional[AppointmentRecord]:
        with translate_errors("Appointment fetch"):
            row = db.session.get(Appointment, appointment_id)
        return _appointment_record(row) if row else None

    def create_appointment(self, draft: AppointmentDraft) -> AppointmentRecord:
        with translate_errors("Appointment creation"):
            row = Appointment(
                patient_id=draft.patient_id,
                doctor_id=draft.doctor_id,
                scheduled_at=to_db_time(draft.scheduled_at),
                reasons=list(draft.reasons),
                status=draft.status.value,
                is_first_visit=draft.is_first_visit,
                notes=draft.notes,
            )
            db.session.add(row)
            db.session.commit()
            return _appointment_record(row)

    def update_appointment_status(
        self,
        appointment_id: str,
        new_status: AppointmentStatus,
        new_scheduled_at: Optional[datetime] = None,
        notes: Optional[str] = None,
        expected_updated_at: Optional[datetime] = None,
    ) -> AppointmentRecord:
        with translate_errors("Appointment status update"):
            values = {'status': new_status.value, 'updated_at': datetime.utcnow()}
            if new_scheduled_at is not None:
                values['scheduled_at'] = to_db_time(new_scheduled_at)
            if notes is not None:
                values['notes'] = notes

            query = Appointment.query.filter(Appointment.id == appointment_id)
            # Optimistic locking: only update if the row wasn't modified since it was read
            if expected_updated_at is not None:
                query = query.filter(Appointment.updated_at == to_db_time(expected_updated_at))
            try:
                matched = query.update(values, synchronize_session=False)
            except IntegrityError as e:
                # uq_appointments_doctor_slot_active is the only constraint a status update can hit
                db.session.rollback()
                logger.info("Appointment %s lost its slot to a concurrent booking: %s", appointment_id, e.orig)
                raise SlotTakenError(f"Appointment {appointment_id}: slot already taken") from e

            if not matched:
                db.session.rollback()
                if db.session.get(Appointment, appointment_id) is None:
                    raise RecordNotFoundError(f"Appointment {appointment_id} not found")
                raise StaleRecordError(f"Appointment {appointment_id} was modified since it was read")

            db.session.commit()
            row = db.session.get(Appointment, appointment_id)
            return _appointment_record(row)

    def record_history(self, entries: List[HistoryEntry]) -> None:
        with translate_errors("Appointment history write"):
            for entry in entries:
                db.session.add(AppointmentHistory(
                    appointment_id=entry.appointment_id,
                    field_changed=entry.field_changed,
                    value_before=entry.value_before,
                    value_after=entry.value_after,
                    change_reason=entry.change_reason,
                    changed_at=to_db_time(entry.changed_at) or datetime.utcnow(),
                ))
            db.session.commit()

    def list_history(self, appointment_id: str) -> List[HistoryEntry]:
        with translate_errors("Appointment history read"):
            rows = (AppointmentHistory.query
                    .filter_by(appointment_id=appointment_id)
                    .order_by(AppointmentHistory.changed_at.asc(), AppointmentHistory.id.asc())
                    .all())
        return [
            HistoryEntry(
                id=row.id,
                appointment_id=row.appointment_id,
                field_changed=row.field_changed,
                value_before=row.value_before,
                value_after=row.value_after,
                change_reason=row.change_reason,
                changed_at=from_db_time(row.changed_at),
            )
            for row in rows
        ]


class SqlPatientStore(PatientStore):

    def find_patient_by_name_and_birth_date(self, first_name, last_name, birth_date) -> Optional[PatientRecord]:
        with translate_errors("Patient lookup"):
            row = Patient.query.filter_by(
                first_name=first_name,
                last_name=last_name,
                birth_date=birth_date,
            ).first()
        return _patient_record(row) if row else None

    def create_patient(self, draft: PatientDraft) -> PatientRecord:
        with translate_errors("Patient creation"):
            row = Patient(
                first_name=draft.first_name,
                last_name=draft.last_name,
                phone=draft.phone or None,
                email=draft.email or None,
                age=draft.age or None,
                birth_date=draft.birth_date,
                gender=draft.gender,
                principal_diagnosis=draft.principal_diagnosis,
                registration_notes=draft.registration_notes or None,
            )
            db.session.add(row)
            db.session.commit()
            return _patient_record(row)

    def delete_patient(self, patient_id: str) -> None:
        with translate_errors("Patient delete"):
            row = db.session.get(Patient, patient_id)
            if row is None:
                return
            db.session.delete(row)
            db.session.commit()
