"""
Patient admission: create a patient and their first appointment together.

There is no transaction spanning the two writes. If the appointment write
fails after the patient was stored, the patient is deleted again; if that
delete fails too, the orphan is logged and reported as a warning, never
retried here.
"""

import logging
from dataclasses import dataclass, replace
from datetime import datetime
from typing import List, Optional

from .business_rules import ClinicPolicy, evaluate
from .conflicts import ConflictChecker
from .domain import AppointmentDraft, AppointmentRecord, AppointmentStatus, PatientDraft
from .results import (
    AdmissionError,
    AdmissionErrorKind,
    DuplicatePatient,
    Result,
    ScheduleConflict,
    TransientFailure,
)
from .stores import AppointmentStore, PatientStore, StoreError, TransientStoreError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AdmissionOutcome:
    patient_id: str
    appointment_id: str
    appointment: AppointmentRecord


def _failed(kind: AdmissionErrorKind, reason: str, **extra) -> Result:
    return Result.failure(AdmissionError(kind=kind, reason=reason, **extra))


class AdmissionService:
    """Runs the admission steps in order; the first failing step ends the call."""

    def __init__(
        self,
        patients: PatientStore,
        appointments: AppointmentStore,
        policy: ClinicPolicy,
        conflict_checker: Optional[ConflictChecker] = None,
    ):
        self.patients = patients
        self.appointments = appointments
        self.policy = policy
        self.conflict_checker = conflict_checker or ConflictChecker(appointments)

    def admit(
        self,
        patient_draft: PatientDraft,
        appointment_draft: AppointmentDraft,
        now: Optional[datetime] = None,
    ) -> Result:
        """
        Admit a new patient with an initial PROGRAMADA appointment.

        Returns Result.success(AdmissionOutcome) or a failure holding an
        AdmissionError. Nothing is written unless validation, the conflict
        check and the duplicate check all pass.
        """
        scheduled_at = self.policy.localize(appointment_draft.scheduled_at)

        # 1. Clinic rules
        rules = evaluate(scheduled_at, self.policy, now)
        if not rules.ok:
            logger.info("Admission rejected for %s: %s", scheduled_at.isoformat(), rules.error.reason)
            return _failed(AdmissionErrorKind.RULE_VIOLATION, rules.error.reason, violation=rules.error)

        # 2. Doctor availability
        if appointment_draft.doctor_id:
            conflict = self.conflict_checker.check_conflict(appointment_draft.doctor_id, scheduled_at)
            if not conflict.ok:
                if isinstance(conflict.error, ScheduleConflict):
                    return _failed(
                        AdmissionErrorKind.SCHEDULE_CONFLICT,
                        conflict.error.reason,
                        conflicting_appointment_id=conflict.error.existing_appointment_id,
                    )
                kind = (AdmissionErrorKind.TRANSIENT_FAILURE if isinstance(conflict.error, TransientFailure)
                        else AdmissionErrorKind.PERSISTENCE_FAILURE)
                return _failed(kind, conflict.error.reason)

        # 3. Duplicate patient (only decidable with a birth date)
        if patient_draft.birth_date is not None:
            try:
                existing = self.patients.find_patient_by_name_and_birth_date(
                    patient_draft.first_name, patient_draft.last_name, patient_draft.birth_date
                )
            except TransientStoreError as e:
                return _failed(AdmissionErrorKind.TRANSIENT_FAILURE, str(e) or "Patient lookup timed out")
            except StoreError as e:
                logger.warning("Duplicate-patient lookup failed: %s", e)
                return _failed(AdmissionErrorKind.PERSISTENCE_FAILURE, str(e) or "Patient lookup failed")
            if existing is not None:
                duplicate = DuplicatePatient(existing_patient_id=existing.id)
                logger.info("Admission rejected: duplicate of patient %s", existing.id)
                return _failed(
                    AdmissionErrorKind.DUPLICATE_PATIENT,
                    duplicate.reason,
                    existing_patient_id=duplicate.existing_patient_id,
                )

        # 4. Patient
        try:
            patient = self.patients.create_patient(patient_draft)
        except TransientStoreError as e:
            logger.warning("Patient creation timed out: %s", e)
            return _failed(AdmissionErrorKind.TRANSIENT_FAILURE, str(e) or "Patient creation timed out")
        except StoreError as e:
            logger.error("Patient creation failed: %s", e)
            return _failed(AdmissionErrorKind.PATIENT_CREATION_FAILED, f"Failed to create patient: {e}")

        # 5. Appointment, compensating the patient on failure
        draft = replace(
            appointment_draft,
            patient_id=patient.id,
            scheduled_at=scheduled_at,
            status=AppointmentStatus.PROGRAMADA,
        )
        try:
            appointment = self.appointments.create_appointment(draft)
        except StoreError as e:
            logger.error("Appointment creation failed for new patient %s: %s", patient.id, e)
            warnings = self._compensate(patient.id)
            return _failed(
                AdmissionErrorKind.APPOINTMENT_CREATION_FAILED,
                f"Failed to create appointment: {e}",
                warnings=warnings,
            )

        logger.info("Admitted patient %s with appointment %s at %s", patient.id, appointment.id, scheduled_at.isoformat())
        return Result.success(AdmissionOutcome(
            patient_id=patient.id,
            appointment_id=appointment.id,
            appointment=appointment,
        ))

    def _compensate(self, patient_id: str) -> List[str]:
        try:
            self.patients.delete_patient(patient_id)
        except StoreError as e:
            logger.error("Compensating delete failed; patient %s is orphaned: %s", patient_id, e)
            return [f"Patient {patient_id} was created but could not be removed: {e}"]
        logger.info("Rolled back patient %s after appointment failure", patient_id)
        return []
