"""
Domain types shared by the scheduling core and its store collaborators.
"""

from dataclasses import dataclass, field, replace
from datetime import date, datetime
from enum import Enum
from typing import FrozenSet, List, Optional


class AppointmentStatus(str, Enum):
    PROGRAMADA = "PROGRAMADA"
    CONFIRMADA = "CONFIRMADA"
    PRESENTE = "PRESENTE"
    COMPLETADA = "COMPLETADA"
    CANCELADA = "CANCELADA"
    NO_ASISTIO = "NO_ASISTIO"
    REAGENDADA = "REAGENDADA"


class AppointmentAction(str, Enum):
    CONFIRM = "confirm"
    CHECK_IN = "checkIn"
    COMPLETE = "complete"
    CANCEL = "cancel"
    NO_SHOW = "noShow"
    RESCHEDULE = "reschedule"
    VIEW_HISTORY = "viewHistory"


@dataclass(frozen=True)
class AppointmentRecord:
    """An appointment as read back from the appointment store."""
    id: str
    patient_id: str
    scheduled_at: datetime
    status: AppointmentStatus
    doctor_id: Optional[str] = None
    reasons: List[str] = field(default_factory=list)
    is_first_visit: bool = True
    notes: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def with_changes(self, **changes) -> "AppointmentRecord":
        return replace(self, **changes)

    def to_dict(self):
        return {
            'id': self.id,
            'patient_id': self.patient_id,
            'doctor_id': self.doctor_id,
            'scheduled_at': self.scheduled_at.isoformat(),
            'reasons': list(self.reasons),
            'status': self.status.value,
            'is_first_visit': self.is_first_visit,
            'notes': self.notes,
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'updated_at': self.updated_at.isoformat() if self.updated_at else None,
        }


@dataclass(frozen=True)
class PatientRecord:
    id: str
    first_name: str
    last_name: str
    birth_date: Optional[date] = None
    status: Optional[str] = None


@dataclass
class PatientDraft:
    """Patient fields collected at admission."""
    first_name: str
    last_name: str
    phone: Optional[str] = None
    email: Optional[str] = None
    age: Optional[int] = None
    birth_date: Optional[date] = None
    gender: Optional[str] = None
    principal_diagnosis: Optional[str] = None
    registration_notes: Optional[str] = None

    def __post_init__(self):
        self.first_name = (self.first_name or "").strip()
        self.last_name = (self.last_name or "").strip()
        if not self.first_name or not self.last_name:
            raise ValueError("first_name and last_name are required")


@dataclass
class AppointmentDraft:
    """A new appointment; ``patient_id`` is filled in by the admission flow."""
    scheduled_at: datetime
    reasons: List[str]
    doctor_id: Optional[str] = None
    patient_id: Optional[str] = None
    notes: Optional[str] = None
    is_first_visit: bool = True
    status: AppointmentStatus = AppointmentStatus.PROGRAMADA

    def __post_init__(self):
        self.reasons = [r.strip() for r in self.reasons if r and r.strip()]
        if not self.reasons:
            raise ValueError("at least one consultation reason is required")


@dataclass(frozen=True)
class HistoryEntry:
    appointment_id: str
    field_changed: str
    value_after: str
    value_before: Optional[str] = None
    change_reason: Optional[str] = None
    changed_at: Optional[datetime] = None
    id: Optional[int] = None

    def to_dict(self):
        return {
            'id': self.id,
            'appointment_id': self.appointment_id,
            'field_changed': self.field_changed,
            'value_before': self.value_before,
            'value_after': self.value_after,
            'change_reason': self.change_reason,
            'changed_at': self.changed_at.isoformat() if self.changed_at else None,
        }


@dataclass(frozen=True)
class AppointmentFilter:
    """Query passed to ``AppointmentStore.find_appointments``."""
    doctor_id: Optional[str] = None
    exact_timestamp: Optional[datetime] = None
    exclude_id: Optional[str] = None
    status_not_in: FrozenSet[AppointmentStatus] = frozenset()
    starts_from: Optional[datetime] = None  # inclusive
    starts_before: Optional[datetime] = None  # exclusive
