"""
Tagged results and error kinds returned by the scheduling core.

Core operations never signal business outcomes through exceptions. Each one
returns a ``Result`` whose ``error`` holds exactly one of the frozen error
dataclasses below, so callers can branch on ``error.kind`` and decide on
retries (only ``TRANSIENT_FAILURE`` is ever worth retrying).
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Generic, List, Optional, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class Result(Generic[T]):
    """Success carries ``value``; failure carries ``error``."""
    value: Optional[T] = None
    error: Optional[Any] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: Optional[T] = None) -> "Result[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, error: Any) -> "Result[T]":
        return cls(error=error)


# =============================================================================
# BUSINESS RULES
# =============================================================================

class RuleViolationKind(Enum):
    NOT_IN_PAST = "NOT_IN_PAST"
    WEEKDAY_DISALLOWED = "WEEKDAY_DISALLOWED"
    OUTSIDE_BUSINESS_HOURS = "OUTSIDE_BUSINESS_HOURS"
    WITHIN_EXCLUDED_WINDOW = "WITHIN_EXCLUDED_WINDOW"
    INVALID_SLOT_GRANULARITY = "INVALID_SLOT_GRANULARITY"
    EXCEEDS_MAX_ADVANCE = "EXCEEDS_MAX_ADVANCE"


@dataclass(frozen=True)
class RuleViolation:
    kind: RuleViolationKind
    reason: str


# =============================================================================
# COLLABORATOR FAILURES
# =============================================================================

@dataclass(frozen=True)
class ScheduleConflict:
    existing_appointment_id: str
    reason: str = "Another active appointment already occupies this doctor's slot"


@dataclass(frozen=True)
class DuplicatePatient:
    existing_patient_id: str
    reason: str = "A patient with the same name and birth date already exists"


@dataclass(frozen=True)
class PersistenceFailure:
    reason: str


@dataclass(frozen=True)
class TransientFailure:
    reason: str


# =============================================================================
# STATUS TRANSITIONS
# =============================================================================

@dataclass(frozen=True)
class InvalidCurrentStatus:
    current_status: str
    action: str

    @property
    def reason(self) -> str:
        return f"Action '{self.action}' is not allowed from status {self.current_status}"


class TransitionErrorKind(Enum):
    INVALID_CURRENT_STATUS = "INVALID_CURRENT_STATUS"
    MISSING_SCHEDULED_AT = "MISSING_SCHEDULED_AT"
    RULE_VIOLATION = "RULE_VIOLATION"
    SCHEDULE_CONFLICT = "SCHEDULE_CONFLICT"
    NOT_FOUND = "NOT_FOUND"
    CONCURRENT_MODIFICATION = "CONCURRENT_MODIFICATION"
    PERSISTENCE_FAILURE = "PERSISTENCE_FAILURE"
    TRANSIENT_FAILURE = "TRANSIENT_FAILURE"


@dataclass(frozen=True)
class TransitionError:
    kind: TransitionErrorKind
    reason: str
    cause: Optional[Any] = None  # RuleViolation, ScheduleConflict or InvalidCurrentStatus


# =============================================================================
# ADMISSION
# =============================================================================

class AdmissionErrorKind(Enum):
    RULE_VIOLATION = "RULE_VIOLATION"
    SCHEDULE_CONFLICT = "SCHEDULE_CONFLICT"
    DUPLICATE_PATIENT = "DUPLICATE_PATIENT"
    PATIENT_CREATION_FAILED = "PATIENT_CREATION_FAILED"
    APPOINTMENT_CREATION_FAILED = "APPOINTMENT_CREATION_FAILED"
    PERSISTENCE_FAILURE = "PERSISTENCE_FAILURE"
    TRANSIENT_FAILURE = "TRANSIENT_FAILURE"


@dataclass(frozen=True)
class AdmissionError:
    kind: AdmissionErrorKind
    reason: str
    violation: Optional[RuleViolation] = None
    conflicting_appointment_id: Optional[str] = None
    existing_patient_id: Optional[str] = None
    warnings: List[str] = field(default_factory=list)
