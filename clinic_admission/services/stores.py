"""
Store collaborator contracts used by the scheduling core.

The core never talks to the database directly; it is handed objects that
implement these interfaces. Implementations report failures by raising the
exceptions below, which the core turns into tagged results.
"""

from abc import ABC, abstractmethod
from datetime import date, datetime
from typing import List, Optional

from .domain import (
    AppointmentDraft,
    AppointmentFilter,
    AppointmentRecord,
    AppointmentStatus,
    HistoryEntry,
    PatientDraft,
    PatientRecord,
)


class StoreError(Exception):
    """A store call failed and retrying will not help."""


class TransientStoreError(StoreError):
    """Network-level or timeout failure; the caller may retry with backoff."""


class RecordNotFoundError(StoreError):
    """The referenced record does not exist."""


class StaleRecordError(StoreError):
    """The record changed since the caller read it (optimistic lock)."""


class SlotTakenError(StoreError):
    """Another active appointment already holds the doctor's slot."""


class AppointmentStore(ABC):

    @abstractmethod
    def find_appointments(self, criteria: AppointmentFilter) -> List[AppointmentRecord]:
        pass

    @abstractmethod
    def get_appointment(self, appointment_id: str) -> Optional[AppointmentRecord]:
        pass

    @abstractmethod
    def create_appointment(self, draft: AppointmentDraft) -> AppointmentRecord:
        pass

    @abstractmethod
    def update_appointment_status(
        self,
        appointment_id: str,
        new_status: AppointmentStatus,
        new_scheduled_at: Optional[datetime] = None,
        notes: Optional[str] = None,
        expected_updated_at: Optional[datetime] = None,
    ) -> AppointmentRecord:
        """
        Move an appointment to ``new_status``.

        ``notes`` replaces the stored notes when given. When
        ``expected_updated_at`` is given and differs from the stored value,
        raise ``StaleRecordError`` without writing.
        """
        pass

    @abstractmethod
    def record_history(self, entries: List[HistoryEntry]) -> None:
        pass

    @abstractmethod
    def list_history(self, appointment_id: str) -> List[HistoryEntry]:
        pass


class PatientStore(ABC):

    @abstractmethod
    def find_patient_by_name_and_birth_date(
        self, first_name: str, last_name: str, birth_date: date
    ) -> Optional[PatientRecord]:
        pass

    @abstractmethod
    def create_patient(self, draft: PatientDraft) -> PatientRecord:
        pass

    @abstractmethod
    def delete_patient(self, patient_id: str) -> None:
        """Compensation only: undo a ``create_patient`` whose appointment failed."""
        pass
