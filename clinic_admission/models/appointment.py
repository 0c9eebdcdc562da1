import uuid

from clinic_admission.extensions import db
from .base import TimestampMixin


class Appointment(db.Model, TimestampMixin):
    __tablename__ = 'appointments'

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    patient_id = db.Column(db.String(36), db.ForeignKey('patients.id'), nullable=False, index=True)
    doctor_id = db.Column(db.String(36), nullable=True, index=True)  # may be unassigned at booking time

    scheduled_at = db.Column(db.DateTime, nullable=False, index=True)  # naive UTC
    reasons = db.Column(db.JSON, nullable=False, default=list)  # ordered consultation motives

    # PROGRAMADA, CONFIRMADA, PRESENTE, COMPLETADA, CANCELADA, NO_ASISTIO, REAGENDADA
    status = db.Column(db.String(20), nullable=False, default='PROGRAMADA', index=True)
    is_first_visit = db.Column(db.Boolean, nullable=False, default=True)
    notes = db.Column(db.Text)

    # At most one active booking per doctor and instant (NULL doctors never collide)
    __table_args__ = (
        db.Index(
            'uq_appointments_doctor_slot_active',
            'doctor_id', 'scheduled_at',
            unique=True,
            postgresql_where=db.text("status <> 'CANCELADA'"),
            sqlite_where=db.text("status <> 'CANCELADA'"),
        ),
    )

    def __repr__(self):
        return f"<Appointment {self.patient_id} - {self.doctor_id} at {self.scheduled_at} [{self.status}]>"
