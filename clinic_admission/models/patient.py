import uuid

from clinic_admission.extensions import db
from .base import TimestampMixin


class Patient(db.Model, TimestampMixin):
    __tablename__ = 'patients'

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

    # Personal
    first_name = db.Column(db.String(100), nullable=False)
    last_name = db.Column(db.String(100), nullable=False)
    gender = db.Column(db.String(20))
    birth_date = db.Column(db.Date, index=True)  # DOB, used for duplicate detection
    age = db.Column(db.Integer)
    phone = db.Column(db.String(20))
    email = db.Column(db.String(120))

    principal_diagnosis = db.Column(db.String(100))
    registration_notes = db.Column(db.Text)

    # Advanced by external workflows (surveys, follow-up), not by the admission core
    status = db.Column(db.String(40), nullable=False, default='PENDIENTE DE CONSULTA')
    creation_source = db.Column(db.String(40), default='admission')

    # Relationships
    appointments = db.relationship('Appointment', backref='patient', lazy='dynamic')

    __table_args__ = (
        db.Index('ix_patients_name_birth_date', 'first_name', 'last_name', 'birth_date'),
    )

    def __repr__(self):
        return f"<Patient {self.first_name} {self.last_name} ({self.id})>"
