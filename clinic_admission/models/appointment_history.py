"""
Field-level change log for appointments (status moves and reschedules).
"""
from datetime import datetime

from clinic_admission.extensions import db


class AppointmentHistory(db.Model):
    __tablename__ = 'appointment_history'

    id = db.Column(db.Integer, primary_key=True)
    appointment_id = db.Column(db.String(36), db.ForeignKey('appointments.id'), nullable=False, index=True)
    field_changed = db.Column(db.String(32), nullable=False)  # status, scheduled_at
    value_before = db.Column(db.String(64), nullable=True)
    value_after = db.Column(db.String(64), nullable=False)
    change_reason = db.Column(db.Text, nullable=True)
    changed_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False, index=True)

