"""
Per-request access to the clinic policy, the clock and the SQL-backed stores.
"""
from datetime import datetime, timezone

from flask import current_app

from clinic_admission.services.sql_stores import SqlAppointmentStore, SqlPatientStore


def get_policy():
    return current_app.config['CLINIC_POLICY']


def get_now():
    """Current instant; tests swap the clock via the CLINIC_CLOCK config key."""
    clock = current_app.config.get('CLINIC_CLOCK')
    return clock() if clock else datetime.now(timezone.utc)


def appointment_store():
    return SqlAppointmentStore()


def patient_store():
    return SqlPatientStore()
