from .patient import Patient
from .appointment import Appointment
from .appointment_history import AppointmentHistory

__all__ = ["Patient", "Appointment", "AppointmentHistory"]
