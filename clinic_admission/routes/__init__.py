from .health import health_bp
from .admission import admission_bp
from .appointment import appointment_bp

__all__ = ['health_bp', 'admission_bp', 'appointment_bp']
