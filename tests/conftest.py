from datetime import datetime
from zoneinfo import ZoneInfo

import pytest

from clinic_admission import create_app
from clinic_admission.extensions import db
from clinic_admission.services.business_rules import ClinicPolicy
from clinic_admission.services.conflicts import ConflictChecker

from .fakes import InMemoryAppointmentStore, InMemoryPatientStore

CLINIC_TZ = ZoneInfo('America/Mexico_City')

# Wednesday 2026-03-04 08:00 clinic time. Next Tuesday is 03-10, next Sunday 03-08.
NOW = datetime(2026, 3, 4, 8, 0, tzinfo=CLINIC_TZ)


def local(year, month, day, hour, minute=0):
    return datetime(year, month, day, hour, minute, tzinfo=CLINIC_TZ)


NEXT_TUESDAY_10 = local(2026, 3, 10, 10, 0)
NEXT_SUNDAY_10 = local(2026, 3, 8, 10, 0)


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def policy():
    return ClinicPolicy()


@pytest.fixture
def appointments():
    return InMemoryAppointmentStore()


@pytest.fixture
def patients():
    return InMemoryPatientStore()


@pytest.fixture
def conflict_checker(appointments):
    return ConflictChecker(appointments)


@pytest.fixture
def app():
    app = create_app('testing')
    app.config['CLINIC_CLOCK'] = lambda: NOW
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()
