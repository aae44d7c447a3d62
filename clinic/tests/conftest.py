from decimal import Decimal

import pytest
from django.apps import apps
from django.core.cache import cache
from rest_framework.test import APIClient

from clinic.models import Consultation, DoctorProfile, Payment, Role, User

from .fakes import FakeGateway, FakeRelay

PASSWORD = 'P@ssw0rd1'


@pytest.fixture(autouse=True)
def _clear_cache():
    # throttling counters live in the cache
    cache.clear()
    yield
    cache.clear()


@pytest.fixture
def relay(monkeypatch):
    fake = FakeRelay()
    monkeypatch.setattr(apps.get_app_config('clinic'), 'relay', fake)
    return fake


@pytest.fixture
def gateway(monkeypatch):
    fake = FakeGateway()
    monkeypatch.setattr('clinic.services.payments.get_gateway', lambda: fake)
    return fake


@pytest.fixture
def patient(db):
    return User.objects.create_user('pasien@example.com', PASSWORD, full_name='Pasien Satu', role=Role.PATIENT)


@pytest.fixture
def other_patient(db):
    return User.objects.create_user('pasien2@example.com', PASSWORD, full_name='Pasien Dua', role=Role.PATIENT)


@pytest.fixture
def doctor(db):
    user = User.objects.create_user('dokter@example.com', PASSWORD, full_name='Dokter Satu', role=Role.DOCTOR)
    DoctorProfile.objects.create(user=user, specialization='General Practitioner', license_number='STR-1',
                                 experience_years=5, consultation_fee=Decimal('75000'))
    return user


@pytest.fixture
def other_doctor(db):
    user = User.objects.create_user('dokter2@example.com', PASSWORD, full_name='Dokter Dua', role=Role.DOCTOR)
    DoctorProfile.objects.create(user=user, specialization='Cardiology', license_number='STR-2',
                                 consultation_fee=Decimal('150000'))
    return user


@pytest.fixture
def admin_user(db):
    return User.objects.create_user('admin@example.com', PASSWORD, full_name='Admin', role=Role.ADMIN)


@pytest.fixture
def consultation(patient, doctor):
    return Consultation.objects.create(patient=patient, doctor=doctor, title='Demam tinggi',
                                       description='Demam tiga hari disertai batuk')


@pytest.fixture
def paid_active_consultation(consultation):
    Payment.objects.create(consultation=consultation, payer=consultation.patient, amount=Decimal('75000'),
                           status=Payment.Status.PAID, gateway_order_id='ORDER-1-PAID')
    Consultation.objects.filter(pk=consultation.pk).update(status=Consultation.Status.ACTIVE)
    consultation.refresh_from_db()
    return consultation


@pytest.fixture
def api():
    def make(user=None):
        client = APIClient()
        if user is not None:
            client.force_authenticate(user=user)
        return client
    return make
