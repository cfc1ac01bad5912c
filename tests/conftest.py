"""
Shared fixtures for all tests.

factory-boy factories live here so both unit/ and integration/ can import them.
"""
import pytest
from datetime import date
from unittest.mock import patch
from django.test import Client
from django.utils import timezone

import factory
from hospitalization.backends.base import BaseOrderBackend
from hospitalization.exceptions import BlockError
from hospitalization.models import (
    Diagnosis, Doctor, FuaAuthorization, HospitalizationOrder, Insurance,
    OriginRecord, Patient, PatientAccount, Ward,
)
from hospitalization.types import (
    ActingUser, CatalogEntry, DiagnosisMatch, DiagnosisVerification, FuaCheckResult,
    OrderForm, OriginType, PatientInfo,
)


# ---------------------------------------------------------------------------
# Factories
# ---------------------------------------------------------------------------

class PatientFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = Patient

    patient_id = factory.Sequence(lambda n: f'{300000 + n}')
    history_number = factory.Sequence(lambda n: f'HC{n:05d}')
    paternal_surname = 'QUISPE'
    maternal_surname = 'MAMANI'
    names = 'ROSA ELENA'
    birth_date = date(1990, 1, 15)


class WardFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = Ward

    code = factory.Sequence(lambda n: f'W{n:04d}')
    name = 'MEDICINA INTERNA'
    kind = 'H'


class DoctorFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = Doctor

    code = factory.Sequence(lambda n: f'D{n % 100:02d}')
    name = 'PEREZ GOMEZ JUAN'
    ward = factory.SubFactory(WardFactory)


class InsuranceFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = Insurance
        django_get_or_create = ('code',)

    code = '02'
    name = 'PARTICULAR'


class DiagnosisFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = Diagnosis
        django_get_or_create = ('code',)

    code = 'J45'
    description = 'ASMA'


class OriginRecordFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = OriginRecord

    code = factory.Sequence(lambda n: f'{700000 + n}')
    origin_type = 'EM'
    patient = factory.SubFactory(PatientFactory)
    ward = factory.SubFactory(WardFactory, name='EMERGENCIA')
    doctor = factory.SubFactory(DoctorFactory)
    diagnosis_text = 'J45 ASMA'
    insurance_code = '02'
    attended_at = factory.LazyFunction(timezone.now)


class FuaAuthorizationFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = FuaAuthorization

    account_id = factory.Sequence(lambda n: f'{900000 + n}')
    patient = factory.SubFactory(PatientFactory)
    attended_at = factory.LazyFunction(timezone.now)
    status = '2'


class PatientAccountFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = PatientAccount

    account_id = factory.Sequence(lambda n: f'{5000 + n}')
    patient = factory.SubFactory(PatientFactory)
    insurance_code = '02'
    status = '1'
    opened_by = 'ADMISION'


class HospitalizationOrderFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = HospitalizationOrder

    order_id = factory.Sequence(lambda n: f'{2400000001 + n}')
    patient = factory.SubFactory(PatientFactory)
    patient_name = factory.LazyAttribute(lambda o: o.patient.full_name)
    ward_code = 'H001  '
    time = '08:30 AM'
    date = date(2026, 3, 1)
    origin_type = 'EM'
    origin_record_code = '700001'
    insurance_code = '02'
    doctor_code = '101'
    status = '2'
    user = 'MARIA'
    print_user = 'MARIA'
    diagnosis_code = 'J45'
    age = '036a01m14d'
    companion_name = 'JUAN QUISPE'
    companion_phone = '987654321'
    companion_address = 'AV. LOS PINOS 123'


# ---------------------------------------------------------------------------
# Fake collaborator
# ---------------------------------------------------------------------------

class FakeOrderBackend(BaseOrderBackend):
    """
    In-memory backend for workflow tests. Every call is recorded in ``calls``;
    set the ``*_error`` attributes to make a step fail.
    """

    def __init__(self, token=''):
        super().__init__(token=token)
        self.calls = []
        self.patients = {'100001': PatientInfo('100001', 'QUISPE MAMANI ROSA', '1990-01-15', 'HC00001')}
        self.orders = {}
        self.insurances = {'02': CatalogEntry('02', 'PARTICULAR'), '21': CatalogEntry('21', 'SIS GRATUITO')}
        self.fua_result = FuaCheckResult(has_fua=False)
        self.verification = DiagnosisVerification(success=True, matches=[DiagnosisMatch('J45', 'Asthma')])
        self.next_id = 2500000001
        self.patient_error = None
        self.fua_error = None
        self.verify_error = None
        self.allocate_error = None
        self.create_error = None
        self.secure_error = None

    def search_catalog(self, kind, query='', scope=None, patient_id=None):
        self.calls.append(('search_catalog', kind, query))
        return []

    def find_insurance(self, code):
        self.calls.append(('find_insurance', code))
        return self.insurances.get(code)

    def check_fua(self, patient_id):
        self.calls.append(('check_fua', patient_id))
        if self.fua_error:
            raise self.fua_error
        return self.fua_result

    def verify_diagnosis(self, code):
        self.calls.append(('verify_diagnosis', code))
        if self.verify_error:
            raise self.verify_error
        return self.verification

    def get_patient(self, patient_id):
        self.calls.append(('get_patient', patient_id))
        if self.patient_error:
            raise self.patient_error
        if patient_id not in self.patients:
            raise BlockError(message='Paciente no encontrado', code='PATIENT_NOT_FOUND', http_status=404)
        return self.patients[patient_id]

    def get_order(self, order_id):
        self.calls.append(('get_order', order_id))
        if order_id not in self.orders:
            raise BlockError(message='Hospitalización no encontrada', code='ORDER_NOT_FOUND', http_status=404)
        return self.orders[order_id]

    def allocate_order_id(self):
        self.calls.append(('allocate_order_id',))
        if self.allocate_error:
            raise self.allocate_error
        order_id = str(self.next_id)
        self.next_id += 1
        return order_id

    def create_order(self, record):
        self.calls.append(('create_order', record['orderId']))
        if self.create_error:
            raise self.create_error
        self.orders[record['orderId']] = dict(record)
        return dict(record)

    def secure_account(self, order_id, patient_id, insurance_code, user, name):
        self.calls.append(('secure_account', order_id))
        if self.secure_error:
            raise self.secure_error
        return {'ok': True, 'message': 'Cuenta asegurada correctamente', 'accountId': '5001'}

    def called(self, name):
        return [c for c in self.calls if c[0] == name]


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture(autouse=True)
def mock_print_task():
    """打印任务永远不真正入队。"""
    with patch('hospitalization.workflow.print_order_documents') as mocked:
        yield mocked


@pytest.fixture
def api_client():
    """Django test client for integration tests."""
    return Client()


@pytest.fixture
def fake_backend():
    return FakeOrderBackend()


@pytest.fixture
def acting_user():
    return ActingUser(user_id='42', display_name='MARIA LOPEZ', token='tok-123')


@pytest.fixture
def emergency_form():
    """A complete, valid Emergency form."""
    return OrderForm(
        origin_type=OriginType.EMERGENCY,
        date='2026-03-01',
        time='14:30',
        hospitalization_origin=CatalogEntry('700001', 'EMERGENCIA'),
        hospitalized_in=CatalogEntry('H001', 'MEDICINA INTERNA'),
        authorizing_doctor=CatalogEntry('101', 'PEREZ GOMEZ JUAN'),
        financing=CatalogEntry('02', 'PARTICULAR'),
        diagnosis=CatalogEntry('J45', 'ASMA'),
        companion_name='JUAN QUISPE',
        companion_phone='987654321',
        companion_address='AV. LOS PINOS 123',
    )


@pytest.fixture
def sample_submit_payload():
    """Minimal valid body for POST /api/order/submit/."""
    return {
        'patientId': '100001',
        'confirm': True,
        'form': {
            'originType': 'EM',
            'date': '2026-03-01',
            'time': '14:30',
            'hospitalizationOrigin': {'code': '700001', 'label': 'EMERGENCIA'},
            'hospitalizedIn': {'code': 'H001', 'label': 'MEDICINA INTERNA'},
            'authorizingDoctor': {'code': '101', 'label': 'PEREZ GOMEZ JUAN'},
            'financing': {'code': '02', 'label': 'PARTICULAR'},
            'diagnosis': {'code': 'J45', 'label': 'ASMA'},
            'companionName': 'JUAN QUISPE',
            'companionPhone': '987-654-321',
            'companionAddress': 'AV. LOS PINOS 123',
        },
    }
