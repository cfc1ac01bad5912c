"""
Unit tests for serializer functions.

覆盖 serialize_order（名称反规范化）、serialize_snapshot、serialize_submission。
"""
import pytest

from hospitalization.loader import build_snapshot
from hospitalization.serializers import serialize_order, serialize_snapshot, serialize_submission
from hospitalization.types import OrderForm, SubmissionResult
from tests.conftest import (
    DiagnosisFactory, DoctorFactory, HospitalizationOrderFactory, InsuranceFactory,
    OriginRecordFactory, WardFactory,
)


@pytest.mark.django_db
class TestSerializeOrder:

    def test_denormalized_names(self):
        WardFactory(code='H001', name='MEDICINA INTERNA')
        DoctorFactory(code='101', name='PEREZ GOMEZ JUAN')
        InsuranceFactory(code='02', name='PARTICULAR')
        DiagnosisFactory(code='J45', description='ASMA')
        origin = OriginRecordFactory(code='700001', ward=WardFactory(code='E001', name='EMERGENCIA'))
        order = HospitalizationOrderFactory(patient=origin.patient, origin_record_code='700001')

        result = serialize_order(order)

        assert result['wardCode'] == 'H001'
        assert result['wardName'] == 'MEDICINA INTERNA'
        assert result['doctorName'] == 'PEREZ GOMEZ JUAN'
        assert result['insuranceName'] == 'PARTICULAR'
        assert result['diagnosisName'] == 'ASMA'
        assert result['originRecordName'] == 'EMERGENCIA'
        assert result['date'] == '2026-03-01'

    def test_unknown_codes_have_empty_names(self):
        order = HospitalizationOrderFactory(doctor_code='ZZZ')
        result = serialize_order(order)
        assert result['doctorName'] == ''

    def test_feeds_order_loader(self):
        WardFactory(code='H001', name='MEDICINA INTERNA')
        order = HospitalizationOrderFactory(status='3')

        body = serialize_snapshot(build_snapshot(serialize_order(order)))

        assert body['isEditable'] is False
        assert body['isLocked'] is True
        assert body['notice']
        assert body['fields']['hospitalizedIn'] == {'code': 'H001', 'label': 'MEDICINA INTERNA'}
        assert body['display']['hospitalizedIn'] == 'H001 [MEDICINA INTERNA]'


class TestSerializeSubmission:

    def test_shape(self):
        result = SubmissionResult(
            order_id='2500000001',
            patient_id='100001',
            record={'orderId': '2500000001'},
            form=OrderForm(),
            document_urls=['a', 'b', 'c'],
            redirect='/hospitalization/orders/100001',
        )

        body = serialize_submission(result)

        assert body['orderId'] == '2500000001'
        assert body['message'] == 'Se ha creado la hospitalización con ID: 2500000001'
        assert body['documents'] == ['a', 'b', 'c']
        assert body['form']['originType'] == 'EM'
        assert body['accountSecured'] is None
        assert 'type' not in body
