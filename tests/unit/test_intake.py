"""
Unit tests for request-body parsing: OrderForm, CatalogEntry values, ActingUser.
"""
import pytest
from django.test import RequestFactory

from hospitalization.intake import acting_user_from_request, digits_only, parse_entry, parse_order_form
from hospitalization.types import ActingUser, CatalogEntry, OriginType


class TestDigitsOnly:

    @pytest.mark.parametrize('raw, expected', [
        ('987-654-321', '987654321'),
        ('(01) 555 1234', '015551234'),
        ('+51 987654321', '51987654321'),
        ('abc', ''),
        (None, ''),
    ])
    def test_strips_non_digits(self, raw, expected):
        assert digits_only(raw) == expected

    def test_idempotent(self):
        clean = digits_only('987-654-321')
        assert digits_only(clean) == clean


class TestParseEntry:

    def test_structured_value(self):
        assert parse_entry({'code': 'H001', 'label': 'MEDICINA'}) == CatalogEntry('H001', 'MEDICINA')

    def test_bracketed_string(self):
        assert parse_entry('H001 [MEDICINA INTERNA]') == CatalogEntry('H001', 'MEDICINA INTERNA')

    def test_canonical_string(self):
        assert parse_entry('J45 - Asthma') == CatalogEntry('J45', 'Asthma')

    def test_code_only(self):
        assert parse_entry('02') == CatalogEntry('02', '')

    @pytest.mark.parametrize('value', [None, '', '   ', {'code': ''}])
    def test_empty_values(self, value):
        assert parse_entry(value) is None

    def test_display_round_trip(self):
        entry = CatalogEntry('101', 'PEREZ GOMEZ JUAN')
        assert parse_entry(entry.display) == entry


class TestParseOrderForm:

    def test_full_body(self, sample_submit_payload):
        form = parse_order_form(sample_submit_payload['form'])

        assert form.origin_type == OriginType.EMERGENCY
        assert form.hospitalized_in == CatalogEntry('H001', 'MEDICINA INTERNA')
        assert form.companion_phone == '987654321'

    def test_unknown_origin_type_defaults_to_emergency(self):
        assert parse_order_form({'originType': 'XX'}).origin_type == OriginType.EMERGENCY

    def test_lowercase_origin_type(self):
        assert parse_order_form({'originType': 'rn'}).origin_type == OriginType.NEWBORN

    def test_none_body(self):
        form = parse_order_form(None)
        assert form.date == ''
        assert form.diagnosis is None


class TestActingUser:

    def test_from_headers(self):
        request = RequestFactory().get(
            '/', HTTP_X_USER_ID='42', HTTP_X_USER_NAME='MARIA LOPEZ', HTTP_AUTHORIZATION='Bearer abc',
        )
        user = acting_user_from_request(request)

        assert user == ActingUser(user_id='42', display_name='MARIA LOPEZ', token='abc')

    def test_missing_headers(self):
        user = acting_user_from_request(RequestFactory().get('/'))
        assert user.token == ''
        assert user.short_name == 'SUPERVISOR'

    def test_short_name_is_first_word(self):
        assert ActingUser(display_name='MARIA LOPEZ').short_name == 'MARIA'
