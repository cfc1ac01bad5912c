"""
Unit tests for CIE-10 verification and origin diagnosis text parsing.

外部服务用 unittest.mock.patch 替换 requests.get。
"""
from unittest.mock import MagicMock, patch

import pytest
import requests

from hospitalization.diagnosis import parse_diagnosis_text, verify_diagnosis_code


def _response(payload):
    response = MagicMock()
    response.json.return_value = payload
    response.raise_for_status.return_value = None
    return response


class TestVerifyDiagnosisCode:

    @patch('hospitalization.diagnosis.requests.get')
    def test_single_match(self, mock_get):
        mock_get.return_value = _response({'success': True, 'data': [{'cie10': 'J45', 'descripcion': 'Asthma'}]})

        result = verify_diagnosis_code('J45 - Asma', token='abc')

        assert result.success is True
        assert [(m.code, m.description) for m in result.matches] == [('J45', 'Asthma')]
        _, kwargs = mock_get.call_args
        assert kwargs['params'] == {'busqueda': 'J45'}
        assert kwargs['headers']['Authorization'] == 'Bearer abc'
        assert 'timeout' in kwargs

    @patch('hospitalization.diagnosis.requests.get')
    def test_no_matches(self, mock_get):
        mock_get.return_value = _response({'success': True, 'data': []})
        assert verify_diagnosis_code('Z99').matches == []

    @patch('hospitalization.diagnosis.requests.get')
    def test_transport_error_propagates(self, mock_get):
        mock_get.side_effect = requests.ConnectionError('down')
        with pytest.raises(requests.ConnectionError):
            verify_diagnosis_code('J45')

    @patch('hospitalization.diagnosis.requests.get')
    def test_no_auth_header_without_token(self, mock_get):
        mock_get.return_value = _response({'success': False})
        verify_diagnosis_code('J45')
        assert 'Authorization' not in mock_get.call_args[1]['headers']


class TestParseDiagnosisText:

    @pytest.mark.parametrize('text, expected', [
        ('J45 ASMA', ('J45', 'ASMA')),
        ('J45.0 ASMA PREDOMINANTEMENTE ALERGICA', ('J45.0', 'ASMA PREDOMINANTEMENTE ALERGICA')),
        ('J45 ASMA, J18 NEUMONIA', ('J45', 'ASMA')),
        ('J45', ('J45', '')),
        ('', ('', '')),
        (None, ('', '')),
    ])
    def test_parse(self, text, expected):
        assert parse_diagnosis_text(text) == expected
