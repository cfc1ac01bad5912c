"""
Unit tests for document URLs and the Celery print task.
"""
from unittest.mock import MagicMock, patch

import pytest
import requests
from celery.exceptions import Retry

from hospitalization.printing import build_document_urls
from hospitalization.tasks import print_order_documents


class TestBuildDocumentUrls:

    def test_three_documents(self):
        urls = build_document_urls(' 2500000001 ', 'MARIA LOPEZ', base_url='http://docs.local/')

        assert urls == [
            'http://docs.local/reporte/pdf/orden-hospitalizacion/2500000001?usuario=MARIA%20LOPEZ',
            'http://docs.local/reporte/pdf/consentimiento-hospitalizacion/2500000001?usuario=MARIA%20LOPEZ',
            'http://docs.local/reporte/pdf/hoja-filiacion/2500000001?usuario=MARIA%20LOPEZ',
        ]

    def test_default_base_url(self, settings):
        settings.DOCUMENTS_BASE_URL = 'http://reports'
        assert build_document_urls('1', '')[0] == 'http://reports/reporte/pdf/orden-hospitalizacion/1?usuario='


class TestPrintOrderDocumentsTask:

    @patch('hospitalization.tasks.requests.post')
    def test_posts_urls(self, mock_post, settings):
        settings.PRINT_SERVICE_URL = 'http://printer/print'
        mock_post.return_value = MagicMock(raise_for_status=MagicMock(return_value=None))

        assert print_order_documents.apply(args=(['u1', 'u2', 'u3'],)).get() is True

        mock_post.assert_called_once()
        args, kwargs = mock_post.call_args
        assert args[0] == 'http://printer/print'
        assert kwargs['json'] == {'urls': ['u1', 'u2', 'u3']}

    @patch('hospitalization.tasks.requests.post')
    def test_failure_retries(self, mock_post):
        mock_post.side_effect = requests.ConnectionError('printer offline')

        with patch.object(print_order_documents, 'retry', side_effect=Retry()) as mock_retry:
            with pytest.raises(Retry):
                print_order_documents.run(['u1'])

        _, kwargs = mock_retry.call_args
        assert kwargs['countdown'] == 10
