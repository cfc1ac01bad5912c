"""
Document generation handoff：住院单 / 同意书 / 登记表三份文档的 URL。
PDF 由外部服务生成和合并，这里只拼 URL。
"""

from urllib.parse import quote

from django.conf import settings

DOCUMENT_PATHS = (
    'reporte/pdf/orden-hospitalizacion',
    'reporte/pdf/consentimiento-hospitalizacion',
    'reporte/pdf/hoja-filiacion',
)


def build_document_urls(order_id, user_display_name, base_url=None) -> list[str]:
    base_url = (base_url or settings.DOCUMENTS_BASE_URL).rstrip('/')
    order_id = str(order_id).strip()
    user = quote(user_display_name or '')
    return [f"{base_url}/{path}/{order_id}?usuario={user}" for path in DOCUMENT_PATHS]
