"""
CIE-10 诊断：外部编码服务复核 + 来源记录里诊断文本的解析。
"""

import logging
import re

import requests
from django.conf import settings

from .types import DiagnosisMatch, DiagnosisVerification

logger = logging.getLogger(__name__)

_CODE_AND_DESCRIPTION = re.compile(r'^([A-Z0-9.]+)\s+(.+)$')


def verify_diagnosis_code(code, token='') -> DiagnosisVerification:
    """
    调外部 CIE-10 服务按编码搜索。

    服务返回 {"success": bool, "data": [{"cie10": ..., "descripcion": ...}]}。
    网络 / HTTP 错误直接抛出 requests.RequestException，由调用方决定如何处理。
    """
    search = (code or '').split('-')[0].strip()
    headers = {'Content-Type': 'application/json'}
    if token:
        headers['Authorization'] = f'Bearer {token}'

    logger.info("Verificando diagnóstico %r contra %s", search, settings.DIAGNOSIS_VERIFY_URL)
    r = requests.get(
        settings.DIAGNOSIS_VERIFY_URL,
        params={'busqueda': search},
        headers=headers,
        timeout=settings.COLLABORATOR_TIMEOUT,
    )
    r.raise_for_status()
    data = r.json()

    matches = [
        DiagnosisMatch(
            code=(item.get('cie10') or '').strip(),
            description=(item.get('descripcion') or '').strip(),
        )
        for item in (data.get('data') or [])
    ]
    return DiagnosisVerification(success=bool(data.get('success')), matches=matches)


def parse_diagnosis_text(text) -> tuple[str, str]:
    """
    来源记录的诊断文本 → (code, description)。

    可能是 "J45 ASMA" 或 STRING_AGG 拼出来的 "J45 ASMA, J18 NEUMONIA"，只取第一条。
    """
    text = (text or '').strip()
    if ',' in text:
        text = text.split(',')[0].strip()
    match = _CODE_AND_DESCRIPTION.match(text)
    if match:
        return match.group(1).strip(), match.group(2).strip()
    return text, ''
