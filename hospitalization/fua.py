"""
FUA Authorization Checker。

只有 SIS 类保险（FUA_INSURANCE_CODES）才需要检查；
有效 FUA = 状态 '2' 且在最近 FUA_WINDOW_HOURS 小时内创建。
"""

import logging
from datetime import timedelta

from django.conf import settings
from django.utils import timezone

from .models import FuaAuthorization
from .types import FuaCheckResult

logger = logging.getLogger(__name__)

ACTIVE_STATUS = '2'


def fua_applies(insurance_code, codes=None) -> bool:
    if codes is None:
        codes = settings.FUA_INSURANCE_CODES
    code = (insurance_code or '').strip()
    return bool(code) and code in codes


def check_active_fua(patient_id, now=None, window_hours=None) -> FuaCheckResult:
    now = now or timezone.now()
    if window_hours is None:
        window_hours = settings.FUA_WINDOW_HOURS
    since = now - timedelta(hours=window_hours)

    logger.info("Verificando FUA activo para paciente %s desde %s", patient_id, since.isoformat())

    fua = (
        FuaAuthorization.objects
        .filter(patient_id=patient_id, status=ACTIVE_STATUS, attended_at__gte=since)
        .order_by('-attended_at')
        .first()
    )

    if fua is None:
        return FuaCheckResult(
            has_fua=False,
            message=f'No se ha detectado un FUA activo en las últimas {window_hours} horas',
        )
    return FuaCheckResult(
        has_fua=True,
        fua_id=fua.account_id,
        message=f'Se ha detectado un FUA activo en las últimas {window_hours} horas',
    )
