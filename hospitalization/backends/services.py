"""
具体后端实现。

已注册后端：
  local — LocalOrderBackend  (Django ORM + 外部 CIE-10 服务)
  http  — HttpOrderBackend   (通过 requests 调用远程 /api/ 接口)
"""

import logging
from datetime import date

import requests
from django.conf import settings
from django.db import DatabaseError

from .. import catalogs, services
from ..diagnosis import verify_diagnosis_code
from ..exceptions import (
    AllocationError, BaseAppException, BlockError, CatalogLookupError, PatientLookupError, PersistenceError,
    SideEffectError,
)
from ..fua import check_active_fua
from ..serializers import serialize_order
from ..types import CatalogEntry, DiagnosisMatch, DiagnosisVerification, FuaCheckResult, OriginEntry, PatientInfo
from .base import BaseOrderBackend

logger = logging.getLogger(__name__)


# ── LocalOrderBackend ──────────────────────────────────────────────────────
#
# 同进程直接走 ORM。诊断复核仍然调外部 CIE-10 服务。

class LocalOrderBackend(BaseOrderBackend):

    def search_catalog(self, kind, query='', scope=None, patient_id=None):
        return catalogs.search_catalog(kind, query, scope=scope, patient_id=patient_id)

    def find_insurance(self, code):
        try:
            return catalogs.find_insurance(code)
        except DatabaseError as exc:
            raise CatalogLookupError(message='No se pudo obtener el seguro', detail={'code': code}) from exc

    def check_fua(self, patient_id):
        return check_active_fua(patient_id)

    def verify_diagnosis(self, code):
        return verify_diagnosis_code(code, token=self.token)

    def get_patient(self, patient_id):
        try:
            return services.get_patient_info(patient_id)
        except DatabaseError as exc:
            raise PatientLookupError(message='No se pudo obtener los datos del paciente',
                                     detail={'patient_id': patient_id}) from exc

    def get_order(self, order_id):
        return serialize_order(services.get_order(order_id))

    def allocate_order_id(self):
        return services.next_order_id()

    def create_order(self, record):
        return serialize_order(services.create_order(record))

    def secure_account(self, order_id, patient_id, insurance_code, user, name):
        try:
            return services.secure_account(order_id, patient_id, insurance_code, user, name)
        except (BaseAppException, DatabaseError) as exc:
            raise SideEffectError(message=f'No se pudo asegurar la cuenta: {exc}',
                                  detail={'order_id': order_id}) from exc


# ── HttpOrderBackend ───────────────────────────────────────────────────────
#
# 环境变量：ORDER_API_BASE_URL
# 非 2xx 响应把后端返回的 message 原样带到异常里。

def _error_message(response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text or f'HTTP {response.status_code}'
    if isinstance(body, dict):
        return body.get('message') or body.get('error') or f'HTTP {response.status_code}'
    return f'HTTP {response.status_code}'


def _json_object(response) -> dict:
    """响应体必须是 JSON 对象，否则 ValueError。"""
    body = response.json()
    if not isinstance(body, dict):
        raise ValueError(f'Respuesta inesperada: {type(body).__name__}')
    return body


def _catalog_entry(kind, item) -> CatalogEntry:
    if kind == 'origin':
        return OriginEntry(
            code=item.get('code', ''),
            label=item.get('label', ''),
            origin_type=item.get('originType', ''),
            ward_code=item.get('wardCode', ''),
            ward_name=item.get('wardName', ''),
            doctor_code=item.get('doctorCode', ''),
            doctor_name=item.get('doctorName', ''),
            diagnosis_code=item.get('diagnosisCode', ''),
            diagnosis_description=item.get('diagnosisDescription', ''),
            insurance_code=item.get('insuranceCode', ''),
        )
    return CatalogEntry(code=item.get('code', ''), label=item.get('label', ''))


class HttpOrderBackend(BaseOrderBackend):

    def __init__(self, token='', base_url=None, session=None):
        super().__init__(token=token)
        self.base_url = (base_url or settings.ORDER_API_BASE_URL).rstrip('/')
        self.session = session or requests.Session()

    def _request(self, method, path, **kwargs):
        headers = {'Content-Type': 'application/json'}
        if self.token:
            headers['Authorization'] = f'Bearer {self.token}'
        url = f"{self.base_url}/{path.lstrip('/')}"
        logger.debug("%s %s", method, url)
        return self.session.request(
            method, url, headers=headers, timeout=settings.COLLABORATOR_TIMEOUT, **kwargs
        )

    def search_catalog(self, kind, query='', scope=None, patient_id=None):
        params = {'search': query}
        if scope:
            params['scope'] = scope
        if patient_id:
            params['patientId'] = patient_id
        try:
            r = self._request('GET', f'catalog/{kind}/', params=params)
            r.raise_for_status()
            items = _json_object(r).get('items') or []
        except (requests.RequestException, ValueError) as exc:
            logger.warning("Error al buscar en catálogo remoto %s: %s", kind, exc)
            raise CatalogLookupError(
                message='No se pudieron obtener resultados',
                detail={'catalog': kind},
            ) from exc
        return [_catalog_entry(kind, item) for item in items]

    def find_insurance(self, code):
        code = (code or '').strip()
        if not code:
            return None
        for entry in self.search_catalog('insurance', code):
            if entry.code == code:
                return entry
        return None

    def check_fua(self, patient_id):
        r = self._request('GET', 'fua/check/', params={'patientId': patient_id})
        r.raise_for_status()
        data = _json_object(r)
        return FuaCheckResult(
            has_fua=bool(data.get('hasFua')),
            fua_id=data.get('fuaId'),
            message=data.get('message', ''),
        )

    def verify_diagnosis(self, code):
        r = self._request('GET', 'diagnosis-verify/', params={'code': code})
        r.raise_for_status()
        data = _json_object(r)
        return DiagnosisVerification(
            success=bool(data.get('success')),
            matches=[
                DiagnosisMatch(code=m.get('code', ''), description=m.get('description', ''))
                for m in (data.get('matches') or [])
            ],
        )

    def get_patient(self, patient_id):
        try:
            r = self._request('GET', f'patient/{patient_id}/')
        except requests.RequestException as exc:
            raise PatientLookupError(message='No se pudo obtener los datos del paciente',
                                     detail={'patient_id': patient_id, 'error': str(exc)}) from exc
        if r.status_code == 404:
            raise BlockError(
                message='Paciente no encontrado',
                code='PATIENT_NOT_FOUND',
                detail={'patient_id': patient_id},
                http_status=404,
            )
        if not r.ok:
            raise PatientLookupError(message=_error_message(r),
                                     detail={'patient_id': patient_id, 'status': r.status_code})
        try:
            data = _json_object(r)
            birth_date = data.get('birthDate') or None
            if birth_date:
                # 推导年龄时按 ISO 解析，这里先校验
                date.fromisoformat(birth_date)
        except (ValueError, TypeError) as exc:
            raise PatientLookupError(message='Datos del paciente inválidos',
                                     detail={'patient_id': patient_id, 'error': str(exc)}) from exc
        return PatientInfo(
            patient_id=data.get('patientId', patient_id),
            full_name=data.get('fullName') or '',
            birth_date=birth_date,
            history_number=data.get('historyNumber') or '',
        )

    def get_order(self, order_id):
        r = self._request('GET', f'order/{order_id}/')
        if r.status_code == 404:
            raise BlockError(
                message='Hospitalización no encontrada',
                code='ORDER_NOT_FOUND',
                detail={'order_id': str(order_id)},
                http_status=404,
            )
        r.raise_for_status()
        return r.json()

    def allocate_order_id(self):
        try:
            r = self._request('POST', 'order/next-id/')
        except requests.RequestException as exc:
            raise AllocationError(message='No se pudo obtener un ID de hospitalización',
                                  detail={'error': str(exc)}) from exc
        if not r.ok:
            raise AllocationError(message=_error_message(r), detail={'status': r.status_code})
        try:
            next_id = str(_json_object(r).get('nextId') or '').strip()
        except ValueError as exc:
            raise AllocationError(message='Respuesta inválida al obtener el ID de hospitalización',
                                  detail={'error': str(exc)}) from exc
        if not next_id:
            raise AllocationError(message='El servicio no devolvió un ID de hospitalización')
        return next_id

    def create_order(self, record):
        try:
            r = self._request('POST', 'order/', json=record)
        except requests.RequestException as exc:
            raise PersistenceError(message=f'Error al crear la hospitalización: {exc}',
                                   detail={'order_id': record.get('orderId')}) from exc
        if not r.ok:
            raise PersistenceError(
                message=_error_message(r),
                detail={'order_id': record.get('orderId'), 'status': r.status_code},
            )
        # 已经写入成功；响应体解析不了也不能当作失败
        try:
            return _json_object(r)
        except ValueError as exc:
            logger.warning("Respuesta no JSON al crear hospitalización %s: %s", record.get('orderId'), exc)
            return {'orderId': record.get('orderId')}

    def secure_account(self, order_id, patient_id, insurance_code, user, name):
        try:
            r = self._request('POST', f'order/{order_id}/secure-account/', json={
                'patientId': patient_id,
                'insuranceCode': insurance_code,
                'user': user,
                'name': name,
            })
        except requests.RequestException as exc:
            raise SideEffectError(message=f'No se pudo asegurar la cuenta: {exc}',
                                  detail={'order_id': order_id}) from exc
        if not r.ok:
            raise SideEffectError(message=_error_message(r), detail={'order_id': order_id, 'status': r.status_code})
        try:
            return _json_object(r)
        except ValueError:
            return {'ok': True}
