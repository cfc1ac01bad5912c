"""
HTTP 层：解析请求 → 调用 catalogs / services / workflow → 格式化响应。

所有业务异常直接往外抛，由 exception_handler.unified_exception_handler 统一转换。
当前操作人只在这里从请求头读取，之后作为 ActingUser 显式传下去。
"""

import logging

import requests
from django.utils import timezone
from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import APIView

from . import services
from .backends.factory import get_order_backend
from .backends.services import LocalOrderBackend
from .catalogs import search_catalog
from .derivation import derive_order_record
from .diagnosis import verify_diagnosis_code
from .exceptions import CatalogLookupError, ValidationError
from .fua import check_active_fua
from .intake import acting_user_from_request, parse_order_form
from .loader import load_order
from .printing import build_document_urls
from .serializers import serialize_order, serialize_snapshot, serialize_submission
from .types import DiagnosisVerification
from .validation import validate_order_form
from .workflow import OrderSubmissionWorkflow

logger = logging.getLogger(__name__)


def _flag(value) -> bool:
    if isinstance(value, bool):
        return value
    return str(value or '').strip().lower() in ('1', 'true', 'yes', 'on')


def _json_object(value, field='body') -> dict:
    """请求体（或其中的 form）必须是 JSON 对象。"""
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ValidationError(
            message='El cuerpo de la solicitud debe ser un objeto JSON',
            code='INVALID_BODY',
            detail={'errors': {field: 'Se esperaba un objeto JSON'}},
        )
    return value


def _require_param(request, name):
    value = (request.query_params.get(name) or '').strip()
    if not value:
        raise ValidationError(
            message=f'El parámetro {name} es obligatorio',
            detail={'errors': {name: f'El parámetro {name} es obligatorio'}},
        )
    return value


# ── Catálogos ──────────────────────────────────────────────────────────────

class CatalogSearchView(APIView):
    """GET /api/catalog/<kind>/?search=&scope=&patientId="""

    def get(self, request, kind):
        params = request.query_params
        try:
            entries = search_catalog(
                kind,
                params.get('search', ''),
                scope=params.get('scope'),
                patient_id=params.get('patientId'),
            )
        except CatalogLookupError as exc:
            if exc.http_status == 404:
                raise
            # 查询失败按无结果处理，只带一条提示
            return Response({'items': [], 'message': exc.message})
        return Response({'items': [e.to_dict() for e in entries]})


class FuaCheckView(APIView):
    """GET /api/fua/check/?patientId="""

    def get(self, request):
        patient_id = _require_param(request, 'patientId')
        return Response(check_active_fua(patient_id).to_dict())


class DiagnosisVerifyView(APIView):
    """GET /api/diagnosis-verify/?code="""

    def get(self, request):
        code = _require_param(request, 'code')
        user = acting_user_from_request(request)
        try:
            verification = verify_diagnosis_code(code, token=user.token)
        except (requests.RequestException, ValueError) as exc:
            logger.warning("Servicio CIE-10 no disponible para %s: %s", code, exc)
            verification = DiagnosisVerification(success=False)
        return Response(verification.to_dict())


class PatientDetailView(APIView):
    """GET /api/patient/<patient_id>/"""

    def get(self, request, patient_id):
        info = services.get_patient_info(patient_id)
        return Response({
            'patientId': info.patient_id,
            'fullName': info.full_name,
            'birthDate': info.birth_date,
            'historyNumber': info.history_number,
        })


# ── Hospitalización ────────────────────────────────────────────────────────

class NextOrderIdView(APIView):
    """POST /api/order/next-id/"""

    def post(self, request):
        return Response({'nextId': services.next_order_id()})


class OrderCreateView(APIView):
    """POST /api/order/ - 写入已推导好的记录"""

    def post(self, request):
        order = services.create_order(_json_object(request.data))
        return Response(serialize_order(order), status=status.HTTP_201_CREATED)


class OrderDetailView(APIView):
    """GET / PUT / DELETE /api/order/<order_id>/"""

    def get(self, request, order_id):
        return Response(serialize_order(services.get_order(order_id)))

    def put(self, request, order_id):
        order = services.get_order(order_id)
        data = _json_object(request.data)
        form = parse_order_form(_json_object(data.get('form', data), 'form'))
        result = validate_order_form(form)
        if not result.is_valid:
            raise ValidationError(
                message='Complete correctamente los campos obligatorios',
                detail={'errors': result.errors},
            )

        record = derive_order_record(
            form,
            order_id=order.order_id,
            patient=services.get_patient_info(order.patient_id),
            user=acting_user_from_request(request),
            status=order.status,
            today=timezone.localdate(),
        )
        updated = services.update_order(order_id, record)
        return Response(serialize_order(updated))

    def delete(self, request, order_id):
        order = services.delete_order(order_id)
        return Response({
            'ok': True,
            'orderId': order.order_id,
            'status': order.status,
            'message': 'Hospitalización anulada correctamente',
        })


class OrderFormView(APIView):
    """GET /api/order/<order_id>/form/ - Order Data Loader"""

    def get(self, request, order_id):
        snapshot = load_order(order_id, backend=LocalOrderBackend())
        return Response(serialize_snapshot(snapshot))


class SecureAccountView(APIView):
    """POST /api/order/<order_id>/secure-account/"""

    def post(self, request, order_id):
        data = _json_object(request.data)
        result = services.secure_account(
            order_id,
            data.get('patientId'),
            data.get('insuranceCode'),
            data.get('user'),
            data.get('name', ''),
        )
        return Response(result)


class OrderDocumentsView(APIView):
    """GET /api/order/<order_id>/documents/ - 重新打印用，和状态无关"""

    def get(self, request, order_id):
        order = services.get_order(order_id)
        user = acting_user_from_request(request)
        return Response({
            'orderId': order.order_id,
            'documents': build_document_urls(order.order_id, user.display_name),
        })


class EditableOrderView(APIView):
    """GET /api/order/editable/?patientId="""

    def get(self, request):
        patient_id = _require_param(request, 'patientId')
        return Response({'isEditable': services.patient_has_editable_order(patient_id)})


class PatientOrderListView(APIView):
    """GET /api/order/patient/<patient_id>/?page=&pageSize=&search="""

    def get(self, request, patient_id):
        params = request.query_params
        try:
            page = int(params.get('page') or 1)
            page_size = int(params.get('pageSize') or 10)
        except ValueError:
            raise ValidationError(message='Parámetros de paginación inválidos')
        return Response(services.list_patient_orders(
            patient_id,
            page=page,
            page_size=page_size,
            search=(params.get('search') or '').strip(),
        ))


class OrderSubmitView(APIView):
    """
    POST /api/order/submit/

    Body: {patientId, form, bypassFua, confirm}

    第一次提交不带 confirm，得到 409 CONFIRMATION_REQUIRED 和摘要；
    用户确认后带 confirm=true 重新提交当前表单。
    """

    def post(self, request):
        data = _json_object(request.data)
        patient_id = str(data.get('patientId') or '').strip()
        if not patient_id:
            raise ValidationError(
                message='El parámetro patientId es obligatorio',
                detail={'errors': {'patientId': 'El parámetro patientId es obligatorio'}},
            )

        user = acting_user_from_request(request)
        workflow = OrderSubmissionWorkflow(get_order_backend(token=user.token), user)
        result = workflow.submit(
            patient_id,
            parse_order_form(_json_object(data.get('form'), 'form')),
            bypass_fua=_flag(data.get('bypassFua')),
            confirm=_flag(data.get('confirm')),
        )
        return Response(serialize_submission(result), status=status.HTTP_201_CREATED)
