"""
Order Submission Workflow。

步骤严格按顺序执行，每一步决定下一步能否继续：

  1. 本地校验            → ValidationError
  2. 诊断复核（仅 CE）    → VerificationError / 多个匹配只警告
  3. FUA 门禁            → AuthorizationGapError（bypass_fua=True 放行）
  4. 用户确认            → WarningError CONFIRMATION_REQUIRED（confirm=True 放行）
  5. 分配订单号          → AllocationError
  6. 推导写入字段
  7. 写入订单            → PersistenceError（已分配的 id 作废）
  8. 绑定结算账户        → SideEffectError，只记日志
  9. 打印文档交接 + 返回列表

1–4 没有任何副作用。确认对话框每次都用请求里当前的表单重新跑 1–3，
不缓存上一次的结果。
"""

import logging
from dataclasses import dataclass
from datetime import date
from typing import Optional

import requests
from django.conf import settings
from django.db import DatabaseError
from django.utils import timezone

from .backends.base import BaseOrderBackend
from .derivation import derive_order_record
from .exceptions import (
    AllocationError, AuthorizationGapError, PatientLookupError, PersistenceError, SideEffectError,
    ValidationError, VerificationError, WarningError,
)
from .fua import fua_applies
from .printing import build_document_urls
from .tasks import print_order_documents
from .types import ActingUser, CatalogEntry, OrderForm, OriginType, SubmissionResult
from .validation import validate_order_form

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WorkflowConfig:
    fua_insurance_codes: frozenset
    secure_account_insurance_codes: frozenset
    initial_status: str = '2'
    documents_base_url: Optional[str] = None
    redirect_template: str = '/hospitalization/orders/{patient_id}'

    @classmethod
    def from_settings(cls) -> 'WorkflowConfig':
        return cls(
            fua_insurance_codes=frozenset(settings.FUA_INSURANCE_CODES),
            secure_account_insurance_codes=frozenset(settings.SECURE_ACCOUNT_INSURANCE_CODES),
            initial_status=settings.INITIAL_ORDER_STATUS,
            documents_base_url=settings.DOCUMENTS_BASE_URL,
        )


class OrderSubmissionWorkflow:

    def __init__(self, backend: BaseOrderBackend, user: ActingUser,
                 config: Optional[WorkflowConfig] = None, today: Optional[date] = None):
        self.backend = backend
        self.user = user
        self.config = config or WorkflowConfig.from_settings()
        self.today = today

    # ── 1. 本地校验 ──────────────────────────────────────────────────────────

    def validate(self, form: OrderForm):
        result = validate_order_form(form)
        if not result.is_valid:
            raise ValidationError(
                message='Complete correctamente los campos obligatorios',
                detail={'errors': result.errors},
            )

    # ── 2. 诊断复核 ──────────────────────────────────────────────────────────

    def verify_diagnosis(self, form: OrderForm, warnings: list) -> OrderForm:
        """
        只对 CE 生效。返回（可能被改写了诊断的）表单。

        - 服务说无效 / 没有匹配 / 调用出错 → VerificationError
        - 恰好一个匹配 → 诊断替换为规范的 "code - description"
        - 多个匹配 → 追加警告，保留用户输入
        """
        if form.origin_type != OriginType.OUTPATIENT_CONSULT:
            return form

        code = form.diagnosis.code
        try:
            verification = self.backend.verify_diagnosis(code)
        except (requests.RequestException, ValueError) as exc:
            logger.warning("Verificación de diagnóstico %s fallida: %s", code, exc)
            raise VerificationError(
                message='No se pudo verificar el diagnóstico. Intente nuevamente.',
                detail={'diagnosis': code},
            ) from exc

        if not verification.success or not verification.matches:
            raise VerificationError(
                message=f'El diagnóstico {code} no es válido',
                detail={'diagnosis': code},
            )

        if len(verification.matches) == 1:
            match = verification.matches[0]
            logger.info("Diagnóstico %s verificado como %s", code, match.code)
            return form.with_updates(diagnosis=CatalogEntry(code=match.code, label=match.description))

        logger.info("Diagnóstico %s ambiguo: %d coincidencias", code, len(verification.matches))
        warnings.append({
            'code': 'DIAGNOSIS_AMBIGUOUS',
            'message': f'El diagnóstico {code} tiene {len(verification.matches)} coincidencias. Verifique el código.',
            'matches': verification.to_dict()['matches'],
        })
        return form

    # ── 3. FUA ───────────────────────────────────────────────────────────────

    def check_fua(self, patient_id, form: OrderForm, bypass_fua: bool, warnings: list):
        insurance_code = form.financing.code if form.financing else ''
        if not fua_applies(insurance_code, self.config.fua_insurance_codes):
            return

        try:
            result = self.backend.check_fua(patient_id)
            has_fua = result.has_fua
        except (requests.RequestException, ValueError, DatabaseError) as exc:
            # 检查本身出错按 "没有 FUA" 处理
            logger.warning("Verificación de FUA fallida para paciente %s: %s", patient_id, exc)
            has_fua = False

        if has_fua:
            return

        if not bypass_fua:
            raise AuthorizationGapError(
                message='El paciente no cuenta con un FUA activo. ¿Desea hospitalizar de todas formas?',
                detail={'patientId': patient_id, 'insuranceCode': insurance_code, 'bypassField': 'bypassFua'},
            )

        logger.info("Paciente %s sin FUA activo, hospitalización forzada por %s",
                    patient_id, self.user.short_name)
        warnings.append({
            'code': 'FUA_BYPASSED',
            'message': 'Se hospitalizó sin FUA activo',
        })

    # ── 4. 确认 ──────────────────────────────────────────────────────────────

    def _summary(self, patient, form: OrderForm) -> dict:
        def display(entry):
            return entry.display if entry else ''

        return {
            'patientId': patient.patient_id,
            'patientName': patient.full_name,
            'originType': form.origin_type.value,
            'date': form.date,
            'time': form.time,
            'hospitalizationOrigin': display(form.hospitalization_origin),
            'hospitalizedIn': display(form.hospitalized_in),
            'authorizingDoctor': display(form.authorizing_doctor),
            'financing': display(form.financing),
            'diagnosis': form.diagnosis.canonical if form.diagnosis else '',
        }

    # ── 患者资料 ─────────────────────────────────────────────────────────────

    def load_patient(self, patient_id):
        """PATIENT_NOT_FOUND 原样抛出；服务不可用 → PatientLookupError。"""
        try:
            return self.backend.get_patient(patient_id)
        except (requests.RequestException, ValueError, DatabaseError) as exc:
            raise PatientLookupError(message='No se pudo obtener los datos del paciente',
                                     detail={'patient_id': patient_id, 'error': str(exc)}) from exc

    # ── 8. 结算账户 ──────────────────────────────────────────────────────────

    def secure_account(self, record: dict) -> Optional[bool]:
        """None = 不适用；True / False = 成功 / 失败。失败不影响已写入的订单。"""
        insurance_code = record['insuranceCode'].strip()
        if insurance_code not in self.config.secure_account_insurance_codes:
            return None

        try:
            self.backend.secure_account(
                record['orderId'],
                record['patientId'],
                insurance_code,
                record['user'],
                self.user.display_name,
            )
        except SideEffectError as exc:
            logger.error("Error al asegurar cuenta de la hospitalización %s: %s", record['orderId'], exc.message)
            return False
        except Exception:
            logger.exception("Error inesperado al asegurar cuenta de la hospitalización %s", record['orderId'])
            return False
        logger.info("Cuenta asegurada para hospitalización %s", record['orderId'])
        return True

    # ── 9. 打印 ──────────────────────────────────────────────────────────────

    def dispatch_documents(self, order_id) -> list[str]:
        urls = build_document_urls(order_id, self.user.display_name, self.config.documents_base_url)
        try:
            print_order_documents.delay(urls)
        except Exception as exc:
            logger.error("No se pudo encolar la impresión de %s: %s", order_id, exc)
        return urls

    # ── 主流程 ───────────────────────────────────────────────────────────────

    def submit(self, patient_id, form: OrderForm, *, bypass_fua=False, confirm=False) -> SubmissionResult:
        warnings = []
        logger.info("Registrando hospitalización para paciente %s (%s)", patient_id, form.origin_type.value)

        self.validate(form)
        form = self.verify_diagnosis(form, warnings)
        self.check_fua(patient_id, form, bypass_fua, warnings)

        patient = self.load_patient(patient_id)
        if not patient.full_name.strip():
            raise ValidationError(
                message='No se pudo obtener el nombre del paciente',
                code='PATIENT_NAME_MISSING',
                detail={'patientId': patient_id},
            )

        if not confirm:
            raise WarningError(
                message='¿Está seguro de registrar la hospitalización?',
                detail={'summary': self._summary(patient, form), 'warnings': warnings},
            )

        try:
            order_id = self.backend.allocate_order_id()
        except (requests.RequestException, ValueError, DatabaseError) as exc:
            raise AllocationError(message='No se pudo obtener un ID de hospitalización',
                                  detail={'error': str(exc)}) from exc
        logger.info("ID de hospitalización asignado: %s", order_id)

        record = derive_order_record(
            form,
            order_id=order_id,
            patient=patient,
            user=self.user,
            status=self.config.initial_status,
            today=self.today or timezone.localdate(),
        )

        try:
            self.backend.create_order(record)
        except (requests.RequestException, DatabaseError) as exc:
            raise PersistenceError(message=f'Error al crear la hospitalización: {exc}',
                                   detail={'order_id': order_id}) from exc
        logger.info("Hospitalización %s registrada", record['orderId'])

        account_secured = self.secure_account(record)
        document_urls = self.dispatch_documents(record['orderId'])

        return SubmissionResult(
            order_id=record['orderId'],
            patient_id=record['patientId'],
            record=record,
            form=form,
            warnings=warnings,
            account_secured=account_secured,
            document_urls=document_urls,
            redirect=self.config.redirect_template.format(patient_id=record['patientId']),
        )
