import logging
from datetime import date, datetime

from django.conf import settings
from django.db import DatabaseError, IntegrityError, transaction
from django.db.models import Q
from django.db.models.functions import Length

from .exceptions import AllocationError, BlockError, PersistenceError, ValidationError
from .listing import EDITABLE_STATUSES, READ_ONLY_NOTICE, ensure_order_mutable, order_actions
from .models import HospitalizationOrder, Patient, PatientAccount
from .serializers import resolve_names, serialize_order
from .types import PatientInfo

logger = logging.getLogger(__name__)

DELETED_STATUS = '0'
OPEN_ACCOUNT_STATUS = '1'

BASE_REQUIRED_FIELDS = [
    'orderId', 'patientId', 'patientName', 'wardCode', 'time', 'date',
    'originType', 'insuranceCode', 'doctorCode', 'status', 'user',
    'diagnosisCode', 'age',
]

# record key → model field
_RECORD_FIELDS = {
    'patientName': 'patient_name',
    'wardCode': 'ward_code',
    'time': 'time',
    'originType': 'origin_type',
    'originRecordCode': 'origin_record_code',
    'insuranceCode': 'insurance_code',
    'doctorCode': 'doctor_code',
    'status': 'status',
    'user': 'user',
    'printUser': 'print_user',
    'diagnosisCode': 'diagnosis_code',
    'age': 'age',
    'companionName': 'companion_name',
    'companionPhone': 'companion_phone',
    'companionAddress': 'companion_address',
}


def _next_sequential_id(queryset, field, seed):
    """
    取数值最大的 id + 1。先按长度再按值排序，避免字符串排序把 "9" 排在 "10" 后面。
    表为空或最后一个 id 不是数字时从 seed 开始。
    """
    last = (
        queryset
        .annotate(id_len=Length(field))
        .order_by('-id_len', f'-{field}')
        .values_list(field, flat=True)
        .first()
    )
    if not last:
        return seed
    try:
        return str(int(last.strip()) + 1)
    except ValueError:
        logger.warning("Último id %r no es numérico, usando %s", last, seed)
        return seed


def next_order_id():
    """Raises AllocationError on database failure."""
    try:
        next_id = _next_sequential_id(HospitalizationOrder.objects.all(), 'order_id', settings.ORDER_ID_SEED)
    except DatabaseError as exc:
        raise AllocationError(
            message='No se pudo obtener un ID de hospitalización',
            detail={'error': str(exc)},
        ) from exc
    logger.info("Siguiente ID de hospitalización: %s", next_id)
    return next_id


def _parse_date(value):
    """YYYY-MM-DD / DD/MM/YYYY / YYYYMMDD。"""
    if isinstance(value, date):
        return value
    value = str(value or '').strip()
    for fmt in ('%Y-%m-%d', '%d/%m/%Y', '%Y%m%d'):
        try:
            return datetime.strptime(value, fmt).date()
        except ValueError:
            continue
    raise ValidationError(
        message=f'Fecha inválida: {value!r}',
        code='INVALID_DATE',
        detail={'errors': {'date': 'El formato de fecha debe ser YYYY-MM-DD'}},
    )


def check_required_columns(record):
    """
    服务端兜底：RN 的 originRecordCode 强制为空且不要求；其他类型必填。
    """
    required = list(BASE_REQUIRED_FIELDS)
    if record.get('originType') == 'RN':
        record['originRecordCode'] = ''
    else:
        required.append('originRecordCode')

    missing = [f for f in required if record.get(f) in (None, '')]
    if missing:
        raise ValidationError(
            message=f"Faltan campos requeridos: {', '.join(missing)}",
            code='MISSING_FIELDS',
            detail={'missing': missing},
        )


def get_patient(patient_id):
    try:
        return Patient.objects.get(patient_id=patient_id)
    except Patient.DoesNotExist:
        raise BlockError(
            message='Paciente no encontrado',
            code='PATIENT_NOT_FOUND',
            detail={'patient_id': patient_id},
            http_status=404,
        )


def get_patient_info(patient_id):
    patient = get_patient(patient_id)
    return PatientInfo(
        patient_id=patient.patient_id,
        full_name=patient.full_name,
        birth_date=patient.birth_date.isoformat() if patient.birth_date else None,
        history_number=patient.history_number,
    )


def get_order(order_id):
    """Get order by ID. Raises BlockError if not found."""
    try:
        return HospitalizationOrder.objects.get(order_id=order_id)
    except HospitalizationOrder.DoesNotExist:
        raise BlockError(
            message='Hospitalización no encontrada',
            code='ORDER_NOT_FOUND',
            detail={'order_id': str(order_id)},
            http_status=404,
        )


def create_order(record):
    """
    写入一条已完成推导 / 截断的住院单记录。

    Raises:
        ValidationError: 缺少必填列或日期格式不对
        BlockError: 患者不存在
        PersistenceError: id 冲突或数据库出错（分配的 id 作废，调用方需重新分配）
    """
    record = dict(record)
    check_required_columns(record)
    admission_date = _parse_date(record['date'])
    patient = get_patient(record['patientId'])

    values = {model_field: record.get(key) or '' for key, model_field in _RECORD_FIELDS.items()}
    if not values['print_user']:
        values['print_user'] = values['user']

    try:
        with transaction.atomic():
            if HospitalizationOrder.objects.filter(order_id=record['orderId']).exists():
                raise PersistenceError(
                    message=f"La hospitalización {record['orderId']} ya existe",
                    detail={'order_id': record['orderId']},
                    http_status=409,
                )
            order = HospitalizationOrder.objects.create(
                order_id=record['orderId'],
                patient=patient,
                date=admission_date,
                **values,
            )
    except (IntegrityError, DatabaseError) as exc:
        logger.error("Error al crear hospitalización %s: %s", record['orderId'], exc)
        raise PersistenceError(
            message=f'Error al crear la hospitalización: {exc}',
            detail={'order_id': record['orderId']},
        ) from exc

    logger.info("Hospitalización %s creada para paciente %s", order.order_id, patient.patient_id)
    return order


def update_order(order_id, record):
    """只有可编辑类状态的订单才能改；id / 患者 / 状态不随更新变化。"""
    order = get_order(order_id)
    ensure_order_mutable(order.order_id, order.status)

    record = dict(record, orderId=order.order_id, patientId=order.patient_id, status=order.status)
    check_required_columns(record)
    order.date = _parse_date(record['date'])
    for key, model_field in _RECORD_FIELDS.items():
        if key in ('status', 'printUser'):
            continue
        setattr(order, model_field, record.get(key) or '')

    try:
        order.save()
    except DatabaseError as exc:
        raise PersistenceError(
            message=f'Error al actualizar la hospitalización: {exc}',
            detail={'order_id': order.order_id},
        ) from exc

    logger.info("Hospitalización %s actualizada", order.order_id)
    return order


def delete_order(order_id):
    """逻辑删除：status → '0'，不物理删除。"""
    order = get_order(order_id)
    ensure_order_mutable(order.order_id, order.status)
    order.status = DELETED_STATUS
    order.save(update_fields=['status', 'updated_at'])
    logger.info("Hospitalización %s anulada", order.order_id)
    return order


def patient_has_editable_order(patient_id):
    return HospitalizationOrder.objects.filter(patient_id=patient_id, status__in=EDITABLE_STATUSES).exists()


def secure_account(order_id, patient_id, insurance_code, user, name):
    """
    为住院单绑定结算账户。

    - 订单保险（trim 后）不在 SECURE_ACCOUNT_INSURANCE_CODES 中 → 不适用，直接返回 ok
    - 患者已有开放账户 → 复用最新的
    - 否则新开一个
    最后把账户号和操作人写回订单，全部在一个事务里。
    """
    if not patient_id or not user:
        raise ValidationError(
            message='Faltan datos requeridos. Se necesita al menos paciente y usuario.',
            code='MISSING_FIELDS',
        )

    order = get_order(order_id)
    ensure_order_mutable(order.order_id, order.status)
    order_insurance = (order.insurance_code or '').strip()
    if order_insurance not in settings.SECURE_ACCOUNT_INSURANCE_CODES:
        return {
            'ok': True,
            'message': 'No aplica. El tipo de cuenta no requiere liquidación.',
            'accountId': None,
        }

    with transaction.atomic():
        account = (
            PatientAccount.objects
            .select_for_update()
            .filter(patient_id=patient_id, status=OPEN_ACCOUNT_STATUS)
            .order_by('-opened_at')
            .first()
        )
        if account is None:
            account = PatientAccount.objects.create(
                account_id=_next_sequential_id(PatientAccount.objects.all(), 'account_id', '1'),
                patient_id=patient_id,
                insurance_code=(insurance_code or order_insurance)[:2],
                status=OPEN_ACCOUNT_STATUS,
                opened_by=str(user)[:20],
            )
            logger.info("Cuenta %s abierta para paciente %s (%s)", account.account_id, patient_id, name)

        order.account_id = account.account_id
        order.user = str(user)[:20]
        order.save(update_fields=['account_id', 'user', 'updated_at'])

    return {
        'ok': True,
        'message': 'Cuenta asegurada correctamente',
        'accountId': account.account_id,
    }


def list_patient_orders(patient_id, page=1, page_size=10, search=''):
    """分页列表，按 order_id 倒序；每行带可用操作。"""
    page = max(1, int(page or 1))
    page_size = max(1, min(int(page_size or 10), 100))

    qs = HospitalizationOrder.objects.filter(patient_id=patient_id)
    if search:
        qs = qs.filter(
            Q(order_id__icontains=search) |
            Q(ward_code__icontains=search) |
            Q(doctor_code__icontains=search) |
            Q(diagnosis_code__icontains=search)
        )

    total = qs.count()
    offset = (page - 1) * page_size
    orders = list(qs.annotate(id_len=Length('order_id')).order_by('-id_len', '-order_id')[offset:offset + page_size])
    names = resolve_names(orders)

    items = []
    for order in orders:
        item = serialize_order(order, names)
        item['actions'] = order_actions(order.status)
        item['readOnlyNotice'] = None if item['actions']['edit'] else READ_ONLY_NOTICE
        items.append(item)

    return {
        'items': items,
        'page': page,
        'pageSize': page_size,
        'total': total,
    }
