"""
Response serializers — ORM 对象 → JSON-able dict。

只负责「输出格式化」，不做任何解析或校验。
输入解析在 intake.py，校验在 validation.py。
"""

from .models import Diagnosis, Doctor, Insurance, OriginRecord, Ward


def _names(model, key, label, codes):
    codes = {c.strip() for c in codes if c and c.strip()}
    if not codes:
        return {}
    rows = model.objects.filter(**{f'{key}__in': codes}).values_list(key, label)
    return {code.strip(): (name or '').strip() for code, name in rows}


def resolve_names(orders):
    """一次性查出一批订单引用的所有目录名称，避免逐行查询。"""
    orders = list(orders)
    origin_rows = (
        OriginRecord.objects
        .filter(code__in={o.origin_record_code for o in orders if o.origin_record_code})
        .select_related('ward')
    )
    return {
        'ward': _names(Ward, 'code', 'name', [o.ward_code for o in orders]),
        'doctor': _names(Doctor, 'code', 'name', [o.doctor_code for o in orders]),
        'insurance': _names(Insurance, 'code', 'name', [o.insurance_code for o in orders]),
        'diagnosis': _names(Diagnosis, 'code', 'description', [o.diagnosis_code for o in orders]),
        'origin': {
            r.code.strip(): (r.ward.name.strip() if r.ward else '')
            for r in origin_rows
        },
    }


def serialize_order(order, names=None):
    """GET /order/{id} 的完整快照，带反规范化的名称。"""
    if names is None:
        names = resolve_names([order])

    ward_code = order.ward_code.strip()
    return {
        'orderId': order.order_id.strip(),
        'patientId': order.patient_id,
        'patientName': order.patient_name,
        'status': order.status,
        'date': order.date.isoformat(),
        'time': order.time,
        'originType': order.origin_type,
        'originRecordCode': order.origin_record_code,
        'originRecordName': names['origin'].get(order.origin_record_code.strip(), ''),
        'wardCode': ward_code,
        'wardName': names['ward'].get(ward_code, ''),
        'doctorCode': order.doctor_code,
        'doctorName': names['doctor'].get(order.doctor_code.strip(), ''),
        'insuranceCode': order.insurance_code,
        'insuranceName': names['insurance'].get(order.insurance_code.strip(), ''),
        'diagnosisCode': order.diagnosis_code,
        'diagnosisName': names['diagnosis'].get(order.diagnosis_code.strip(), ''),
        'age': order.age,
        'companionName': order.companion_name,
        'companionPhone': order.companion_phone,
        'companionAddress': order.companion_address,
        'accountId': order.account_id,
        'user': order.user,
        'createdAt': order.created_at.isoformat() if order.created_at else None,
    }


def serialize_snapshot(snapshot):
    """Order Data Loader 输出。"""
    return {
        'orderId': snapshot.order_id,
        'patientId': snapshot.patient_id,
        'status': snapshot.status,
        'isEditable': snapshot.is_editable,
        'isLocked': snapshot.is_locked,
        'notice': snapshot.notice,
        'fields': {
            name: (entry.to_dict() if entry else None)
            for name, entry in snapshot.fields.items()
        },
        'display': snapshot.display,
    }


def serialize_submission(result):
    """POST /order/submit 成功响应。"""
    return {
        'orderId': result.order_id,
        'patientId': result.patient_id,
        'message': f'Se ha creado la hospitalización con ID: {result.order_id}',
        'order': result.record,
        'form': result.form.to_dict(),
        'warnings': result.warnings,
        'accountSecured': result.account_secured,
        'documents': result.document_urls,
        'redirect': result.redirect,
    }
