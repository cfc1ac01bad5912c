"""
Form Validation Rules。

纯函数、同步、无 I/O、不抛异常：只返回字段 → 消息的 map。
"""

import re
from datetime import date

from .types import OrderForm, OriginType, ValidationResult

DATE_RE = re.compile(r'^\d{4}-\d{2}-\d{2}$')
TIME_RE = re.compile(r'^([01]\d|2[0-3]):[0-5]\d$')

# 与 procedencia 无关，始终必填
ALWAYS_REQUIRED = [
    ('companionName', 'companion_name', 'Nombre del acompañante'),
    ('companionPhone', 'companion_phone', 'Teléfono del acompañante'),
    ('companionAddress', 'companion_address', 'Dirección del acompañante'),
    ('date', 'date', 'Fecha'),
    ('time', 'time', 'Hora'),
]

CLINICAL_REQUIRED = [
    ('hospitalizedIn', 'hospitalized_in', 'Hospitalizado en'),
    ('authorizingDoctor', 'authorizing_doctor', 'Médico Autorizante'),
    ('financing', 'financing', 'Financiamiento'),
    ('diagnosis', 'diagnosis', 'Diagnóstico'),
]

ORIGIN_REQUIRED = ('hospitalizationOrigin', 'hospitalization_origin', 'Origen de Hospitalización')


def required_fields(origin_type: OriginType) -> list[tuple[str, str, str]]:
    fields = ALWAYS_REQUIRED + CLINICAL_REQUIRED
    if origin_type != OriginType.NEWBORN:
        fields = fields + [ORIGIN_REQUIRED]
    return fields


def _is_blank(value) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    return not (getattr(value, 'code', '') or '').strip()


def _is_calendar_date(value: str) -> bool:
    try:
        date.fromisoformat(value)
    except ValueError:
        return False
    return True


def validate_order_form(form: OrderForm) -> ValidationResult:
    errors = {}

    for key, attr, label in required_fields(form.origin_type):
        if _is_blank(getattr(form, attr)):
            errors[key] = f"El campo {label} es obligatorio"

    if form.date and not DATE_RE.match(form.date):
        errors['date'] = 'El formato de fecha debe ser YYYY-MM-DD'
    elif form.date and not _is_calendar_date(form.date):
        errors['date'] = 'La fecha no es válida'

    if form.time and not TIME_RE.match(form.time):
        errors['time'] = 'El formato de hora debe ser HH:MM'

    return ValidationResult(errors=errors)
