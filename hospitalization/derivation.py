"""
提交前的字段推导：把已通过校验的 OrderForm 变成要写入的定长记录。

超长一律截断，不拒绝。
"""

from datetime import date
from typing import Optional

from .types import ActingUser, OrderForm, OriginType, PatientInfo

# 列宽
MAX_LENGTHS = {
    'orderId': 10,
    'patientId': 10,
    'patientName': 100,
    'time': 10,
    'originRecordCode': 10,
    'insuranceCode': 2,
    'doctorCode': 3,
    'diagnosisCode': 10,
    'age': 10,
    'companionName': 50,
    'companionPhone': 15,
    'companionAddress': 100,
    'user': 20,
}
WARD_CODE_WIDTH = 6
EMPTY_AGE = '000a00m00d'


def truncate(value, max_length: int) -> str:
    return str(value or '').strip()[:max_length]


def pad_ward_code(code) -> str:
    """科室编码固定 6 位：不足右侧补空格，超出截断。"""
    return str(code or '').ljust(WARD_CODE_WIDTH)[:WARD_CODE_WIDTH]


def format_time_12h(value: str) -> str:
    """'HH:MM' → 'hh:mm AM/PM'。"""
    hours, minutes = value.split(':')
    hour = int(hours)
    suffix = 'PM' if hour >= 12 else 'AM'
    hour12 = hour % 12 or 12
    return f"{hour12:02d}:{minutes} {suffix}"


def compute_age(birth_date: Optional[date], today: date) -> str:
    """出生日期 → 'YYYaMMmDDd'。"""
    if birth_date is None:
        return EMPTY_AGE

    years = today.year - birth_date.year
    months = today.month - birth_date.month
    days = today.day - birth_date.day

    if days < 0:
        months -= 1
        # 上个月的满月日；出生日超过该月天数时取月末
        last_of_prev_month = today.replace(day=1) - date.resolution
        anniversary = last_of_prev_month.replace(day=min(birth_date.day, last_of_prev_month.day))
        days = (today - anniversary).days

    if months < 0:
        years -= 1
        months += 12

    if years < 0:
        return EMPTY_AGE

    return f"{years:03d}a{months:02d}m{days:02d}d"


def _code(entry) -> str:
    return entry.code if entry is not None else ''


def derive_order_record(form: OrderForm, *, order_id: str, patient: PatientInfo,
                        user: ActingUser, status: str, today: date) -> dict:
    """
    返回可直接 POST /order 的记录。

    Newborn 强制 origin_type='RN' 且 originRecordCode 为空，
    不管之前是否选过来源记录。
    """
    if form.origin_type == OriginType.NEWBORN:
        origin_type = OriginType.NEWBORN.value
        origin_record_code = ''
    else:
        origin_type = form.origin_type.value
        origin_record_code = truncate(_code(form.hospitalization_origin), MAX_LENGTHS['originRecordCode'])

    birth_date = date.fromisoformat(patient.birth_date) if patient.birth_date else None

    return {
        'orderId': truncate(order_id, MAX_LENGTHS['orderId']),
        'patientId': truncate(patient.patient_id, MAX_LENGTHS['patientId']),
        'patientName': truncate(patient.full_name, MAX_LENGTHS['patientName']),
        'wardCode': pad_ward_code(_code(form.hospitalized_in)),
        'time': truncate(format_time_12h(form.time), MAX_LENGTHS['time']),
        'date': form.date,
        'originType': origin_type,
        'originRecordCode': origin_record_code,
        'insuranceCode': truncate(_code(form.financing), MAX_LENGTHS['insuranceCode']),
        'doctorCode': truncate(_code(form.authorizing_doctor), MAX_LENGTHS['doctorCode']).strip(),
        'status': status,
        'user': truncate(user.short_name, MAX_LENGTHS['user']),
        'printUser': truncate(user.short_name, MAX_LENGTHS['user']),
        'diagnosisCode': truncate(_code(form.diagnosis), MAX_LENGTHS['diagnosisCode']),
        'age': truncate(compute_age(birth_date, today), MAX_LENGTHS['age']),
        'companionName': truncate(form.companion_name, MAX_LENGTHS['companionName']),
        'companionPhone': truncate(form.companion_phone, MAX_LENGTHS['companionPhone']),
        'companionAddress': truncate(form.companion_address, MAX_LENGTHS['companionAddress']),
    }
