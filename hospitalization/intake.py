"""
请求体 → OrderForm / ActingUser。

前端下拉框值可以是结构化的 {"code": ..., "label": ...}，
也兼容旧的 "<code> [<label>]" / "<code> - <label>" 字符串。
电话号码在这里（输入时）就去掉非数字字符，而不是等到校验时才拒绝。
"""

import re
from typing import Any, Optional

from .types import ActingUser, CatalogEntry, OrderForm, OriginType

_NON_DIGITS = re.compile(r'\D')
_BRACKETED = re.compile(r'^(?P<code>\S+)\s*\[(?P<label>.*)\]$')


def digits_only(value) -> str:
    """去掉所有非数字字符。对已经是纯数字的字符串是 no-op。"""
    return _NON_DIGITS.sub('', str(value or ''))


def parse_entry(value: Any) -> Optional[CatalogEntry]:
    if value is None or value == '':
        return None
    if isinstance(value, CatalogEntry):
        return value
    if isinstance(value, dict):
        code = str(value.get('code') or '').strip()
        if not code:
            return None
        return CatalogEntry(code=code, label=str(value.get('label') or '').strip())

    text = str(value).strip()
    if not text:
        return None
    match = _BRACKETED.match(text)
    if match:
        return CatalogEntry(code=match.group('code'), label=match.group('label').strip())
    if ' - ' in text:
        code, label = text.split(' - ', 1)
        return CatalogEntry(code=code.strip(), label=label.strip())
    code, _, label = text.partition(' ')
    return CatalogEntry(code=code, label=label.strip())


def parse_order_form(data: dict) -> OrderForm:
    data = data or {}
    return OrderForm(
        origin_type=OriginType.parse(data.get('originType'), default=OriginType.EMERGENCY),
        date=str(data.get('date') or '').strip(),
        time=str(data.get('time') or '').strip(),
        hospitalization_origin=parse_entry(data.get('hospitalizationOrigin')),
        hospitalized_in=parse_entry(data.get('hospitalizedIn')),
        authorizing_doctor=parse_entry(data.get('authorizingDoctor')),
        financing=parse_entry(data.get('financing')),
        diagnosis=parse_entry(data.get('diagnosis')),
        companion_name=str(data.get('companionName') or '').strip(),
        companion_phone=digits_only(data.get('companionPhone')),
        companion_address=str(data.get('companionAddress') or '').strip(),
    )


def acting_user_from_request(request) -> ActingUser:
    auth = request.headers.get('Authorization', '')
    token = auth[len('Bearer '):] if auth.startswith('Bearer ') else ''
    return ActingUser(
        user_id=request.headers.get('X-User-Id', '').strip(),
        display_name=request.headers.get('X-User-Name', '').strip(),
        token=token,
    )
