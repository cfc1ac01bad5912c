"""
Order Data Loader。

可编辑性只由状态码推导：'2' 可编辑；'3' 锁定并需要提示；其他任何值都按只读处理。
"""

from .listing import READ_ONLY_NOTICE
from .types import CatalogEntry, OrderSnapshot

OPEN_STATUS = '2'
LOCKED_STATUS = '3'


def derive_editability(status):
    """返回 (is_editable, is_locked)。"""
    if (status or '').strip() == OPEN_STATUS:
        return True, False
    return False, True


def _entry(code, name):
    code = (code or '').strip()
    if not code:
        return None
    return CatalogEntry(code=code, label=(name or '').strip())


def build_snapshot(raw) -> OrderSnapshot:
    status = (raw.get('status') or '').strip()
    is_editable, is_locked = derive_editability(status)

    return OrderSnapshot(
        order_id=(raw.get('orderId') or '').strip(),
        patient_id=(raw.get('patientId') or '').strip(),
        status=status,
        is_editable=is_editable,
        is_locked=is_locked,
        notice=READ_ONLY_NOTICE if is_locked else None,
        fields={
            'hospitalizationOrigin': _entry(raw.get('originRecordCode'), raw.get('originRecordName')),
            'hospitalizedIn': _entry(raw.get('wardCode'), raw.get('wardName')),
            'authorizingDoctor': _entry(raw.get('doctorCode'), raw.get('doctorName')),
            'financing': _entry(raw.get('insuranceCode'), raw.get('insuranceName')),
            'diagnosis': _entry(raw.get('diagnosisCode'), raw.get('diagnosisName')),
        },
        raw=raw,
    )


def load_order(order_id, backend=None) -> OrderSnapshot:
    if backend is None:
        from .backends.factory import get_order_backend
        backend = get_order_backend()
    return build_snapshot(backend.get_order(order_id))
