"""
住院单流程的标准内部结构。

View 层把请求体解析成这些 dataclass，workflow / loader / catalogs 只消费这些结构，
永远不碰原始 JSON。下拉框的值统一用 CatalogEntry(code, label) 表示，
"<code> [<label>]" 只是展示格式。
"""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Optional


class OriginType(str, Enum):
    EMERGENCY = 'EM'
    OUTPATIENT_CONSULT = 'CE'
    NEWBORN = 'RN'

    @classmethod
    def parse(cls, value, default=None):
        if isinstance(value, cls):
            return value
        try:
            return cls((value or '').strip().upper())
        except ValueError:
            return default


@dataclass(frozen=True)
class CatalogEntry:
    code: str
    label: str = ''

    @property
    def display(self) -> str:
        """Combo-box 展示格式："<code> [<label>]"。"""
        return f"{self.code} [{self.label}]"

    @property
    def canonical(self) -> str:
        """"code - description"，诊断复核后的规范写法。"""
        return f"{self.code} - {self.label}" if self.label else self.code

    def to_dict(self) -> dict:
        return {'code': self.code, 'label': self.label}


@dataclass(frozen=True)
class OriginEntry(CatalogEntry):
    """来源目录条目，带医生 / 诊断 / 保险的反规范化数据，用于级联预填。"""

    origin_type: str = ''
    ward_code: str = ''
    ward_name: str = ''
    doctor_code: str = ''
    doctor_name: str = ''
    diagnosis_code: str = ''
    diagnosis_description: str = ''
    insurance_code: str = ''

    def to_dict(self) -> dict:
        return {
            'code': self.code,
            'label': self.label,
            'originType': self.origin_type,
            'wardCode': self.ward_code,
            'wardName': self.ward_name,
            'doctorCode': self.doctor_code,
            'doctorName': self.doctor_name,
            'diagnosisCode': self.diagnosis_code,
            'diagnosisDescription': self.diagnosis_description,
            'insuranceCode': self.insurance_code,
        }


@dataclass(frozen=True)
class OrderForm:
    """
    住院单表单状态。

    companion_phone 在进入表单时已经去掉非数字字符（见 intake.digits_only）。
    """

    origin_type: OriginType = OriginType.EMERGENCY
    date: str = ''
    time: str = ''
    hospitalization_origin: Optional[CatalogEntry] = None
    hospitalized_in: Optional[CatalogEntry] = None
    authorizing_doctor: Optional[CatalogEntry] = None
    financing: Optional[CatalogEntry] = None
    diagnosis: Optional[CatalogEntry] = None
    companion_name: str = ''
    companion_phone: str = ''
    companion_address: str = ''

    def with_updates(self, **changes) -> 'OrderForm':
        return replace(self, **changes)

    def to_dict(self) -> dict:
        def entry(value):
            return value.to_dict() if value is not None else None

        return {
            'originType': self.origin_type.value,
            'date': self.date,
            'time': self.time,
            'hospitalizationOrigin': entry(self.hospitalization_origin),
            'hospitalizedIn': entry(self.hospitalized_in),
            'authorizingDoctor': entry(self.authorizing_doctor),
            'financing': entry(self.financing),
            'diagnosis': entry(self.diagnosis),
            'companionName': self.companion_name,
            'companionPhone': self.companion_phone,
            'companionAddress': self.companion_address,
        }


@dataclass(frozen=True)
class ActingUser:
    """
    当前操作人。由 View 层从请求头构造后显式传入 workflow，
    workflow 内部不读取任何全局状态。
    """

    user_id: str = ''
    display_name: str = ''
    token: str = ''

    @property
    def short_name(self) -> str:
        """写入订单 user 字段：显示名的第一个词，缺省 SUPERVISOR。"""
        first = self.display_name.split()[0] if self.display_name.strip() else ''
        return first or 'SUPERVISOR'


@dataclass
class ValidationResult:
    errors: dict[str, str] = field(default_factory=dict)

    @property
    def is_valid(self) -> bool:
        return not self.errors


@dataclass
class FuaCheckResult:
    has_fua: bool
    fua_id: Optional[str] = None
    message: str = ''

    def to_dict(self) -> dict:
        return {'hasFua': self.has_fua, 'fuaId': self.fua_id, 'message': self.message}


@dataclass(frozen=True)
class DiagnosisMatch:
    code: str
    description: str = ''


@dataclass
class DiagnosisVerification:
    success: bool
    matches: list[DiagnosisMatch] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            'success': self.success,
            'matches': [{'code': m.code, 'description': m.description} for m in self.matches],
        }


@dataclass
class PatientInfo:
    patient_id: str
    full_name: str = ''
    birth_date: Optional[str] = None  # ISO 8601: "YYYY-MM-DD"
    history_number: str = ''


@dataclass
class OrderSnapshot:
    """Order Data Loader 的输出：原始记录 + 由状态码推导出的可编辑性。"""

    order_id: str
    patient_id: str
    status: str
    is_editable: bool
    is_locked: bool
    notice: Optional[str] = None
    fields: dict[str, Optional[CatalogEntry]] = field(default_factory=dict)
    raw: dict[str, Any] = field(default_factory=dict, repr=False)

    @property
    def display(self) -> dict[str, str]:
        return {name: (entry.display if entry else '') for name, entry in self.fields.items()}


@dataclass
class SubmissionResult:
    order_id: str
    patient_id: str
    record: dict[str, Any]
    form: OrderForm
    warnings: list[dict] = field(default_factory=list)
    account_secured: Optional[bool] = None
    document_urls: list[str] = field(default_factory=list)
    redirect: str = ''
