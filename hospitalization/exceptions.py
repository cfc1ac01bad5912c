"""
统一异常体系。

所有业务异常继承 BaseAppException，包含：
- type:        错误类型标识（validation_error / block / warning / error）
- code:        业务错误码（DIAGNOSIS_INVALID / FUA_NOT_FOUND / ORDER_LOCKED / ...）
- message:     人类可读的描述
- detail:      可选的附加信息（dict / list / None）
- http_status: HTTP 状态码

Workflow / service 层只需 raise，exception_handler 统一捕获并格式化响应。
"""


class BaseAppException(Exception):
    """所有业务异常的基类。"""

    type = 'error'
    code = 'UNKNOWN_ERROR'
    http_status = 500

    def __init__(self, message, code=None, detail=None, http_status=None):
        self.message = message
        if code is not None:
            self.code = code
        if http_status is not None:
            self.http_status = http_status
        self.detail = detail
        super().__init__(message)


class ValidationError(BaseAppException):
    """输入验证失败。detail['errors'] 是字段 → 消息的 map，400。"""

    type = 'validation_error'
    code = 'VALIDATION_ERROR'
    http_status = 400


class BlockError(BaseAppException):
    """业务规则阻止操作。409。"""

    type = 'block'
    code = 'BUSINESS_BLOCK'
    http_status = 409


class WarningError(BaseAppException):
    """
    业务警告，需要用户确认后继续。

    与其他异常不同，WarningError 不代表"失败"，而是"暂停"。
    前端收到后展示确认对话框，用户确认后带 confirm=true 重新提交当前表单。
    HTTP 409 — 表示当前状态下有冲突，需要客户端介入。
    """

    type = 'warning'
    code = 'CONFIRMATION_REQUIRED'
    http_status = 409


# ── 住院单流程专用 ─────────────────────────────────────────────────────────

class CatalogLookupError(BlockError):
    """目录查询失败。View 层捕获后返回空列表 + 提示，不阻塞表单。"""

    code = 'CATALOG_LOOKUP_FAILED'


class VerificationError(BlockError):
    """诊断复核失败（明确无效，或复核服务本身出错）。"""

    code = 'DIAGNOSIS_INVALID'


class AuthorizationGapError(WarningError):
    """SIS 保险没有有效 FUA。用户勾选 bypassFua 后可继续。"""

    code = 'FUA_NOT_FOUND'


class OrderLockedError(BlockError):
    """订单状态不允许修改。"""

    code = 'ORDER_LOCKED'


class AllocationError(BaseAppException):
    """订单号分配失败，本次提交作废。"""

    code = 'ORDER_ID_ALLOCATION_FAILED'
    http_status = 502


class PatientLookupError(BaseAppException):
    """患者资料服务不可用或返回无法解析的数据。"""

    code = 'PATIENT_LOOKUP_FAILED'
    http_status = 502


class PersistenceError(BaseAppException):
    """订单写入失败。message 尽量保留后端原始错误信息。"""

    code = 'ORDER_PERSISTENCE_FAILED'
    http_status = 502


class SideEffectError(BaseAppException):
    """附带操作（asegurar cuenta）失败。只记日志，不回滚订单。"""

    code = 'SIDE_EFFECT_FAILED'
