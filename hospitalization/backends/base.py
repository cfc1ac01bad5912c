"""
BaseOrderBackend — 住院单流程依赖的所有外部协作方的抽象基类。

每个新后端只需：
1. 继承 BaseOrderBackend
2. 实现下面的方法
3. 在 factory.py 的 _build_registry 注册一行

workflow.py 完全不知道背后是本地 ORM 还是远程 HTTP 服务。
"""

from abc import ABC, abstractmethod
from typing import Optional

from ..types import CatalogEntry, DiagnosisVerification, FuaCheckResult, PatientInfo


class BaseOrderBackend(ABC):

    def __init__(self, token: str = ''):
        # 当前操作人的 bearer token，远程调用时透传
        self.token = token

    @abstractmethod
    def search_catalog(self, kind: str, query: str = '', scope: Optional[str] = None,
                       patient_id: Optional[str] = None) -> list[CatalogEntry]:
        """
        Raises:
            CatalogLookupError: 查询失败（调用方按无结果处理）
        """

    @abstractmethod
    def find_insurance(self, code: str) -> Optional[CatalogEntry]:
        """按编码取保险名称，找不到返回 None。"""

    @abstractmethod
    def check_fua(self, patient_id: str) -> FuaCheckResult:
        """出错时直接抛出，由 workflow 按 "没有 FUA" 处理。"""

    @abstractmethod
    def verify_diagnosis(self, code: str) -> DiagnosisVerification:
        """出错时直接抛出，由 workflow 按 "诊断无效" 处理。"""

    @abstractmethod
    def get_patient(self, patient_id: str) -> PatientInfo:
        """
        Raises:
            BlockError: 患者不存在
        """

    @abstractmethod
    def get_order(self, order_id: str) -> dict:
        """返回带反规范化名称的订单快照（serializers.serialize_order 的格式）。"""

    @abstractmethod
    def allocate_order_id(self) -> str:
        """
        Raises:
            AllocationError
        """

    @abstractmethod
    def create_order(self, record: dict) -> dict:
        """
        Raises:
            PersistenceError: message 是后端返回的原始错误信息
        """

    @abstractmethod
    def secure_account(self, order_id: str, patient_id: str, insurance_code: str,
                       user: str, name: str) -> dict:
        """返回 {ok, message, accountId}。失败直接抛出。"""
