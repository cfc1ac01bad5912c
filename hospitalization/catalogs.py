"""
Catalog Lookups：来源 / 科室 / 医生 / 保险 / 诊断的边输边搜。

- 所有查询走 ORM，用户输入只作为参数绑定，不拼进 SQL 文本。
- 空结果是正常结果，返回 []。
- 数据库出错时抛 CatalogLookupError，View 层把它转成 "无结果 + 提示信息"。
- 选中一个来源记录时用 apply_origin_selection() 一次性返回全部预填字段。
"""

import logging
import threading
from typing import Callable, Optional

from django.conf import settings
from django.db import DatabaseError
from django.db.models import Q

from .diagnosis import parse_diagnosis_text
from .exceptions import CatalogLookupError
from .models import Diagnosis, Doctor, Insurance, OriginRecord, Ward
from .types import CatalogEntry, OrderForm, OriginEntry, OriginType

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 20


def search_wards(query='', scope=None, limit=DEFAULT_LIMIT):
    qs = Ward.objects.filter(kind=scope or 'H')
    if query:
        qs = qs.filter(Q(code__icontains=query) | Q(name__icontains=query))
    return [CatalogEntry(code=w.code.strip(), label=w.name.strip()) for w in qs.order_by('name')[:limit]]


def search_doctors(query='', scope=None, limit=DEFAULT_LIMIT):
    """scope = 科室编码。"""
    qs = Doctor.objects.all()
    if scope:
        qs = qs.filter(ward__code=scope)
    if query:
        qs = qs.filter(Q(code__icontains=query) | Q(name__icontains=query))
    return [CatalogEntry(code=d.code.strip(), label=d.name.strip()) for d in qs.order_by('name')[:limit]]


def search_insurances(query='', scope=None, limit=DEFAULT_LIMIT):
    qs = Insurance.objects.all()
    if query:
        qs = qs.filter(Q(code__icontains=query) | Q(name__icontains=query))
    return [CatalogEntry(code=i.code.strip(), label=i.name.strip()) for i in qs.order_by('code')[:limit]]


def search_diagnoses(query='', scope=None, limit=DEFAULT_LIMIT):
    qs = Diagnosis.objects.all()
    if query:
        qs = qs.filter(Q(code__istartswith=query) | Q(description__icontains=query))
    return [CatalogEntry(code=d.code.strip(), label=d.description.strip()) for d in qs.order_by('code')[:limit]]


def _origin_entry(origin: OriginRecord) -> OriginEntry:
    diagnosis_code, diagnosis_description = parse_diagnosis_text(origin.diagnosis_text)
    ward_name = origin.ward.name.strip() if origin.ward else ''
    return OriginEntry(
        code=origin.code.strip(),
        label=ward_name,
        origin_type=origin.origin_type,
        ward_code=origin.ward.code.strip() if origin.ward else '',
        ward_name=ward_name,
        doctor_code=origin.doctor.code.strip() if origin.doctor else '',
        doctor_name=origin.doctor.name.strip() if origin.doctor else '',
        diagnosis_code=diagnosis_code,
        diagnosis_description=diagnosis_description,
        insurance_code=(origin.insurance_code or '').strip(),
    )


def search_origins(query='', scope=None, patient_id=None, limit=DEFAULT_LIMIT):
    """scope = origin type（EM / CE）。RN 没有来源记录。"""
    if OriginType.parse(scope) == OriginType.NEWBORN:
        return []

    qs = OriginRecord.objects.select_related('ward', 'doctor')
    if scope:
        qs = qs.filter(origin_type=scope)
    if patient_id:
        qs = qs.filter(patient_id=patient_id)
    if query:
        qs = qs.filter(Q(code__icontains=query) | Q(ward__name__icontains=query))
    return [_origin_entry(o) for o in qs.order_by('-attended_at')[:limit]]


_SEARCHERS = {
    'origin': search_origins,
    'ward': search_wards,
    'doctor': search_doctors,
    'insurance': search_insurances,
    'diagnosis': search_diagnoses,
}

CATALOG_KINDS = tuple(_SEARCHERS)


def search_catalog(kind, query='', scope=None, patient_id=None):
    """
    统一入口。

    Raises:
        CatalogLookupError: 未知目录或数据库出错
    """
    searcher = _SEARCHERS.get(kind)
    if searcher is None:
        raise CatalogLookupError(
            message=f"Catálogo desconocido: {kind!r}",
            detail={'known_catalogs': list(CATALOG_KINDS)},
            http_status=404,
        )

    kwargs = {'scope': scope or None}
    if kind == 'origin':
        kwargs['patient_id'] = patient_id or None

    try:
        return searcher((query or '').strip(), **kwargs)
    except DatabaseError as exc:
        logger.warning("Error al buscar en catálogo %s (%r): %s", kind, query, exc)
        raise CatalogLookupError(
            message='No se pudieron obtener resultados',
            detail={'catalog': kind},
        ) from exc


def find_insurance(code) -> Optional[CatalogEntry]:
    code = (code or '').strip()
    if not code:
        return None
    insurance = Insurance.objects.filter(code=code).first()
    if insurance is None:
        return None
    return CatalogEntry(code=insurance.code.strip(), label=insurance.name.strip())


def apply_origin_selection(form: OrderForm, origin: OriginEntry,
                           insurance_lookup: Optional[Callable] = None) -> OrderForm:
    """
    选中来源记录后的级联预填。

    医生 / 诊断 / 保险被来源记录的数据整体覆盖（来源里没有的字段被清空），
    一次性返回新的表单状态，不存在只更新了一部分字段的中间状态。
    """
    doctor = CatalogEntry(origin.doctor_code, origin.doctor_name) if origin.doctor_code else None
    diagnosis = (
        CatalogEntry(origin.diagnosis_code, origin.diagnosis_description)
        if origin.diagnosis_code else None
    )

    financing = None
    if origin.insurance_code:
        resolved = None
        if insurance_lookup is not None:
            try:
                resolved = insurance_lookup(origin.insurance_code)
            except (CatalogLookupError, DatabaseError) as exc:
                logger.warning("No se pudo resolver el seguro %s: %s", origin.insurance_code, exc)
        # 查不到名称时只用编码
        financing = resolved or CatalogEntry(origin.insurance_code, '')

    return form.with_updates(
        hospitalization_origin=CatalogEntry(origin.code, origin.label),
        authorizing_doctor=doctor,
        diagnosis=diagnosis,
        financing=financing,
    )


def apply_origin_type_change(form: OrderForm, origin_type: OriginType) -> OrderForm:
    """切换 procedencia 时清空所有依赖字段。"""
    return form.with_updates(
        origin_type=origin_type,
        hospitalization_origin=None,
        hospitalized_in=None,
        authorizing_doctor=None,
        diagnosis=None,
        financing=None,
    )


# ── 客户端搜索：防抖 + 只认最新请求 ──────────────────────────────────────────

class RequestSequence:
    """
    按发出顺序给请求编号，只有最新编号的响应才会被采纳。

    旧请求即使更晚返回也会被丢弃（last-write-wins by issue order）。
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._latest = 0

    def issue(self) -> int:
        with self._lock:
            self._latest += 1
            return self._latest

    def is_current(self, token: int) -> bool:
        with self._lock:
            return token == self._latest


class DebouncedSearch:
    """
    把连续的按键搜索合并成一次尾部请求。

    search_fn(query) -> list；on_results(query, results) 只会收到最新请求的结果。
    查询失败按无结果处理。
    """

    def __init__(self, search_fn, on_results, delay=None):
        self._search_fn = search_fn
        self._on_results = on_results
        self._delay = settings.SEARCH_DEBOUNCE_SECONDS if delay is None else delay
        self._sequence = RequestSequence()
        self._lock = threading.Lock()
        self._timer = None
        self._pending = None

    def request(self, query):
        token = self._sequence.issue()
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
            self._pending = (token, query)
            self._timer = threading.Timer(self._delay, self._fire, args=(token, query))
            self._timer.daemon = True
            self._timer.start()
        return token

    def flush(self):
        """立即执行还在等待的请求（测试和关闭时用）。"""
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
            pending, self._pending = self._pending, None
        if pending is not None:
            self._fire(*pending)

    def cancel(self):
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
            self._pending = None

    def _fire(self, token, query):
        with self._lock:
            if self._pending is not None and self._pending[0] == token:
                self._pending = None
        try:
            results = self._search_fn(query)
        except CatalogLookupError as exc:
            logger.warning("Búsqueda %r fallida: %s", query, exc.message)
            results = []
        if self._sequence.is_current(token):
            self._on_results(query, results)
        else:
            logger.debug("Descartando resultados obsoletos para %r", query)
