"""
Order List / View：按状态决定每张住院单可用的操作，以及分页。
"""

from dataclasses import dataclass

from .exceptions import OrderLockedError

# 可编辑类状态：1 = pendiente, 2 = abierta
EDITABLE_STATUSES = frozenset({'1', '2'})

READ_ONLY_NOTICE = 'Esta hospitalización no puede ser modificada debido a su estado actual.'


def order_actions(status) -> dict:
    editable = (status or '').strip() in EDITABLE_STATUSES
    return {
        'edit': editable,
        'delete': editable,
        'print': True,
    }


def ensure_order_mutable(order_id, status):
    """直接访问编辑 / 删除时的兜底检查。"""
    if (status or '').strip() not in EDITABLE_STATUSES:
        raise OrderLockedError(
            message=READ_ONLY_NOTICE,
            detail={'order_id': order_id, 'status': status},
        )


@dataclass
class ListState:
    """
    客户端列表状态。过滤文本一变，页码回到 1。
    """

    page: int = 1
    page_size: int = 10
    filter_text: str = ''
    total: int = 0

    @property
    def total_pages(self) -> int:
        if self.total <= 0:
            return 1
        return (self.total + self.page_size - 1) // self.page_size

    def set_filter(self, text):
        text = text or ''
        if text != self.filter_text:
            self.filter_text = text
            self.page = 1

    def set_page(self, page):
        self.page = min(max(1, int(page)), self.total_pages)

    def update_total(self, total):
        self.total = max(0, int(total))
        if self.page > self.total_pages:
            self.page = self.total_pages

    def params(self) -> dict:
        return {'page': self.page, 'pageSize': self.page_size, 'search': self.filter_text}
