"""
工厂函数：根据 settings.ORDER_BACKEND 返回对应的后端实例。

新增后端只需：
  1. 在 services.py 新建 XxxOrderBackend(BaseOrderBackend) 类
  2. 在此处 _build_registry 加一行
  不需要修改 workflow.py 或任何 View。
"""

from django.conf import settings

from .base import BaseOrderBackend


def _build_registry() -> dict[str, type[BaseOrderBackend]]:
    from .services import HttpOrderBackend, LocalOrderBackend

    return {
        "local": LocalOrderBackend,
        "http":  HttpOrderBackend,
    }


def get_order_backend(token: str = '') -> BaseOrderBackend:
    """
    settings.ORDER_BACKEND 由环境变量 ORDER_BACKEND 控制（默认 "local"）。

    Raises:
        ValueError: ORDER_BACKEND 未知
    """
    name = getattr(settings, "ORDER_BACKEND", "local")
    registry = _build_registry()
    backend_cls = registry.get(name)

    if backend_cls is None:
        raise ValueError(
            f"Unknown ORDER_BACKEND: {name!r}. "
            f"Known backends: {list(registry.keys())}"
        )

    return backend_cls(token=token)
