"""
工厂函数：根据记录类型返回对应 Adapter 实例。

新增记录类型只需：
  1. 在 adapters.py 新建 Adapter 类
  2. 在此处 _build_registry() 加一行
  不需要修改任何业务代码。
"""

from typing import Any

from ..exceptions import ValidationError
from .base import BaseRecordAdapter


# ── 注册表 ──────────────────────────────────────────────────────────────────
# key: 记录类型字符串
# value: Adapter 类（未实例化）
def _build_registry() -> dict[str, type[BaseRecordAdapter]]:
    # 延迟导入，避免循环依赖
    from .adapters import (
        AppointmentAdapter,
        InteractionResultAdapter,
        MedicalHistoryAdapter,
        ReviewAdapter,
    )

    return {
        "appointment":        AppointmentAdapter,
        "medical_history":    MedicalHistoryAdapter,
        "review":             ReviewAdapter,
        "interaction_result": InteractionResultAdapter,
    }


def get_adapter(kind: str, raw: Any) -> BaseRecordAdapter:
    """
    根据 kind 返回已实例化的 Adapter。

    Args:
        kind: 记录类型，例如 "appointment"、"medical_history"
        raw:  原始响应体（bytes / str / 已解析的 dict / list）

    Raises:
        ValidationError: 未知的 kind
    """
    registry = _build_registry()
    adapter_cls = registry.get(kind)

    if adapter_cls is None:
        raise ValidationError(
            message=f"Unknown record kind: {kind!r}.",
            code="UNKNOWN_RECORD_KIND",
            detail={"known_kinds": list(registry.keys())},
        )

    return adapter_cls(raw=raw)
