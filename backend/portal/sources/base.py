"""
BaseRecordAdapter — 所有远端记录 Adapter 的抽象基类。

每种新记录只需：
1. 继承 BaseRecordAdapter
2. 实现 transform_item()（必要时 override validate()）
3. 在 factory.py 的 _build_registry() 注册一行

lifecycle 核心无需任何改动。
"""

import json
import logging
from abc import ABC, abstractmethod
from datetime import datetime, timezone as dt_timezone
from typing import Any, Optional

from django.utils import timezone
from django.utils.dateparse import parse_datetime

from ..exceptions import RecordDecodeError

logger = logging.getLogger(__name__)


def unwrap_response(raw: Any) -> Any:
    """
    后端大多数响应是 ResponseEnvelope：{ success, data, message }。
    有 data 字段就取 data（data 为 null 时原样返回），否则原样返回。
    """
    if isinstance(raw, dict) and 'data' in raw:
        return raw['data'] if raw['data'] is not None else raw
    return raw


def parse_instant(value: Any) -> Optional[datetime]:
    """
    ISO 8601 字符串 / datetime → 带时区的 datetime。
    无时区的按 UTC 处理；空值或无法解析时返回 None。
    """
    if value is None or value == '':
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str):
        try:
            parsed = parse_datetime(value.strip())
        except ValueError:
            return None
        if parsed is None:
            return None
    else:
        return None

    if timezone.is_naive(parsed):
        parsed = timezone.make_aware(parsed, dt_timezone.utc)
    return parsed


def text(value: Any, default: str = '') -> str:
    if value is None:
        return default
    return str(value).strip() or default


class BaseRecordAdapter(ABC):
    """
    三步流水线：parse → transform → validate

    子类必须实现 transform_item()；
    validate() 提供通用 id 校验，子类可 super() 后追加检查。
    """

    # 子类声明自己对应的 kind（与 factory 注册键一致）
    kind: str = ""

    def __init__(self, raw: Any):
        self._raw = raw
        self._parsed: Any = None

    # ── 必须实现 ───────────────────────────────────────────────────────────

    @abstractmethod
    def transform_item(self, item: dict) -> Any:
        """单条原始 dict → 类型化记录。必须把原始数据存入 raw_payload。"""

    # ── 提供默认实现，子类可 override ──────────────────────────────────────

    def parse(self) -> Any:
        """bytes / str → JSON，再剥掉 ResponseEnvelope。"""
        raw = self._raw
        if isinstance(raw, (bytes, str)):
            try:
                raw = json.loads(raw)
            except ValueError as exc:
                raise RecordDecodeError(
                    message=f"{self.kind} payload is not valid JSON.",
                    detail={'error': str(exc)},
                )
        self._parsed = unwrap_response(raw)
        return self._parsed

    def validate(self, record) -> None:
        errors = []
        if not getattr(record, 'id', ''):
            errors.append({'field': 'id', 'message': 'Record id is required.'})
        self._raise_if(errors)

    def transform(self) -> Any:
        if not isinstance(self._parsed, dict):
            raise RecordDecodeError(
                message=f"{self.kind} payload must be an object.",
                detail={'received': type(self._parsed).__name__},
            )
        return self.transform_item(self._parsed)

    def _raise_if(self, errors: list) -> None:
        if errors:
            raise RecordDecodeError(
                message=f"Invalid {self.kind} record.",
                detail={'errors': errors},
            )

    # ── 对外统一入口 ───────────────────────────────────────────────────────

    def process(self) -> Any:
        """parse → transform → validate，返回校验通过的记录。"""
        self.parse()
        record = self.transform()
        self.validate(record)
        return record

    def process_many(self) -> list:
        """
        列表接口。非数组 → 空列表；单条解码失败 → 记日志并跳过，其余照常返回。
        """
        self.parse()
        if not isinstance(self._parsed, list):
            return []

        records = []
        for index, item in enumerate(self._parsed):
            try:
                if not isinstance(item, dict):
                    raise RecordDecodeError(
                        message=f"{self.kind} item must be an object.",
                        detail={'index': index},
                    )
                record = self.transform_item(item)
                self.validate(record)
            except RecordDecodeError as exc:
                logger.warning("[Decode] 跳过第 %d 条 %s 记录: %s %s",
                               index, self.kind, exc.message, exc.detail)
                continue
            records.append(record)
        return records
