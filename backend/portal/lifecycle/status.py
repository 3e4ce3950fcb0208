"""
StatusClassifier — 远端状态码 → 本地语义类 + 展示元数据。

远端状态是一个封闭枚举（见 AppointmentStatus）。classify() 对枚举内的值是全函数，
对枚举外的值 fail fast 抛 MappingError，而不是在展示逻辑里默默兜底。

StatusClassifier.classify_or_unknown() 是唯一拦截未知状态的地方：
每个未知值只记一次日志，之后一律按 UNKNOWN 类渲染。
"""

import logging
from dataclasses import dataclass
from enum import Enum

from ..exceptions import MappingError

logger = logging.getLogger(__name__)


class AppointmentStatus(str, Enum):
    PENDING_PAYMENT = 'PENDING_PAYMENT'
    CONFIRMED = 'CONFIRMED'
    IN_PROGRESS = 'IN_PROGRESS'
    COMPLETED = 'COMPLETED'
    CANCELLED = 'CANCELLED'
    REJECTED = 'REJECTED'
    NO_SHOW = 'NO_SHOW'


class SemanticClass(str, Enum):
    AWAITING = 'awaiting'
    CONFIRMED = 'confirmed'
    IN_SESSION = 'in_session'
    COMPLETED = 'completed'
    CANCELLED = 'cancelled'
    MISSED = 'missed'
    UNKNOWN = 'unknown'


# 提醒（48h 内）只对这些类生效
CONFIRMED_LIKE = frozenset({SemanticClass.CONFIRMED, SemanticClass.IN_SESSION})


@dataclass(frozen=True)
class StatusDisplay:
    status: str
    semantic_class: SemanticClass
    label: str
    color_token: str


# 旧版 feed 用的别名
_ALIASES = {
    'PENDING': AppointmentStatus.PENDING_PAYMENT,
}

_CLASSES = {
    AppointmentStatus.PENDING_PAYMENT: (SemanticClass.AWAITING,   'amber'),
    AppointmentStatus.CONFIRMED:       (SemanticClass.CONFIRMED,  'green'),
    AppointmentStatus.IN_PROGRESS:     (SemanticClass.IN_SESSION, 'blue'),
    AppointmentStatus.COMPLETED:       (SemanticClass.COMPLETED,  'teal'),
    AppointmentStatus.CANCELLED:       (SemanticClass.CANCELLED,  'red'),
    AppointmentStatus.REJECTED:        (SemanticClass.CANCELLED,  'red'),
    AppointmentStatus.NO_SHOW:         (SemanticClass.MISSED,     'slate'),
}


def status_label(raw_status: str) -> str:
    """PENDING_PAYMENT → "Pending Payment"。"""
    return ' '.join(part.capitalize() for part in raw_status.split('_') if part)


def classify(raw_status) -> StatusDisplay:
    """
    纯函数。枚举内 → StatusDisplay；枚举外 → MappingError。

    Raises:
        MappingError: 未登记的状态码
    """
    key = raw_status.strip().upper() if isinstance(raw_status, str) else raw_status
    status = _ALIASES.get(key)
    if status is None:
        try:
            status = AppointmentStatus(key)
        except ValueError:
            raise MappingError(
                message=f"Unrecognized appointment status: {raw_status!r}.",
                detail={'status': raw_status, 'known_statuses': [s.value for s in AppointmentStatus]},
            )

    semantic_class, color = _CLASSES[status]
    return StatusDisplay(
        status=status.value,
        semantic_class=semantic_class,
        label=status_label(status.value),
        color_token=color,
    )


def status_catalog() -> list[StatusDisplay]:
    return [classify(status.value) for status in AppointmentStatus]


class StatusClassifier:
    """
    带 "只报一次" 记忆的分类器。

    _reported 跟随 classifier 实例的生命周期（一个 PortalSession 一个），
    不是进程级全局变量。
    """

    def __init__(self):
        self._reported: set = set()

    def classify(self, raw_status) -> StatusDisplay:
        return classify(raw_status)

    def classify_or_unknown(self, raw_status) -> StatusDisplay:
        try:
            return classify(raw_status)
        except MappingError as exc:
            if raw_status not in self._reported:
                self._reported.add(raw_status)
                logger.warning("[Classifier] %s (code=%s)", exc.message, exc.code)
            label = status_label(raw_status) if isinstance(raw_status, str) else 'Unknown'
            return StatusDisplay(
                status=str(raw_status),
                semantic_class=SemanticClass.UNKNOWN,
                label=label or 'Unknown',
                color_token='slate',
            )

    @property
    def reported(self) -> frozenset:
        return frozenset(self._reported)
