"""
NotificationProjector — 多路记录流 → 一条按时间倒序的通知 feed。

project() 是纯函数：不发请求、不读时钟（"现在" 由调用方传入）、不改输入。
相同输入永远得到相同、同序的输出。NotificationItem 没有独立身份，
id 由来源记录 id + 语义后缀确定性地拼出来，所以每次刷新重算都是幂等的。

患者视角：
  1. 每条预约按语义类出 0~1 条（待确认 / 已确认 / 已完成 / 已取消）
  2. 48 小时内即将开始的 "已确认类" 预约额外出一条提醒（叠加，不替换第 1 步）
  3. 最近 5 条病历各出一条更新通知
  4. 未验证邮箱 → 一条固定提醒（没有来源记录 id）
  5. 合并后按 timestamp 倒序；同一时间戳保持输入顺序（稳定排序）

医生视角只有第 1 步，分类规则不同（见 _doctor_items）。
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Iterable, Optional

from ..exceptions import ProjectionInputError
from .status import CONFIRMED_LIKE, SemanticClass, StatusClassifier

logger = logging.getLogger(__name__)

REMINDER_WINDOW = timedelta(hours=48)
HISTORY_LIMIT = 5

PATIENT = 'patient'
DOCTOR = 'doctor'

SUCCESS = 'success'
INFO = 'info'
WARNING = 'warning'
DANGER = 'danger'

PATIENT_APPOINTMENTS_HREF = '/patient/appointments'
PATIENT_BOOKING_HREF = '/patient/doctors'
PATIENT_HISTORY_HREF = '/patient/medical-history'
DOCTOR_APPOINTMENTS_HREF = '/doctor/appointments'


@dataclass(frozen=True)
class NotificationAction:
    label: str
    target: str


@dataclass(frozen=True)
class NotificationItem:
    id: str
    title: str
    description: str
    timestamp: datetime
    variant: str
    action: Optional[NotificationAction] = None


def format_when(moment: datetime) -> str:
    """Mar 01, 9:30 AM"""
    return f"{moment:%b %d}, {moment.hour % 12 or 12}:{moment:%M %p}"


def _timestamp_of(record, kind: str) -> datetime:
    timestamp = record.last_changed_at
    if timestamp is None:
        raise ProjectionInputError(
            message=f"{kind} {record.id} has neither updatedAt nor createdAt.",
            detail={'kind': kind, 'id': record.id},
        )
    return timestamp


# ── 患者视角 ───────────────────────────────────────────────────────────────

def _patient_items(apt, semantic_class, timestamp) -> list[NotificationItem]:
    visit = 'Virtual' if apt.is_online else 'Clinic'
    base = f"{visit} visit with {apt.doctor_name} on {format_when(apt.scheduled_at)}"

    if semantic_class is SemanticClass.AWAITING:
        return [NotificationItem(
            id=f"apt-{apt.id}-pending",
            title='Appointment awaiting confirmation',
            description=f"{base}. We'll notify you once your doctor responds.",
            timestamp=timestamp,
            variant=WARNING,
            action=NotificationAction('View appointment', PATIENT_APPOINTMENTS_HREF),
        )]

    if semantic_class is SemanticClass.CONFIRMED:
        if apt.is_online and apt.join_url:
            action = NotificationAction('Join Zoom', apt.join_url)
        else:
            action = NotificationAction('View details', PATIENT_APPOINTMENTS_HREF)
        return [NotificationItem(
            id=f"apt-{apt.id}-confirmed",
            title='Appointment confirmed',
            description=f"{base} has been confirmed.",
            timestamp=timestamp,
            variant=SUCCESS,
            action=action,
        )]

    if semantic_class is SemanticClass.COMPLETED:
        return [NotificationItem(
            id=f"apt-{apt.id}-completed",
            title='Visit completed',
            description=f"Thanks for attending your consultation with {apt.doctor_name}.",
            timestamp=timestamp,
            variant=INFO,
        )]

    if semantic_class is SemanticClass.CANCELLED:
        return [NotificationItem(
            id=f"apt-{apt.id}-cancelled",
            title='Appointment update',
            description=f"{base} was {apt.status.strip().lower()}. Please reschedule if needed.",
            timestamp=timestamp,
            variant=DANGER,
            action=NotificationAction('Book again', PATIENT_BOOKING_HREF),
        )]

    return []


def _reminder_item(apt, now) -> NotificationItem:
    return NotificationItem(
        id=f"apt-{apt.id}-reminder",
        title='Upcoming visit reminder',
        description=f"You have a consultation with {apt.doctor_name} in the next 48 hours.",
        timestamp=now,
        variant=INFO,
        action=NotificationAction('Review details', PATIENT_APPOINTMENTS_HREF),
    )


def _history_item(record, timestamp) -> NotificationItem:
    return NotificationItem(
        id=f"history-{record.id}",
        title=f"Record updated: {record.condition}",
        description=f"Status marked as {record.status.lower().replace('_', ' ')} by {record.doctor_name}.",
        timestamp=timestamp,
        variant=SUCCESS,
        action=NotificationAction('View record', PATIENT_HISTORY_HREF),
    )


def _verification_item(now) -> NotificationItem:
    return NotificationItem(
        id='verification-reminder',
        title='Complete your verification',
        description='Verify your email to unlock full access to HealthLink+ services.',
        timestamp=now,
        variant=WARNING,
    )


# ── 医生视角 ───────────────────────────────────────────────────────────────

def _doctor_items(apt, semantic_class, timestamp) -> list[NotificationItem]:
    patient = apt.patient_name or 'Patient'
    when = format_when(apt.scheduled_at)
    base = f"{patient} on {when}"
    calendar = NotificationAction('View calendar', DOCTOR_APPOINTMENTS_HREF)

    if semantic_class is SemanticClass.IN_SESSION:
        return [NotificationItem(
            id=f"apt-{apt.id}-new",
            title='New appointment scheduled',
            description=f"You have a visit with {base}.",
            timestamp=timestamp,
            variant=INFO,
            action=NotificationAction('View appointment', DOCTOR_APPOINTMENTS_HREF),
        )]

    if semantic_class is SemanticClass.COMPLETED:
        return [NotificationItem(
            id=f"apt-{apt.id}-done",
            title='Appointment completed',
            description=f"Consultation with {base} is marked completed.",
            timestamp=timestamp,
            variant=SUCCESS,
            action=NotificationAction('Review notes', DOCTOR_APPOINTMENTS_HREF),
        )]

    if semantic_class is SemanticClass.CANCELLED:
        return [NotificationItem(
            id=f"apt-{apt.id}-cancelled",
            title='Appointment cancelled',
            description=f"The appointment with {base} was {apt.status.strip().lower()}.",
            timestamp=timestamp,
            variant=DANGER,
            action=calendar,
        )]

    if semantic_class is SemanticClass.MISSED:
        return [NotificationItem(
            id=f"apt-{apt.id}-no-show",
            title='Patient no-show recorded',
            description=f"{patient} did not attend on {when}.",
            timestamp=timestamp,
            variant=WARNING,
            action=NotificationAction('Log follow-up', DOCTOR_APPOINTMENTS_HREF),
        )]

    return []


# ── 入口 ───────────────────────────────────────────────────────────────────

def project(
    appointments: Iterable,
    history_records: Iterable,
    is_verified: Optional[bool],
    now: datetime,
    *,
    role: str = PATIENT,
    classifier: Optional[StatusClassifier] = None,
    reminder_window: timedelta = REMINDER_WINDOW,
    history_limit: int = HISTORY_LIMIT,
) -> list[NotificationItem]:
    """
    Args:
        appointments:    AppointmentRecord 序列
        history_records: MedicalHistoryRecord 序列（医生视角忽略）
        is_verified:     用户是否已验证；只有明确为 False 才出提醒
        now:             "现在"，提醒窗口和无来源通知的时间戳都用它
        role:            "patient" / "doctor"
        classifier:      复用调用方的 classifier（未知状态只报一次）

    Returns:
        按 timestamp 倒序的 NotificationItem 列表
    """
    classifier = classifier or StatusClassifier()
    items: list[NotificationItem] = []
    reminders: list[NotificationItem] = []
    build = _doctor_items if role == DOCTOR else _patient_items

    for apt in appointments:
        try:
            timestamp = _timestamp_of(apt, 'appointment')
        except ProjectionInputError as exc:
            logger.warning("[Projector] 剔除记录: %s", exc.message)
            continue

        semantic_class = classifier.classify_or_unknown(apt.status).semantic_class
        items.extend(build(apt, semantic_class, timestamp))

        if role != DOCTOR and semantic_class in CONFIRMED_LIKE:
            lead = apt.scheduled_at - now
            if timedelta(0) < lead <= reminder_window:
                reminders.append(_reminder_item(apt, now))

    items.extend(reminders)

    if role != DOCTOR:
        dated = []
        for record in history_records:
            try:
                dated.append((_timestamp_of(record, 'medical_history'), record))
            except ProjectionInputError as exc:
                logger.warning("[Projector] 剔除记录: %s", exc.message)
        dated.sort(key=lambda pair: pair[0], reverse=True)
        items.extend(_history_item(record, ts) for ts, record in dated[:history_limit])

        if is_verified is False:
            items.append(_verification_item(now))

    # sorted() 是稳定的，reverse=True 也保持相等元素的原始顺序
    return sorted(items, key=lambda item: item.timestamp, reverse=True)
