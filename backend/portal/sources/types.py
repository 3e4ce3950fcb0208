"""
类型化记录 — lifecycle 核心唯一认识的格式。

所有 Adapter 的 transform() 必须返回这里的结构。
核心层（portal/lifecycle/）只消费这些 dataclass，永远不碰远端原始 payload。

记录归远端后端所有，对本系统只读，因此全部 frozen。
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional


@dataclass(frozen=True)
class AppointmentRecord:
    id: str
    patient_id: str
    doctor_id: str
    scheduled_at: datetime
    status: str                          # 远端原始状态码，由 StatusClassifier 解释
    modality: str = 'ONSITE'             # ONLINE | ONSITE
    reason: str = ''
    notes: str = ''
    doctor_name: str = ''
    patient_name: str = ''
    clinic_id: Optional[str] = None
    clinic_name: Optional[str] = None
    join_url: Optional[str] = None       # 只有 ONLINE 且 CONFIRMED / IN_PROGRESS 时有意义
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    raw_payload: Any = field(default=None, repr=False, compare=False)

    @property
    def is_online(self) -> bool:
        return self.modality == 'ONLINE'

    @property
    def last_changed_at(self) -> Optional[datetime]:
        return self.updated_at or self.created_at


@dataclass(frozen=True)
class MedicalHistoryRecord:
    id: str
    condition: str
    status: str                          # ACTIVE | RESOLVED | CHRONIC | UNDER_TREATMENT
    doctor_name: str = 'N/A'
    patient_id: str = ''
    description: str = ''
    treatment: str = ''
    medications: str = ''
    hospital_name: str = 'N/A'
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    raw_payload: Any = field(default=None, repr=False, compare=False)

    @property
    def last_changed_at(self) -> Optional[datetime]:
        return self.updated_at or self.created_at


@dataclass(frozen=True)
class ReviewRecord:
    appointment_id: str
    rating: Optional[int] = None
