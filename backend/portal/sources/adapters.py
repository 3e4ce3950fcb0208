"""
具体 Adapter 实现。

新增记录类型：在此文件添加一个类，然后在 factory.py 注册即可。

已注册：
  appointment         — AppointmentAdapter        (AppointmentResponse，多套字段名并存)
  medical_history     — MedicalHistoryAdapter     (summary / details 自由文本)
  review              — ReviewAdapter             (reviews/mine)
  interaction_result  — InteractionResultAdapter  ({warnings: [...]} 或裸数组)
"""

import re
from typing import Any

from .base import BaseRecordAdapter, parse_instant, text
from .types import AppointmentRecord, MedicalHistoryRecord, ReviewRecord

APPT_TYPE_PREFIX = 'APPT_TYPE:'


# ── AppointmentAdapter ─────────────────────────────────────────────────────
#
# 后端格式示例（JSON，已剥掉 envelope）:
# {
#   "id": 42,
#   "startTime": "2025-03-01T09:30:00Z",      ← 也可能叫 appointmentTime / appointmentDateTime
#   "status": "CONFIRMED",
#   "notes": "APPT_TYPE:ONLINE|bring lab results",   ← 类型可能藏在 notes 前缀里
#   "type": "ONLINE",                          ← 或 appointmentType，或都没有
#   "patientId": "6f1c...", "patientName": "Ana Ruiz",
#   "doctorId": "9a2e...",  "doctorName": "Dr. Imran Shah",
#   "facilityId": "c0ff...", "facilityName": "North Clinic",
#   "zoomJoinUrl": "https://zoom.us/j/123",     ← 或 zoomMeetingUrl
#   "createdAt": "...", "updatedAt": "..."
# }
#
# 与本地格式的主要差异：
#   1. 预约时间有三个可能的字段名
#   2. 预约方式优先读 notes 前缀 "APPT_TYPE:ONLINE|"，其次 type / appointmentType，
#      都没有且没有 facilityId → ONLINE
#   3. reason 取 reasonForVisit / reason，都没有时用去掉前缀后的 notes
#   4. 时间无法解析时不再兜底成 "现在"，直接判为解码失败

class AppointmentAdapter(BaseRecordAdapter):
    kind = "appointment"

    @staticmethod
    def _split_notes(raw: dict) -> tuple[str, str]:
        """返回 (modality, 去掉前缀后的 notes)。"""
        notes = raw.get('notes') or ''
        if notes.startswith(APPT_TYPE_PREFIX):
            parts = notes.split('|')
            type_part = parts[0][len(APPT_TYPE_PREFIX):]
            modality = 'ONLINE' if type_part == 'ONLINE' else 'ONSITE'
            return modality, '|'.join(parts[1:])

        declared = raw.get('type') or raw.get('appointmentType')
        if declared:
            return ('ONLINE' if declared == 'ONLINE' else 'ONSITE'), notes
        if not raw.get('facilityId'):
            return 'ONLINE', notes
        return 'ONSITE', notes

    def transform_item(self, item: dict) -> AppointmentRecord:
        modality, notes = self._split_notes(item)
        scheduled = (
            item.get('startTime')
            or item.get('appointmentTime')
            or item.get('appointmentDateTime')
        )

        return AppointmentRecord(
            id=text(item.get('id')),
            patient_id=text(item.get('patientId')),
            doctor_id=text(item.get('doctorId')),
            scheduled_at=parse_instant(scheduled),
            status=text(item.get('status')),
            modality=modality,
            reason=text(item.get('reasonForVisit') or item.get('reason') or notes),
            notes=notes.strip(),
            doctor_name=text(item.get('doctorName')),
            patient_name=text(item.get('patientName')),
            clinic_id=text(item.get('facilityId')) or None,
            clinic_name=text(item.get('clinicName') or item.get('facilityName')) or None,
            join_url=text(item.get('zoomJoinUrl') or item.get('zoomMeetingUrl')) or None,
            created_at=parse_instant(item.get('createdAt')),
            updated_at=parse_instant(item.get('updatedAt')),
            raw_payload=item,                         # 保留原始数据
        )

    def validate(self, record: AppointmentRecord) -> None:
        errors = []
        if not record.id:
            errors.append({'field': 'id', 'message': 'Appointment id is required.'})
        if not record.status:
            errors.append({'field': 'status', 'message': 'Appointment status is required.'})
        if record.scheduled_at is None:
            errors.append({
                'field': 'startTime',
                'message': 'Appointment time is missing or not a valid ISO 8601 instant.',
            })
        self._raise_if(errors)


# ── MedicalHistoryAdapter ──────────────────────────────────────────────────
#
# 后端格式示例（JSON）:
# {
#   "id": "b71e...",
#   "condition": "Hypertension",
#   "status": "CHRONIC",
#   "summary": "Stage 1, lifestyle changes advised",
#   "details": "ACE inhibitor trial\n\nMedications: Lisinopril 10mg\nDoctor: Dr. Khan\nHospital: City Care",
#   "patientId": "6f1c...",
#   "createdAt": "...", "updatedAt": "..."
# }
#
# details 是表单拼出来的自由文本，Medications / Doctor / Hospital 行需要抠出来；
# 第一段（空行之前）是 treatment。

_DETAIL_RE = {
    'medications': re.compile(r'Medications:\s*(.+?)(?:\n|$)', re.IGNORECASE),
    'doctor_name': re.compile(r'Doctor:\s*(.+?)(?:\n|$)', re.IGNORECASE),
    'hospital_name': re.compile(r'Hospital:\s*(.+?)(?:\n|$)', re.IGNORECASE),
}


class MedicalHistoryAdapter(BaseRecordAdapter):
    kind = "medical_history"

    def transform_item(self, item: dict) -> MedicalHistoryRecord:
        fields = {
            'medications': text(item.get('medications')),
            'doctor_name': text(item.get('doctorName'), 'N/A'),
            'hospital_name': text(item.get('hospitalName'), 'N/A'),
        }
        treatment = text(item.get('treatment'))

        details = item.get('details')
        if isinstance(details, str) and details:
            for name, pattern in _DETAIL_RE.items():
                match = pattern.search(details)
                if match:
                    fields[name] = match.group(1).strip()
            if not treatment:
                first_block = details.split('\n\n')[0].strip()
                if not any(p.match(first_block) for p in _DETAIL_RE.values()):
                    treatment = first_block

        return MedicalHistoryRecord(
            id=text(item.get('id')),
            condition=text(item.get('condition') or item.get('title'), 'Medical record'),
            status=text(item.get('status'), 'ACTIVE').upper(),
            patient_id=text(item.get('patientId')),
            description=text(item.get('summary') or item.get('description')),
            treatment=treatment,
            created_at=parse_instant(item.get('createdAt') or item.get('diagnosisDate')),
            updated_at=parse_instant(item.get('updatedAt')),
            raw_payload=item,
            **fields,
        )


# ── ReviewAdapter ──────────────────────────────────────────────────────────
#
# /api/v1/reviews/mine 的每一项只关心 appointmentId（以及可选的 rating）。

class ReviewAdapter(BaseRecordAdapter):
    kind = "review"

    def transform_item(self, item: dict) -> ReviewRecord:
        rating = item.get('rating')
        return ReviewRecord(
            appointment_id=text(item.get('appointmentId')),
            rating=int(rating) if isinstance(rating, (int, float)) else None,
        )

    def validate(self, record: ReviewRecord) -> None:
        if not record.appointment_id:
            self._raise_if([{'field': 'appointmentId', 'message': 'Review has no appointmentId.'}])


# ── InteractionResultAdapter ───────────────────────────────────────────────
#
# { "interactingPairs": [...], "warnings": ["..."], "severeInteractionDetected": true }
# 或者直接是 ["...", "..."]。只取 warnings，全部转成非空字符串。

class InteractionResultAdapter(BaseRecordAdapter):
    kind = "interaction_result"

    def transform(self) -> list[str]:
        parsed = self._parsed
        if isinstance(parsed, dict):
            parsed = parsed.get('warnings') or []
        if not isinstance(parsed, list):
            return []
        return self.transform_item({'warnings': parsed})

    def transform_item(self, item: dict) -> list[str]:
        return [str(w).strip() for w in item.get('warnings') or [] if str(w or '').strip()]

    def validate(self, record: Any) -> None:
        """warnings 列表没有必填字段。"""
