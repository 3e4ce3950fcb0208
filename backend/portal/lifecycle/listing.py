"""
预约列表页的本地过滤：状态 + 关键字，按预约时间升序。
"""

from typing import Iterable, Optional

from .status import StatusClassifier


def _haystack(record, role: str) -> str:
    counterpart = record.patient_name if role == 'doctor' else record.doctor_name
    return ' '.join(filter(None, [counterpart, record.clinic_name, record.reason])).lower()


def filter_appointments(
    records: Iterable,
    status: Optional[str] = None,
    term: str = '',
    role: str = 'patient',
    classifier: Optional[StatusClassifier] = None,
) -> list:
    """
    Args:
        status: 原始状态码（别名按 classifier 规范化）；空 = 不过滤
        term:   在对方姓名 / 诊所 / 就诊原因里做不区分大小写的包含匹配
    """
    classifier = classifier or StatusClassifier()
    wanted = classifier.classify(status).status if status else None
    needle = (term or '').strip().lower()

    matched = []
    for record in records:
        if wanted and classifier.classify_or_unknown(record.status).status != wanted:
            continue
        if needle and needle not in _haystack(record, role):
            continue
        matched.append(record)
    return sorted(matched, key=lambda r: r.scheduled_at)
