"""
Response serializers — lifecycle 对象 → JSON-able dict。

输出格式化用普通函数；请求体校验用 DRF Serializer。
远端 payload 的解析和校验在 portal/sources/ adapter 系统里。
"""

from rest_framework import serializers

from .lifecycle.advisor import AdvisorSnapshot
from .lifecycle.surface import NavigationDirective


# ── 请求体 ─────────────────────────────────────────────────────────────────

class MedicationListSerializer(serializers.Serializer):
    """{"medications": ["Warfarin", "Aspirin", ""]}，允许空行（表单里的空输入框）。"""

    medications = serializers.ListField(
        child=serializers.CharField(allow_blank=True, trim_whitespace=True),
        allow_empty=True,
    )


# ── 响应 ───────────────────────────────────────────────────────────────────

def serialize_action(action):
    if action is None:
        return None
    return {'label': action.label, 'target': action.target}


def serialize_notification(item):
    return {
        'id': item.id,
        'title': item.title,
        'description': item.description,
        'timestamp': item.timestamp.isoformat(),
        'variant': item.variant,
        'action': serialize_action(item.action),
    }


def serialize_outbox(entries):
    results = []
    for entry in entries:
        if isinstance(entry, NavigationDirective):
            results.append({'kind': entry.kind, 'target': entry.target})
        else:
            results.append({
                'kind': entry.kind,
                'message': entry.message,
                'variant': entry.variant,
                'action': serialize_action(entry.action),
            })
    return results


def serialize_feed(items, outbox):
    return {
        'count': len(items),
        'notifications': [serialize_notification(item) for item in items],
        'outbox': serialize_outbox(outbox),
    }


def serialize_status_display(display):
    return {
        'status': display.status,
        'semantic_class': display.semantic_class.value,
        'label': display.label,
        'color': display.color_token,
    }


def serialize_appointment(record, display):
    return {
        'id': record.id,
        'scheduled_at': record.scheduled_at.isoformat(),
        'status': serialize_status_display(display),
        'modality': record.modality,
        'reason': record.reason,
        'doctor_name': record.doctor_name,
        'patient_name': record.patient_name,
        'clinic_name': record.clinic_name,
        'join_url': record.join_url,
    }


def serialize_appointment_list(records, classifier):
    results = [
        serialize_appointment(record, classifier.classify_or_unknown(record.status))
        for record in records
    ]
    return {
        'count': len(results),
        'appointments': results,
    }


def serialize_advisor(snapshot: AdvisorSnapshot):
    return {
        'state': snapshot.state.value,
        'warnings': list(snapshot.warnings),
        'error': snapshot.error,
        'checked_medications': list(snapshot.checked_medications),
    }
