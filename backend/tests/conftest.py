"""
Shared fixtures for all tests.

factory-boy factories live here so both unit/ and integration/ can import them.
记录是 frozen dataclass，不是 ORM model，所以用 factory.Factory 而不是 DjangoModelFactory。
"""
from datetime import datetime, timedelta, timezone

import factory
import httpx
import pytest
from django.apps import apps
from django.test import AsyncClient
from rest_framework.test import APIClient

from portal.exceptions import AdvisoryServiceError, UpstreamError
from portal.lifecycle.surface import OutboxSurface
from portal.lifecycle.timers import CancelToken, Scheduler
from portal.sources import BackendClient
from portal.sources.types import AppointmentRecord, MedicalHistoryRecord


NOW = datetime(2025, 3, 1, 9, 0, tzinfo=timezone.utc)


# ---------------------------------------------------------------------------
# Factories
# ---------------------------------------------------------------------------

class AppointmentFactory(factory.Factory):
    class Meta:
        model = AppointmentRecord

    id = factory.Sequence(lambda n: f'{100 + n}')
    patient_id = 'pat-1'
    doctor_id = 'doc-1'
    scheduled_at = NOW + timedelta(days=3)
    status = 'CONFIRMED'
    modality = 'ONSITE'
    reason = 'Follow-up'
    doctor_name = 'Dr. Imran Shah'
    patient_name = 'Ana Ruiz'
    clinic_name = 'North Clinic'
    created_at = NOW - timedelta(days=2)
    updated_at = NOW - timedelta(days=1)


class MedicalHistoryFactory(factory.Factory):
    class Meta:
        model = MedicalHistoryRecord

    id = factory.Sequence(lambda n: f'h-{n}')
    condition = 'Hypertension'
    status = 'ACTIVE'
    doctor_name = 'Dr. Khan'
    patient_id = 'pat-1'
    created_at = NOW - timedelta(days=30)
    updated_at = NOW - timedelta(days=10)


# ---------------------------------------------------------------------------
# Test doubles
# ---------------------------------------------------------------------------

class _ManualHandle:

    def __init__(self):
        self.cancelled = False

    def cancel(self):
        self.cancelled = True


class ManualScheduler(Scheduler):
    """手动时钟：advance(ms) 之前什么都不会触发。"""

    def __init__(self):
        self.now = 0
        self._queue = []
        self._seq = 0

    def schedule(self, delay, callback, token=None):
        token = token or CancelToken()
        handle = _ManualHandle()
        token.attach(handle)
        self._seq += 1
        self._queue.append((self.now + max(delay, 0), self._seq, handle, token, callback))
        return token

    def advance(self, ms):
        target = self.now + ms
        while True:
            due = sorted(
                (e for e in self._queue if e[0] <= target and not e[2].cancelled),
                key=lambda e: (e[0], e[1]),
            )
            if not due:
                break
            entry = due[0]
            self._queue.remove(entry)
            self.now = entry[0]
            entry[3].run(entry[4])
        self.now = target

    @property
    def pending(self):
        return [e for e in self._queue if not e[2].cancelled]


class FakeRegistry:
    """已评价登记表。fail=True 时 reviewed_ids() 抛 UpstreamError。"""

    def __init__(self, reviewed=(), fail=False):
        self.reviewed = set(reviewed)
        self.fail = fail
        self.calls = 0

    async def reviewed_ids(self):
        self.calls += 1
        if self.fail:
            raise UpstreamError('backend down')
        return set(self.reviewed)


class FakeChecker:
    """按调用顺序记录请求；warnings_for 决定返回什么，fail=True 时抛 AdvisoryServiceError。"""

    def __init__(self, warnings_for=None, fail=False):
        self.warnings_for = warnings_for or (lambda meds: [])
        self.fail = fail
        self.calls = []

    async def check(self, medications):
        self.calls.append(list(medications))
        if self.fail:
            raise AdvisoryServiceError('Failed to check drug interactions')
        return self.warnings_for(medications)


class FakeBackend:
    """
    远端 HealthLink 后端的内存替身，挂在 httpx.MockTransport 上。

    appointments / histories 存原始 JSON（与真实后端同格式），
    requests 记录每次请求的 (method, path)。
    """

    def __init__(self):
        self.appointments = []
        self.histories = []
        self.reviewed = []
        self.warnings = []
        self.fail_paths = set()
        self.requests = []

    def transport(self):
        return httpx.MockTransport(self.handle)

    def client(self, token='test-token'):
        return BackendClient('http://backend.test', token=token, transport=self.transport())

    def set_status(self, appointment_id, status, updated_at):
        for item in self.appointments:
            if item['id'] == appointment_id:
                item['status'] = status
                item['updatedAt'] = updated_at

    def handle(self, request):
        path = request.url.path
        self.requests.append((request.method, path))
        if path in self.fail_paths:
            return httpx.Response(500, json={'success': False})

        if path == '/api/v1/appointments':
            status = request.url.params.get('status')
            data = [a for a in self.appointments if not status or a['status'] == status]
            return httpx.Response(200, json={'success': True, 'data': data})
        if path.startswith('/api/v1/medical-records/patient/'):
            return httpx.Response(200, json={'success': True, 'data': self.histories})
        if path == '/api/v1/reviews/mine':
            data = [{'appointmentId': i, 'rating': 5} for i in self.reviewed]
            return httpx.Response(200, json={'success': True, 'data': data})
        if path == '/api/v1/prescriptions/interactions':
            return httpx.Response(200, json={'success': True, 'data': {'warnings': self.warnings}})
        return httpx.Response(404, json={'message': 'Not found'})


def appointment_payload(appointment_id, status, start, updated, **extra):
    payload = {
        'id': appointment_id,
        'status': status,
        'startTime': start,
        'createdAt': '2025-02-20T08:00:00Z',
        'updatedAt': updated,
        'doctorName': 'Dr. Imran Shah',
        'patientName': 'Ana Ruiz',
        'facilityId': 'clinic-1',
        'facilityName': 'North Clinic',
        'reasonForVisit': 'Follow-up',
    }
    payload.update(extra)
    return payload


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def scheduler():
    return ManualScheduler()


@pytest.fixture
def surface(scheduler):
    return OutboxSurface(scheduler)


@pytest.fixture
def fake_backend():
    return FakeBackend()


@pytest.fixture
def api_client():
    """DRF test client for the stateless endpoints."""
    return APIClient()


@pytest.fixture
def async_client():
    """Django async test client for the session endpoints."""
    return AsyncClient()


@pytest.fixture
async def portal_store():
    store = apps.get_app_config('portal').sessions
    yield store
    await store.clear()
