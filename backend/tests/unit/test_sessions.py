"""
Unit tests for PortalSession / SessionStore.

FakeBackend 挂在 httpx.MockTransport 上，ManualScheduler 控制时间。
"""
from datetime import datetime, timezone

import pytest

from portal.exceptions import UpstreamError, ValidationError
from portal.lifecycle.surface import NavigationDirective, ToastMessage
from portal.sessions import PortalSession, SessionStore
from tests.conftest import FakeChecker, appointment_payload

REFRESH_AT = datetime(2025, 3, 1, 9, 0, tzinfo=timezone.utc)
START = '2025-03-01T11:00:00Z'


def make_session(fake_backend, scheduler, role='patient'):
    return PortalSession(role, 'pat-1', fake_backend.client(), scheduler=scheduler, checker=FakeChecker())


class TestRefresh:

    async def test_first_refresh_is_baseline(self, fake_backend, scheduler):
        fake_backend.appointments = [appointment_payload('2', 'COMPLETED', START, '2025-02-28T10:00:00Z')]
        session = make_session(fake_backend, scheduler)

        feed = await session.refresh(REFRESH_AT)

        assert [i.id for i in feed] == ['apt-2-completed']
        assert session.surface.drain() == []
        assert ('GET', '/api/v1/reviews/mine') not in fake_backend.requests
        await session.close()

    async def test_completed_transition_prompts_once(self, fake_backend, scheduler):
        fake_backend.appointments = [appointment_payload('2', 'CONFIRMED', START, '2025-02-28T10:00:00Z')]
        session = make_session(fake_backend, scheduler)
        await session.refresh(REFRESH_AT)

        fake_backend.set_status('2', 'COMPLETED', '2025-03-01T08:55:00Z')
        await session.refresh(REFRESH_AT)
        await session.refresh(REFRESH_AT)

        entries = session.surface.drain()
        assert len([e for e in entries if isinstance(e, ToastMessage)]) == 1
        assert len(scheduler.pending) == 1

        scheduler.advance(5000)
        assert session.surface.drain() == [NavigationDirective('/patient/appointments/2/review')]
        await session.close()

    async def test_reviewed_appointment_not_prompted(self, fake_backend, scheduler):
        fake_backend.appointments = [appointment_payload('2', 'CONFIRMED', START, '2025-02-28T10:00:00Z')]
        fake_backend.reviewed = ['2']
        session = make_session(fake_backend, scheduler)
        await session.refresh(REFRESH_AT)

        fake_backend.set_status('2', 'COMPLETED', '2025-03-01T08:55:00Z')
        await session.refresh(REFRESH_AT)

        assert session.surface.drain() == []
        assert scheduler.pending == []
        await session.close()

    async def test_review_lookup_failure_retried_next_refresh(self, fake_backend, scheduler):
        fake_backend.appointments = [appointment_payload('2', 'CONFIRMED', START, '2025-02-28T10:00:00Z')]
        session = make_session(fake_backend, scheduler)
        await session.refresh(REFRESH_AT)

        fake_backend.set_status('2', 'COMPLETED', '2025-03-01T08:55:00Z')
        fake_backend.fail_paths.add('/api/v1/reviews/mine')
        feed = await session.refresh(REFRESH_AT)
        assert [i.id for i in feed] == ['apt-2-completed']
        assert session.surface.drain() == []

        fake_backend.fail_paths.clear()
        await session.refresh(REFRESH_AT)
        assert len(session.surface.drain()) == 1
        await session.close()

    async def test_doctor_session_has_no_prompts(self, fake_backend, scheduler):
        fake_backend.appointments = [appointment_payload('2', 'IN_PROGRESS', START, '2025-02-28T10:00:00Z')]
        session = make_session(fake_backend, scheduler, role='doctor')

        feed = await session.refresh(REFRESH_AT)

        assert session.prompts is None
        assert [i.id for i in feed] == ['apt-2-new']
        assert not any('/medical-records/' in path for _, path in fake_backend.requests)
        await session.close()

    async def test_unverified_flag(self, fake_backend, scheduler):
        session = make_session(fake_backend, scheduler)
        session.is_verified = False
        assert [i.id for i in await session.refresh(REFRESH_AT)] == ['verification-reminder']
        await session.close()

    async def test_upstream_failure_propagates(self, fake_backend, scheduler):
        fake_backend.fail_paths.add('/api/v1/appointments')
        session = make_session(fake_backend, scheduler)
        with pytest.raises(UpstreamError):
            await session.refresh(REFRESH_AT)
        await session.close()

    async def test_close_cancels_prompt_timer(self, fake_backend, scheduler):
        fake_backend.appointments = [appointment_payload('2', 'CONFIRMED', START, '2025-02-28T10:00:00Z')]
        session = make_session(fake_backend, scheduler)
        await session.refresh(REFRESH_AT)
        fake_backend.set_status('2', 'COMPLETED', '2025-03-01T08:55:00Z')
        await session.refresh(REFRESH_AT)
        session.surface.drain()

        await session.close()
        scheduler.advance(10000)
        assert session.surface.drain() == []

    def test_invalid_role(self, fake_backend, scheduler):
        with pytest.raises(ValidationError) as exc_info:
            make_session(fake_backend, scheduler, role='admin')
        assert exc_info.value.code == 'INVALID_ROLE'


class TestSessionStore:

    async def test_acquire_reuses_and_updates_token(self):
        store = SessionStore()
        first = store.acquire('patient', 'pat-1', 'tok-1')
        second = store.acquire('patient', 'pat-1', 'tok-2')

        assert first is second
        assert second.client.token == 'tok-2'
        assert len(store) == 1
        await store.clear()

    async def test_sessions_keyed_by_role_and_user(self):
        store = SessionStore()
        store.acquire('patient', 'u1')
        store.acquire('doctor', 'u1')
        assert len(store) == 2
        await store.clear()
        assert len(store) == 0

    async def test_close(self, fake_backend, scheduler):
        store = SessionStore()
        store.add(make_session(fake_backend, scheduler))

        assert await store.close('patient', 'pat-1') is True
        assert await store.close('patient', 'pat-1') is False
        assert ('patient', 'pat-1') not in store


class _Clock:

    def __init__(self, now=0.0):
        self.now = now

    def __call__(self):
        return self.now


class TestIdleEviction:

    async def test_idle_session_evicted_and_closed(self, fake_backend, scheduler):
        clock = _Clock()
        store = SessionStore(idle_timeout=60, clock=clock)
        session = store.add(make_session(fake_backend, scheduler))
        fake_backend.appointments = [appointment_payload('2', 'CONFIRMED', START, '2025-02-28T10:00:00Z')]
        await session.refresh(REFRESH_AT)
        fake_backend.set_status('2', 'COMPLETED', '2025-03-01T08:55:00Z')
        await session.refresh(REFRESH_AT)
        assert len(scheduler.pending) == 1

        clock.now = 61
        assert await store.evict_idle() == 1

        assert ('patient', 'pat-1') not in store
        assert scheduler.pending == []
        scheduler.advance(10000)
        assert [e for e in session.surface.drain() if isinstance(e, NavigationDirective)] == []

    async def test_recent_access_keeps_session(self, fake_backend, scheduler):
        clock = _Clock()
        store = SessionStore(idle_timeout=60, clock=clock)
        store.add(make_session(fake_backend, scheduler))

        clock.now = 50
        store.get('patient', 'pat-1')
        clock.now = 100
        assert await store.evict_idle() == 0
        assert len(store) == 1
        await store.clear()

    async def test_busy_session_skipped(self, fake_backend, scheduler):
        clock = _Clock()
        store = SessionStore(idle_timeout=60, clock=clock)
        session = store.add(make_session(fake_backend, scheduler))

        clock.now = 100
        async with session._lock:
            assert await store.evict_idle() == 0
        assert await store.evict_idle() == 1

    async def test_no_timeout_never_evicts(self, fake_backend, scheduler):
        clock = _Clock()
        store = SessionStore(clock=clock)
        store.add(make_session(fake_backend, scheduler))

        clock.now = 10 ** 6
        assert await store.evict_idle() == 0
        await store.clear()
