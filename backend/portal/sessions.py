"""
PortalSession — 一个 (role, user_id) 的全部 lifecycle 状态。

以前散落在页面里的模块级变量（"本次会话已检查过的评价"、上一次看到的状态……）
都收进这个显式传递的上下文对象：

  classifier   StatusClassifier      未知状态只报一次
  watcher      TransitionWatcher     每个预约上一次的语义类
  prompts      ReviewPromptController（仅患者）
  advisor      InteractionAdvisor    处方表单的去抖检查
  surface      OutboxSurface         toast / 跳转指令队列
  feed         最近一次投影出的通知列表

生命周期：第一次请求时创建，存放在 portal AppConfig 持有的 SessionStore 里（进程内）；
显式 DELETE、空闲超过 PORTAL_SESSION_IDLE_SECONDS 或进程重启时销毁。进程重启意味着 watcher 重新建立基线。
"""

import asyncio
import logging
import time
from datetime import timedelta
from typing import Optional

from django.conf import settings
from django.utils import timezone

from .exceptions import ValidationError
from .interactions import get_interaction_checker
from .lifecycle.advisor import InteractionAdvisor
from .lifecycle.notifications import DOCTOR, PATIENT, project
from .lifecycle.prompts import ReviewPromptController
from .lifecycle.status import StatusClassifier
from .lifecycle.surface import OutboxSurface
from .lifecycle.timers import LoopScheduler, Scheduler
from .lifecycle.transitions import TransitionWatcher
from .sources import BackendClient

logger = logging.getLogger(__name__)

ROLES = (PATIENT, DOCTOR)


class PortalSession:

    def __init__(
        self,
        role: str,
        user_id: str,
        client: BackendClient,
        scheduler: Optional[Scheduler] = None,
        checker=None,
    ):
        if role not in ROLES:
            raise ValidationError(
                message=f"Unknown portal role: {role!r}.",
                code='INVALID_ROLE',
                detail={'known_roles': list(ROLES)},
            )
        self.role = role
        self.user_id = user_id
        self.client = client
        self.scheduler = scheduler or LoopScheduler()
        self.is_verified: Optional[bool] = None

        self.classifier = StatusClassifier()
        self.watcher = TransitionWatcher()
        self.surface = OutboxSurface(self.scheduler)
        self.prompts = None
        if role == PATIENT:
            self.prompts = ReviewPromptController(
                registry=client,
                surface=self.surface,
                delay=settings.REVIEW_PROMPT_DELAY_MS,
            )
        self.advisor = InteractionAdvisor(
            checker=checker or get_interaction_checker(client),
            scheduler=self.scheduler,
            surface=self.surface,
            quiet_period=settings.INTERACTION_DEBOUNCE_MS,
        )
        self.feed: list = []
        self._lock = asyncio.Lock()

    @property
    def key(self) -> tuple:
        return (self.role, self.user_id)

    async def refresh(self, now=None) -> list:
        """
        拉取记录 → 投影 feed → 观察状态变化 → 交给评价提示。

        同一个 session 的刷新串行执行，observe() 不会被两次刷新交错调用。
        """
        async with self._lock:
            now = now or timezone.now()
            appointments = await self.client.list_appointments()
            history = []
            if self.role == PATIENT:
                history = await self.client.list_medical_histories(self.user_id)

            self.feed = project(
                appointments,
                history,
                self.is_verified,
                now,
                role=self.role,
                classifier=self.classifier,
                reminder_window=timedelta(hours=settings.REMINDER_WINDOW_HOURS),
                history_limit=settings.HISTORY_FEED_LIMIT,
            )

            events = self.watcher.observe_batch(appointments, self.classifier)
            if events:
                logger.info("[Session] %s/%s 检测到 %d 个状态变化",
                            self.role, self.user_id, len(events))
            if self.prompts is not None:
                # 没有新事件也要调用：上一轮查询失败的实体在这里重试
                await self.prompts.on_transitions(events)
            return self.feed

    @property
    def busy(self) -> bool:
        return self._lock.locked()

    async def close(self) -> None:
        if self.prompts is not None:
            self.prompts.close()
        self.advisor.close()
        await self.client.close()


class SessionStore:
    """
    进程级的 PortalSession 容器，由 PortalConfig 持有。

    idle_timeout（秒）：超过这么久没被访问的 session 在 evict_idle() 时销毁；
    None 或 0 表示永不过期。
    """

    def __init__(self, idle_timeout: Optional[float] = None, clock=time.monotonic):
        self.idle_timeout = idle_timeout
        self.clock = clock
        self._sessions: dict[tuple, PortalSession] = {}
        self._last_used: dict[tuple, float] = {}

    def _touch(self, key: tuple) -> None:
        self._last_used[key] = self.clock()

    def get(self, role: str, user_id: str) -> Optional[PortalSession]:
        session = self._sessions.get((role, user_id))
        if session is not None:
            self._touch(session.key)
        return session

    def acquire(self, role: str, user_id: str, token: Optional[str] = None) -> PortalSession:
        """取已有 session，没有就新建；每次都用调用方最新的 token。"""
        session = self._sessions.get((role, user_id))
        if session is None:
            client = BackendClient(
                base_url=settings.PORTAL_BACKEND_URL,
                token=token,
                timeout=settings.PORTAL_BACKEND_TIMEOUT,
            )
            session = PortalSession(role, user_id, client)
            self._sessions[session.key] = session
            logger.info("[Session] 新建 %s/%s", role, user_id)
        else:
            session.client.set_token(token)
        self._touch(session.key)
        return session

    def add(self, session: PortalSession) -> PortalSession:
        self._sessions[session.key] = session
        self._touch(session.key)
        return session

    async def close(self, role: str, user_id: str) -> bool:
        session = self._sessions.pop((role, user_id), None)
        self._last_used.pop((role, user_id), None)
        if session is None:
            return False
        await session.close()
        logger.info("[Session] 销毁 %s/%s", role, user_id)
        return True

    async def clear(self) -> None:
        sessions = list(self._sessions.values())
        self._sessions.clear()
        self._last_used.clear()
        for session in sessions:
            await session.close()

    async def evict_idle(self) -> int:
        """销毁空闲超时的 session（正在 refresh 的跳过）。返回销毁的个数。"""
        if not self.idle_timeout:
            return 0
        cutoff = self.clock() - self.idle_timeout
        expired = [
            key for key, last_used in self._last_used.items()
            if last_used < cutoff and not self._sessions[key].busy
        ]
        for key in expired:
            session = self._sessions.pop(key)
            del self._last_used[key]
            await session.close()
        if expired:
            logger.info("[Session] 回收 %d 个空闲 session，剩余 %d", len(expired), len(self._sessions))
        return len(expired)

    def __len__(self):
        return len(self._sessions)

    def __contains__(self, key):
        return key in self._sessions
