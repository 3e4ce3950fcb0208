"""
InteractionAdvisor — 处方表单里的药物列表变化 → 去抖 → 远程相互作用检查。

状态机：IDLE → PENDING → RESOLVED / ERRORED
  - 非空药物少于 2 个：不发请求，直接回到 IDLE，warnings 清空
  - 每次 edit() 重置去抖定时器（默认 1000ms 静默期）
  - 每次检查发一个递增的 request token；结果回来时 token 不是最新的就丢弃
    （按发出顺序 last-write-wins，而不是按到达顺序）
  - 检查失败：弹 toast，保留上一次的 warnings
"""

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Protocol

from ..exceptions import AdvisoryServiceError
from .notifications import DANGER, SUCCESS, WARNING
from .surface import NavigationSurface
from .timers import CancelToken, Scheduler

logger = logging.getLogger(__name__)

QUIET_PERIOD_MS = 1000
MIN_MEDICATIONS = 2


class InteractionChecker(Protocol):
    async def check(self, medications: list[str]) -> list[str]:
        ...


class AdvisorState(str, Enum):
    IDLE = 'idle'
    PENDING = 'pending'
    RESOLVED = 'resolved'
    ERRORED = 'errored'


@dataclass(frozen=True)
class AdvisorSnapshot:
    state: AdvisorState
    warnings: tuple
    error: Optional[str]
    checked_medications: tuple


def clean_medications(medications) -> list[str]:
    return [m.strip() for m in medications or [] if isinstance(m, str) and m.strip()]


class InteractionAdvisor:

    def __init__(
        self,
        checker: InteractionChecker,
        scheduler: Scheduler,
        surface: NavigationSurface,
        quiet_period: float = QUIET_PERIOD_MS,
        min_medications: int = MIN_MEDICATIONS,
    ):
        self.checker = checker
        self.scheduler = scheduler
        self.surface = surface
        self.quiet_period = quiet_period
        self.min_medications = min_medications

        self.state = AdvisorState.IDLE
        self.warnings: list[str] = []
        self.error: Optional[str] = None
        self.checked_medications: list[str] = []

        self._issued = 0
        self._debounce: Optional[CancelToken] = None
        self._tasks: set = set()

    # ── 表单入口 ───────────────────────────────────────────────────────────

    def edit(self, medications: list[str]) -> CancelToken:
        """表单每变化一次调用一次。返回本次去抖定时器的 token。"""
        if self._debounce is not None:
            self._debounce.cancel()
        snapshot = list(medications or [])
        self._debounce = self.scheduler.schedule(
            self.quiet_period, lambda: self._launch(snapshot),
        )
        return self._debounce

    def _launch(self, medications: list[str]) -> None:
        task = asyncio.ensure_future(self.check_interactions(medications))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    # ── 检查 ───────────────────────────────────────────────────────────────

    async def check_interactions(self, medications: list[str]) -> list[str]:
        names = clean_medications(medications)
        self._issued += 1
        token = self._issued

        if len(names) < self.min_medications:
            self.state = AdvisorState.IDLE
            self.warnings = []
            self.error = None
            self.checked_medications = names
            return []

        self.state = AdvisorState.PENDING
        try:
            warnings = await self._run_checker(names)
        except AdvisoryServiceError as exc:
            if token != self._issued:
                logger.debug("[Advisor] 丢弃过期的失败结果 #%d（最新 #%d）", token, self._issued)
                return list(self.warnings)
            logger.warning("[Advisor] 相互作用检查失败: %s %s", exc.message, exc.detail)
            self.state = AdvisorState.ERRORED
            self.error = exc.message
            self.surface.notify('Failed to check drug interactions', DANGER)
            return list(self.warnings)

        if token != self._issued:
            logger.debug("[Advisor] 丢弃过期结果 #%d（最新 #%d）", token, self._issued)
            return list(self.warnings)

        self.state = AdvisorState.RESOLVED
        self.warnings = list(warnings)
        self.error = None
        self.checked_medications = names
        if self.warnings:
            self.surface.notify(f"Found {len(self.warnings)} potential drug interaction(s)", WARNING)
        else:
            self.surface.notify('No drug interactions detected', SUCCESS)
        return list(self.warnings)

    async def _run_checker(self, names: list[str]) -> list[str]:
        try:
            return await self.checker.check(names)
        except AdvisoryServiceError:
            raise
        except Exception as exc:
            raise AdvisoryServiceError(
                message='Failed to check drug interactions',
                detail={'error': str(exc)},
            ) from exc

    # ── 查询 / 销毁 ────────────────────────────────────────────────────────

    def snapshot(self) -> AdvisorSnapshot:
        return AdvisorSnapshot(
            state=self.state,
            warnings=tuple(self.warnings),
            error=self.error,
            checked_medications=tuple(self.checked_medications),
        )

    async def join(self) -> None:
        """等待所有进行中的检查结束。"""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def close(self) -> None:
        if self._debounce is not None:
            self._debounce.cancel()
            self._debounce = None
        for task in list(self._tasks):
            task.cancel()
        # 之后回来的结果一律过期
        self._issued += 1
