"""
ReviewPromptController — 预约变成 COMPLETED 时，提示患者去评价。

每个实体最多一次：
  1. 已经评价过（review registry 里有）→ 什么都不做
  2. 否则状态记为 PROMPTED，弹一条带 "Rate Now" 的 toast，
     并在 delay 毫秒后自动跳转到评价页
  3. 同一批里多个实体同时完成：全部弹 toast，只有第一个自动跳转
  4. 用户点了 "Rate Now"（accept）或关掉提示（dismiss）→ 定时器取消

"手动点击" / "定时器触发" / "关闭" 三条路径共用一个 CancelToken 的 claim，
最多只有一条生效。

registry 查询失败 → 本批不弹，留到下一轮观察时重试（不缓存失败结果）。
"""

import logging
from enum import Enum
from typing import Iterable, Optional, Protocol

from ..exceptions import PromptLookupError
from .notifications import SUCCESS, NotificationAction
from .status import SemanticClass
from .surface import NavigationSurface
from .timers import CancelToken
from .transitions import TransitionEvent

logger = logging.getLogger(__name__)

PROMPT_DELAY_MS = 5000
REVIEW_TARGET = '/patient/appointments/{entity_id}/review'
PROMPT_MESSAGE = 'Your appointment has been completed. Please rate your experience.'


class ReviewRegistry(Protocol):
    async def reviewed_ids(self) -> set[str]:
        ...


class PromptState(str, Enum):
    NOT_YET_PROMPTED = 'not_yet_prompted'
    PROMPTED = 'prompted'
    DISMISSED = 'dismissed'


class ReviewPromptController:

    def __init__(
        self,
        registry: ReviewRegistry,
        surface: NavigationSurface,
        delay: float = PROMPT_DELAY_MS,
        target_template: str = REVIEW_TARGET,
    ):
        self.registry = registry
        self.surface = surface
        self.delay = delay
        self.target_template = target_template

        self._states: dict[str, PromptState] = {}
        self._claims: dict[str, CancelToken] = {}
        self._pending: list[str] = []           # 上一轮查询失败、待重试的实体
        self._timer: Optional[CancelToken] = None
        self._closed = False

    def target_for(self, entity_id: str) -> str:
        return self.target_template.format(entity_id=entity_id)

    def state_of(self, entity_id: str) -> PromptState:
        return self._states.get(entity_id, PromptState.NOT_YET_PROMPTED)

    async def on_transition(self, event: TransitionEvent) -> list[str]:
        return await self.on_transitions([event])

    async def on_transitions(self, events: Iterable[TransitionEvent]) -> list[str]:
        """
        消费一批 TransitionEvent，只关心 current == COMPLETED 的。

        Returns:
            本批真正弹出提示的实体 id（按输入顺序）
        """
        candidates = list(self._pending)
        for event in events:
            if event.current is not SemanticClass.COMPLETED:
                continue
            if event.entity_id in candidates or event.entity_id in self._states:
                continue
            candidates.append(event.entity_id)

        if self._closed or not candidates:
            return []

        try:
            reviewed = await self._lookup_reviewed()
        except PromptLookupError as exc:
            self._pending = candidates
            logger.warning("[Prompt] %s，%d 个实体留到下一轮: %s",
                           exc.message, len(candidates), exc.detail)
            return []

        if self._closed:
            logger.info("[Prompt] 已销毁，丢弃 %d 个实体的查询结果", len(candidates))
            return []

        self._pending = []
        prompted = []
        for entity_id in candidates:
            if entity_id in reviewed or entity_id in self._states:
                continue
            self._prompt(entity_id, auto_navigate=not prompted)
            prompted.append(entity_id)
        return prompted

    async def _lookup_reviewed(self) -> set[str]:
        try:
            return set(await self.registry.reviewed_ids())
        except Exception as exc:
            raise PromptLookupError(
                message='Could not load reviewed appointments',
                detail={'error': str(exc)},
            ) from exc

    def _prompt(self, entity_id: str, auto_navigate: bool) -> None:
        if self._closed:
            return
        target = self.target_for(entity_id)
        token = CancelToken()
        self._states[entity_id] = PromptState.PROMPTED
        self._claims[entity_id] = token

        self.surface.notify(PROMPT_MESSAGE, SUCCESS, NotificationAction('Rate Now', target))

        if auto_navigate and not (self._timer and self._timer.armed):
            self._timer = self.surface.navigate_after(self.delay, target, token)
            logger.info("[Prompt] %s 已提示，%sms 后跳转", entity_id, self.delay)
        else:
            logger.info("[Prompt] %s 已提示（不自动跳转）", entity_id)

    def accept(self, entity_id: str) -> Optional[str]:
        """
        用户点了 "Rate Now"。

        Returns:
            跳转目标；claim 已被定时器或 dismiss 抢走时返回 None
        """
        token = self._claims.get(entity_id)
        if self._closed or token is None or not token.claim():
            return None
        token.cancel()
        target = self.target_for(entity_id)
        self.surface.navigate(target)
        return target

    def dismiss(self, entity_id: str) -> bool:
        token = self._claims.get(entity_id)
        if self._closed or token is None or not token.claim():
            return False
        token.cancel()
        self._states[entity_id] = PromptState.DISMISSED
        return True

    def close(self) -> None:
        """消费方销毁：所有未触发的定时器都取消；进行中的查询回来后不再弹提示。"""
        self._closed = True
        for token in self._claims.values():
            token.cancel()
        self._pending = []
        self._timer = None
