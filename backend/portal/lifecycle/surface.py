"""
NavigationSurface — lifecycle 核心看到的 UI 副作用出口。

核心只依赖两个能力：
  notify(message, variant, action)           弹 toast
  navigate_after(delay, target, token)       延迟跳转，可取消

OutboxSurface 是 BFF 里的实现：toast 和跳转指令都进一个队列，
浏览器通过 feed/ 和 outbox/ 轮询取走（drain）。
"""

import logging
from abc import ABC, abstractmethod
from collections import deque
from dataclasses import dataclass
from typing import Optional

from .notifications import NotificationAction
from .timers import CancelToken, Scheduler

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ToastMessage:
    message: str
    variant: str
    action: Optional[NotificationAction] = None
    kind: str = 'toast'


@dataclass(frozen=True)
class NavigationDirective:
    target: str
    kind: str = 'navigate'


class NavigationSurface(ABC):

    def __init__(self, scheduler: Scheduler):
        self.scheduler = scheduler

    @abstractmethod
    def notify(self, message: str, variant: str,
               action: Optional[NotificationAction] = None) -> None:
        ...

    @abstractmethod
    def navigate(self, target: str) -> None:
        ...

    def navigate_after(self, delay: float, target: str, token: CancelToken) -> CancelToken:
        """
        delay 毫秒后跳转到 target。

        到期时必须先 token.claim() 成功才跳转；手动点击先 claim 的话，
        这里什么都不做。
        """
        def fire():
            if token.claim():
                logger.info("[Surface] 定时跳转 → %s", target)
                self.navigate(target)

        return self.scheduler.schedule(delay, fire, token)


class OutboxSurface(NavigationSurface):

    def __init__(self, scheduler: Scheduler, maxlen: int = 100):
        super().__init__(scheduler)
        self._outbox: deque = deque(maxlen=maxlen)

    def notify(self, message, variant, action=None):
        self._outbox.append(ToastMessage(message=message, variant=variant, action=action))

    def navigate(self, target):
        self._outbox.append(NavigationDirective(target=target))

    def drain(self) -> list:
        entries = list(self._outbox)
        self._outbox.clear()
        return entries

    def __len__(self):
        return len(self._outbox)
