"""
定时器与取消令牌。

每一次调度都返回一个 CancelToken，调用方负责在以下两种情况调用 cancel()：
  1. 新的触发事件取代了旧的（debounce 重置）
  2. 消费方销毁（session teardown）

CancelToken 同时带一个 claim 标记：
"手动点击" 和 "定时器触发" 两条路径都必须先 claim() 成功才能执行副作用，
保证二者最多只有一个生效。

所有时间单位都是毫秒。
"""

import asyncio
from abc import ABC, abstractmethod
from typing import Callable, Optional


class CancelToken:
    """一次调度的句柄：可取消、可 claim、可查询是否已触发。"""

    def __init__(self):
        self._handle = None
        self.cancelled = False
        self.claimed = False
        self.fired = False

    def attach(self, handle) -> None:
        """绑定底层定时器句柄（asyncio.TimerHandle 或任何带 cancel() 的对象）。"""
        self._handle = handle

    @property
    def armed(self) -> bool:
        return self._handle is not None and not (self.cancelled or self.fired)

    def cancel(self) -> None:
        if self._handle is not None and not self.fired:
            self._handle.cancel()
        self.cancelled = True

    def claim(self) -> bool:
        """
        抢占执行权。只有第一次调用且未被取消时返回 True。

        单线程事件循环下，检查和赋值之间不会被打断。
        """
        if self.claimed or self.cancelled:
            return False
        self.claimed = True
        return True

    def run(self, callback: Callable[[], None]) -> None:
        """定时器到期时由调度器调用。"""
        if self.cancelled:
            return
        self.fired = True
        callback()


class Scheduler(ABC):
    """调度器抽象。生产用事件循环，测试用手动时钟。"""

    @abstractmethod
    def schedule(self, delay: float, callback: Callable[[], None],
                 token: Optional[CancelToken] = None) -> CancelToken:
        """delay 毫秒后执行 callback，返回（或复用传入的）CancelToken。"""


class LoopScheduler(Scheduler):
    """基于 asyncio 事件循环的调度器。"""

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None):
        self._loop = loop or asyncio.get_running_loop()

    def schedule(self, delay, callback, token=None):
        token = token or CancelToken()
        handle = self._loop.call_later(max(delay, 0) / 1000, token.run, callback)
        token.attach(handle)
        return token
