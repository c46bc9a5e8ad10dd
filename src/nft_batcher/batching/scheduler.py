from __future__ import annotations

import asyncio
import heapq
import itertools
import logging
from functools import partial
from typing import Callable, Dict, Hashable, List, Optional, Protocol, Tuple

logger = logging.getLogger(__name__)


class TimerHandle(Protocol):
    def cancel(self) -> None:
        ...


class TimerScheduler(Protocol):
    """延遲呼叫的最小介面，可替換為虛擬時間實作。"""

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        ...


class LoopTimerScheduler:
    """使用 asyncio 事件迴圈的 ``call_later``。"""

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None) -> None:
        self._loop = loop

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        loop = self._loop or asyncio.get_running_loop()
        return loop.call_later(delay, callback)


class _VirtualTimer:
    __slots__ = ("due", "callback", "cancelled")

    def __init__(self, due: float, callback: Callable[[], None]) -> None:
        self.due = due
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class VirtualTimerScheduler:
    """以虛擬時間驅動的計時器，呼叫 ``advance`` 才會觸發到期的回呼。"""

    def __init__(self) -> None:
        self._now = 0.0
        self._heap: List[Tuple[float, int, _VirtualTimer]] = []
        self._sequence = itertools.count()

    @property
    def now(self) -> float:
        return self._now

    def call_later(self, delay: float, callback: Callable[[], None]) -> _VirtualTimer:
        timer = _VirtualTimer(self._now + max(0.0, delay), callback)
        heapq.heappush(self._heap, (timer.due, next(self._sequence), timer))
        return timer

    def pending(self) -> int:
        return sum(1 for _, _, timer in self._heap if not timer.cancelled)

    def advance(self, seconds: float) -> int:
        """推進虛擬時間並依到期順序執行回呼，回傳觸發數量。"""

        target = self._now + seconds
        fired = 0
        while self._heap and self._heap[0][0] <= target:
            due, _, timer = heapq.heappop(self._heap)
            self._now = due
            if timer.cancelled:
                continue
            timer.callback()
            fired += 1
        self._now = target
        return fired


class FlushScheduler:
    """每個群組最多一個待觸發的 flush 計時器。

    狀態為 Idle → Armed → Idle：第一次 ``arm`` 啟動固定延遲的計時器，
    之後的 ``arm`` 不會重設或延長；觸發時先清除計時器再呼叫 ``on_fire``。
    """

    def __init__(
        self,
        timer: TimerScheduler,
        delay: float,
        on_fire: Callable[[Hashable], None],
    ) -> None:
        self._timer = timer
        self._delay = delay
        self._on_fire = on_fire
        self._handles: Dict[Hashable, TimerHandle] = {}

    @property
    def delay(self) -> float:
        return self._delay

    def arm(self, group_key: Hashable) -> bool:
        if group_key in self._handles:
            return False
        self._handles[group_key] = self._timer.call_later(self._delay, partial(self._fire, group_key))
        return True

    def cancel(self, group_key: Hashable) -> bool:
        handle = self._handles.pop(group_key, None)
        if handle is None:
            return False
        handle.cancel()
        return True

    def is_armed(self, group_key: Hashable) -> bool:
        return group_key in self._handles

    def armed_groups(self) -> List[Hashable]:
        return list(self._handles)

    def _fire(self, group_key: Hashable) -> None:
        self._handles.pop(group_key, None)
        logger.debug("batch_timer_fired", extra={"group": repr(group_key)})
        self._on_fire(group_key)
