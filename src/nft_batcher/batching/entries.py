from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable, Dict, Generic, Hashable, List, Optional, Tuple, TypeVar

from .matchers import ResultMatcher

K = TypeVar("K", bound=Hashable)

FetchFn = Callable[[List[Any]], Any]


class PendingEntry:
    """單一 key 在本批次週期內的共享結果。"""

    __slots__ = ("key", "future", "waiters")

    def __init__(self, key: Hashable, loop: asyncio.AbstractEventLoop) -> None:
        self.key = key
        self.future: asyncio.Future = loop.create_future()
        self.waiters = 0

    @property
    def settled(self) -> bool:
        return self.future.done()

    def attach(self) -> Awaitable[Any]:
        """回傳呼叫端可等待的結果；取消等待不會影響其他共享者。"""

        self.waiters += 1
        return asyncio.shield(self.future)

    def resolve(self, value: Any) -> bool:
        if self.future.done():
            return False
        self.future.set_result(value)
        return True

    def reject(self, error: BaseException) -> bool:
        if self.future.done():
            return False
        self.future.set_exception(error)
        return True


class BatchQueue(Generic[K]):
    """單一群組在一個批次週期內累積的查詢。"""

    def __init__(self, group_key: Hashable, fetch_fn: FetchFn, matcher: ResultMatcher) -> None:
        self.group_key = group_key
        self.fetch_fn = fetch_fn
        self.matcher = matcher
        self._entries: Dict[K, PendingEntry] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def entry_for(self, item_key: K, loop: asyncio.AbstractEventLoop) -> Tuple[PendingEntry, bool]:
        """取得既有項目或依插入順序新增一筆，回傳 (entry, 是否新建)。"""

        entry = self._entries.get(item_key)
        if entry is not None:
            return entry, False
        entry = PendingEntry(item_key, loop)
        self._entries[item_key] = entry
        return entry, True

    def get(self, item_key: K) -> Optional[PendingEntry]:
        return self._entries.get(item_key)

    def keys(self) -> List[K]:
        return list(self._entries)

    def pending(self) -> List[PendingEntry]:
        return [entry for entry in self._entries.values() if not entry.settled]
