from __future__ import annotations

import asyncio
import inspect
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Dict, Hashable, Iterable, List, Optional, Set

from ..config.settings import AppSettings
from ..config.validators import validate_batching
from ..core.errors import ConfigurationError, FetchFailure, FetchTimeoutError, GroupNotConfiguredError
from ..core.utils import chunked
from .entries import BatchQueue, FetchFn
from .matchers import NOT_FOUND, PositionalMatcher, ResultMatcher
from .scheduler import FlushScheduler, LoopTimerScheduler, TimerScheduler

DEFAULT_DELAY_SECONDS = 0.010
DEFAULT_CHUNK_SIZE = 25

_ALL_GROUPS: Any = object()


@dataclass(frozen=True)
class GroupBinding:
    """群組預先註冊的查詢函式與結果對應策略。"""

    fetch_fn: FetchFn
    matcher: ResultMatcher


class BatchCoalescer:
    """將同一群組內的單筆查詢合併為分段批次呼叫。

    每個 group key 在一個批次週期內只有一個佇列與一個計時器。計時器觸發時
    佇列立即自登錄表移除，之後的查詢會開啟新的週期；被移除的佇列依
    ``chunk_size`` 分段、依序呼叫查詢函式，再以群組的 matcher 將結果拆回
    各個等待者。所有區塊成功後才一併結算；任何一段失敗，整個週期的等待者都會
    收到同一個例外。

    所有方法都必須在同一個事件迴圈執行緒內呼叫。
    """

    def __init__(
        self,
        *,
        delay: float = DEFAULT_DELAY_SECONDS,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        fetch_timeout: Optional[float] = None,
        timer: Optional[TimerScheduler] = None,
        default_matcher: Optional[ResultMatcher] = None,
    ) -> None:
        if delay < 0:
            raise ConfigurationError("delay 不可為負數")
        if chunk_size <= 0:
            raise ConfigurationError("chunk_size 必須為正整數")
        if fetch_timeout is not None and fetch_timeout <= 0:
            raise ConfigurationError("fetch_timeout 必須大於 0")
        self._chunk_size = chunk_size
        self._fetch_timeout = fetch_timeout
        self._default_matcher: ResultMatcher = default_matcher or PositionalMatcher()
        self._queues: Dict[Hashable, BatchQueue] = {}
        self._bindings: Dict[Hashable, GroupBinding] = {}
        self._scheduler = FlushScheduler(timer or LoopTimerScheduler(), delay, self._on_timer)
        self._flushes: Set[asyncio.Task] = set()
        self._logger = logging.getLogger(__name__)

    @classmethod
    def from_settings(
        cls,
        settings: AppSettings,
        *,
        timer: Optional[TimerScheduler] = None,
    ) -> "BatchCoalescer":
        validate_batching(settings)
        return cls(
            delay=settings.batch_delay_seconds,
            chunk_size=settings.batch_chunk_size,
            fetch_timeout=settings.batch_fetch_timeout_seconds,
            timer=timer,
        )

    async def __aenter__(self) -> "BatchCoalescer":
        return self

    async def __aexit__(self, *_: object) -> None:
        await self.aclose()

    @property
    def chunk_size(self) -> int:
        return self._chunk_size

    def configure(
        self,
        group_key: Hashable,
        fetch_fn: FetchFn,
        matcher: Optional[ResultMatcher] = None,
    ) -> None:
        """為群組註冊查詢函式；從下一個批次週期開始生效。"""

        self._bindings[group_key] = GroupBinding(fetch_fn, matcher or self._default_matcher)

    def is_configured(self, group_key: Hashable) -> bool:
        return group_key in self._bindings

    def forget(self, group_key: Hashable) -> bool:
        """移除群組的註冊；已開啟的週期仍使用原本的查詢函式。"""

        return self._bindings.pop(group_key, None) is not None

    def bind(
        self,
        group_key: Hashable,
        fetch_fn: Optional[FetchFn] = None,
        matcher: Optional[ResultMatcher] = None,
    ) -> "CollectionBatcher":
        """取得綁定單一群組的查詢介面。

        群組尚未註冊時以 ``fetch_fn`` 註冊；已註冊時沿用既有註冊，
        ``fetch_fn`` 不同則記錄 ``batch_fetcher_mismatch``。要替換註冊請用
        ``configure``。
        """

        binding = self._bindings.get(group_key)
        if binding is None:
            if fetch_fn is None:
                raise GroupNotConfiguredError(f"群組尚未註冊查詢函式: {group_key!r}")
            self.configure(group_key, fetch_fn, matcher)
        elif fetch_fn is not None and fetch_fn != binding.fetch_fn:
            self._logger.warning("batch_fetcher_mismatch", extra={"group": repr(group_key)})
        return CollectionBatcher(self, group_key)

    def request(
        self,
        group_key: Hashable,
        fetch_fn: Optional[FetchFn],
        item_key: Hashable,
        *,
        matcher: Optional[ResultMatcher] = None,
    ) -> Awaitable[Any]:
        """登記單筆查詢並回傳可等待的結果。

        查詢失敗不會在此拋出，而是透過回傳的 awaitable 傳遞。``fetch_fn`` 與
        ``matcher`` 只在開啟新週期時採用；群組若已註冊則以註冊內容為準。
        """

        loop = asyncio.get_running_loop()
        queue = self._queues.get(group_key)
        if queue is None:
            queue = self._open_queue(group_key, fetch_fn, matcher)
        elif fetch_fn is not None and fetch_fn != queue.fetch_fn:
            self._logger.warning("batch_fetcher_mismatch", extra={"group": repr(group_key)})

        entry, created = queue.entry_for(item_key, loop)
        if not created:
            self._logger.debug(
                "batch_request_joined",
                extra={"group": repr(group_key), "key": repr(item_key), "waiters": entry.waiters + 1},
            )
        if self._scheduler.arm(group_key):
            self._logger.debug(
                "batch_armed",
                extra={"group": repr(group_key), "delay": self._scheduler.delay},
            )
        return entry.attach()

    def pending_groups(self) -> List[Hashable]:
        return list(self._queues)

    def queued_keys(self, group_key: Hashable) -> List[Hashable]:
        queue = self._queues.get(group_key)
        return queue.keys() if queue is not None else []

    def is_armed(self, group_key: Hashable) -> bool:
        return self._scheduler.is_armed(group_key)

    async def flush(self, group_key: Hashable = _ALL_GROUPS) -> None:
        """立即送出指定群組（未指定則全部群組）的佇列並等待完成。"""

        group_keys = list(self._queues) if group_key is _ALL_GROUPS else [group_key]
        for key in group_keys:
            self._scheduler.cancel(key)
            queue = self._queues.pop(key, None)
            if queue is not None:
                self._start_flush(queue)
        await self.wait_idle()

    async def wait_idle(self) -> None:
        """等待所有進行中的批次完成。"""

        while self._flushes:
            await asyncio.gather(*list(self._flushes), return_exceptions=True)

    async def aclose(self) -> None:
        await self.flush()

    def _open_queue(
        self,
        group_key: Hashable,
        fetch_fn: Optional[FetchFn],
        matcher: Optional[ResultMatcher],
    ) -> BatchQueue:
        binding = self._bindings.get(group_key)
        if binding is None:
            if fetch_fn is None:
                raise GroupNotConfiguredError(f"群組尚未註冊查詢函式: {group_key!r}")
            binding = GroupBinding(fetch_fn, matcher or self._default_matcher)
        elif fetch_fn is not None and fetch_fn != binding.fetch_fn:
            self._logger.warning("batch_fetcher_mismatch", extra={"group": repr(group_key)})
        queue = BatchQueue(group_key, binding.fetch_fn, binding.matcher)
        self._queues[group_key] = queue
        return queue

    def _on_timer(self, group_key: Hashable) -> None:
        queue = self._queues.pop(group_key, None)
        if queue is None:
            return
        self._start_flush(queue)

    def _start_flush(self, queue: BatchQueue) -> None:
        task = asyncio.get_running_loop().create_task(self._flush_queue(queue))
        self._flushes.add(task)
        task.add_done_callback(self._flushes.discard)

    async def _flush_queue(self, queue: BatchQueue) -> None:
        keys = queue.keys()
        chunks = [list(chunk) for chunk in chunked(keys, self._chunk_size)]
        group = repr(queue.group_key)
        if self._logger.isEnabledFor(logging.DEBUG):
            self._logger.debug(
                "batch_flush_started",
                extra={"group": group, "keys": len(keys), "chunks": len(chunks)},
            )

        # 全部區塊成功後才結算，任一區塊失敗即整個週期失敗
        matched: Dict[Hashable, Any] = {}
        try:
            for index, chunk in enumerate(chunks):
                results = await self._fetch_chunk(queue, chunk)
                chunk_matches = queue.matcher.match(chunk, results)
                for key in chunk:
                    if key in chunk_matches:
                        matched[key] = chunk_matches[key]
                self._logger.debug(
                    "batch_chunk_fetched",
                    extra={"group": group, "chunk": index, "size": len(chunk)},
                )
        except asyncio.CancelledError:
            self._reject_pending(queue, FetchFailure(f"批次查詢已取消: {group}"))
            raise
        except Exception as error:
            self._logger.warning(
                "batch_flush_failed",
                extra={"group": group, "keys": len(keys), "error": str(error)},
            )
            self._reject_pending(queue, error)
            return

        unresolved: List[Hashable] = []
        for key in keys:
            entry = queue.get(key)
            if key in matched:
                entry.resolve(matched[key])
            else:
                unresolved.append(key)
                entry.resolve(NOT_FOUND)
        if unresolved:
            self._logger.warning(
                "batch_unresolved_keys",
                extra={"group": group, "keys": [repr(key) for key in unresolved]},
            )

    async def _fetch_chunk(self, queue: BatchQueue, chunk: List[Hashable]) -> Any:
        result = queue.fetch_fn(chunk)
        if not inspect.isawaitable(result):
            return result
        if self._fetch_timeout is None:
            return await result
        try:
            return await asyncio.wait_for(result, timeout=self._fetch_timeout)
        except asyncio.TimeoutError as error:
            raise FetchTimeoutError(
                f"批次查詢逾時（{self._fetch_timeout}s）: {queue.group_key!r}"
            ) from error

    @staticmethod
    def _reject_pending(queue: BatchQueue, error: BaseException) -> None:
        for entry in queue.pending():
            entry.reject(error)


class CollectionBatcher:
    """綁定單一群組的查詢介面。"""

    def __init__(self, coalescer: BatchCoalescer, group_key: Hashable) -> None:
        self._coalescer = coalescer
        self._group_key = group_key

    @property
    def group_key(self) -> Hashable:
        return self._group_key

    def request(self, item_key: Hashable) -> Awaitable[Any]:
        return self._coalescer.request(self._group_key, None, item_key)

    async def request_many(self, item_keys: Iterable[Hashable]) -> List[Any]:
        waits = [self.request(key) for key in item_keys]
        return list(await asyncio.gather(*waits))
