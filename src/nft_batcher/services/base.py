from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Hashable, List, Tuple

from ..batching import BatchCoalescer, CollectionBatcher, PositionalMatcher, ResultMatcher


@dataclass(frozen=True)
class ClientFetch:
    """以 client 方法加上固定參數組成的批次查詢函式。

    bound method 只在同一個 client 實例時相等，因此兩個服務共用 coalescer
    但使用不同 client 時，群組註冊的比對會發現差異。
    """

    method: Callable[..., Any]
    args: Tuple[Any, ...] = ()
    kwargs: Tuple[Tuple[str, Any], ...] = ()

    def __call__(self, keys: List[Any]) -> Any:
        return self.method(*self.args, keys, **dict(self.kwargs))


class BatchedLookupService:
    """以共享的 BatchCoalescer 合併同一 canister 單筆查詢的服務基底。

    群組 key 為 ``(kind, *group)``，不同查詢種類即使針對同一 canister
    也不會落在同一批次。
    """

    kind: str = ""

    def __init__(self, client: Any, coalescer: BatchCoalescer) -> None:
        self._client = client
        self._coalescer = coalescer

    def batcher(self, *group: Hashable) -> CollectionBatcher:
        return self._coalescer.bind((self.kind, *group), self._fetcher(*group), self._matcher())

    def release(self, *group: Hashable) -> bool:
        """移除群組註冊，例如不再查詢的 canister。"""

        return self._coalescer.forget((self.kind, *group))

    def _fetcher(self, *group: Hashable) -> ClientFetch:
        raise NotImplementedError

    def _matcher(self) -> ResultMatcher:
        return PositionalMatcher()
