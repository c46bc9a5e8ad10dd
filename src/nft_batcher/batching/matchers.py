from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Hashable, Iterable, Optional, Protocol, Sequence

logger = logging.getLogger(__name__)


class _NotFound:
    """批次結果中查無資料的明確標記（非錯誤）。"""

    _instance: Optional["_NotFound"] = None

    def __new__(cls) -> "_NotFound":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "NOT_FOUND"


NOT_FOUND: Any = _NotFound()


class ResultMatcher(Protocol):
    """將單一區塊的查詢結果拆回各 key。

    回傳的 dict 只需包含有對應結果的 key；未出現的 key 會在整個批次
    完成後以 ``NOT_FOUND`` 結算。
    """

    def match(self, chunk: Sequence[Hashable], results: Any) -> Dict[Hashable, Any]:
        ...


@dataclass(frozen=True)
class PositionalMatcher:
    """結果序列與查詢區塊依位置一對一對齊。"""

    transform: Optional[Callable[[Any], Any]] = None

    def match(self, chunk: Sequence[Hashable], results: Any) -> Dict[Hashable, Any]:
        values = list(results) if results is not None else []
        if len(values) > len(chunk):
            logger.warning(
                "batch_surplus_results",
                extra={"expected": len(chunk), "received": len(values)},
            )
        matched: Dict[Hashable, Any] = {}
        for key, value in zip(chunk, values):
            matched[key] = self.transform(value) if self.transform else value
        return matched


@dataclass(frozen=True)
class ContentAddressedMatcher:
    """每筆回傳紀錄自行標示涵蓋的 key，依內容建立索引後對應。"""

    extract_keys: Callable[[Any], Iterable[Hashable]]
    normalize_key: Optional[Callable[[Any], Hashable]] = None

    def index(self, records: Any) -> Dict[Hashable, Any]:
        index: Dict[Hashable, Any] = {}
        for record in records or []:
            for raw_key in self.extract_keys(record):
                key = self.normalize_key(raw_key) if self.normalize_key else raw_key
                # 後出現的紀錄覆蓋先前的對應
                index[key] = record
        return index

    def match(self, chunk: Sequence[Hashable], results: Any) -> Dict[Hashable, Any]:
        index = self.index(results)
        return {key: index.get(key, NOT_FOUND) for key in chunk}
