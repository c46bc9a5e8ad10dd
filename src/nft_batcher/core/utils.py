from __future__ import annotations

from typing import Iterator, Sequence, TypeVar


T = TypeVar("T")


def chunked(sequence: Sequence[T], size: int) -> Iterator[Sequence[T]]:
    """將序列切分為固定大小區塊。"""

    if size <= 0:
        raise ValueError("size 必須為正整數")
    for index in range(0, len(sequence), size):
        yield sequence[index : index + size]


def to_token_id(value: object) -> int:
    """將 Candid nat、字串或整數轉為 token id。"""

    if isinstance(value, bool):
        raise ValueError(f"無效的 token id: {value!r}")
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip():
        return int(value.strip())
    raise ValueError(f"無效的 token id: {value!r}")
