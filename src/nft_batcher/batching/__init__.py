"""Debounced batch-request coalescing."""

from .coalescer import (
    DEFAULT_CHUNK_SIZE,
    DEFAULT_DELAY_SECONDS,
    BatchCoalescer,
    CollectionBatcher,
    GroupBinding,
)
from .entries import BatchQueue, PendingEntry
from .matchers import NOT_FOUND, ContentAddressedMatcher, PositionalMatcher, ResultMatcher
from .scheduler import FlushScheduler, LoopTimerScheduler, TimerScheduler, VirtualTimerScheduler

__all__ = [
    "BatchCoalescer",
    "BatchQueue",
    "CollectionBatcher",
    "ContentAddressedMatcher",
    "DEFAULT_CHUNK_SIZE",
    "DEFAULT_DELAY_SECONDS",
    "FlushScheduler",
    "GroupBinding",
    "LoopTimerScheduler",
    "NOT_FOUND",
    "PendingEntry",
    "PositionalMatcher",
    "ResultMatcher",
    "TimerScheduler",
    "VirtualTimerScheduler",
]
