"""Bounded ledgers for fusion history and conflict records."""

from __future__ import annotations

from collections import deque
from collections.abc import Iterator
from datetime import datetime
from typing import Generic, Protocol, TypeVar


class _Timestamped(Protocol):
    timestamp: datetime


T = TypeVar("T", bound=_Timestamped)


class Ledger(Generic[T]):
    """Ring buffer of timestamped entries; the oldest entry is evicted first."""

    def __init__(self, limit: int = 100) -> None:
        if limit < 1:
            raise ValueError("Ledger limit must be at least 1.")
        self._entries: deque[T] = deque(maxlen=limit)

    @property
    def limit(self) -> int:
        return self._entries.maxlen or 0

    def append(self, entry: T) -> None:
        self._entries.append(entry)

    def since(self, cutoff: datetime | None) -> list[T]:
        """Entries strictly newer than *cutoff* (all when ``None``), oldest first."""
        if cutoff is None:
            return list(self._entries)
        return [e for e in self._entries if e.timestamp > cutoff]

    def clear(self) -> None:
        self._entries.clear()

    def __iter__(self) -> Iterator[T]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)
