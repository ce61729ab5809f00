"""In-memory log buffer shared by writer threads and the flush path."""

from __future__ import annotations

import threading
from collections.abc import Iterable

from .models import LogItem


class LogBuffer:
    """Ordered, lock-protected list of pending entries.

    The lock is only held for list mutations, never across sink I/O.
    """

    def __init__(self) -> None:
        """Create an empty buffer with its own lock."""
        self._lock = threading.Lock()
        self._items: list[LogItem] = []

    def add(self, item: LogItem) -> int:
        """Append an entry and return the buffer size right after the append."""
        with self._lock:
            self._items.append(item)
            return len(self._items)

    def count(self) -> int:
        """Current size (advisory: may race with concurrent add/drain)."""
        return len(self._items)

    def __len__(self) -> int:
        return self.count()

    def drain_all(self) -> list[LogItem]:
        """Return every pending entry in insertion order and clear the buffer."""
        with self._lock:
            drained = self._items
            self._items = []
        return drained

    def requeue(self, items: Iterable[LogItem]) -> None:
        """Put a drained batch back in front of entries added since the drain."""
        batch = list(items)
        if not batch:
            return
        with self._lock:
            self._items[:0] = batch
