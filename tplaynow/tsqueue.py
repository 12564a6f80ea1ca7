"""A double-ended queue safe to share between threads."""

from __future__ import annotations

import threading
from collections import deque
from typing import Deque, Generic, Optional, TypeVar

T = TypeVar("T")


class ThreadSafeQueue(Generic[T]):
    """Deque guarded by a lock, with a blocking wait for items."""

    def __init__(self) -> None:
        self._items: Deque[T] = deque()
        self._cond = threading.Condition()

    def front(self) -> T:
        """Return the first item without removing it."""
        with self._cond:
            if not self._items:
                raise IndexError("front of empty queue")
            return self._items[0]

    def back(self) -> T:
        """Return the last item without removing it."""
        with self._cond:
            if not self._items:
                raise IndexError("back of empty queue")
            return self._items[-1]

    def push_back(self, item: T) -> None:
        with self._cond:
            self._items.append(item)
            self._cond.notify()

    def push_front(self, item: T) -> None:
        with self._cond:
            self._items.appendleft(item)
            self._cond.notify()

    def empty(self) -> bool:
        with self._cond:
            return not self._items

    def __len__(self) -> int:
        with self._cond:
            return len(self._items)

    def clear(self) -> None:
        with self._cond:
            self._items.clear()

    def pop_front(self) -> T:
        """Remove and return the first item."""
        with self._cond:
            if not self._items:
                raise IndexError("pop from empty queue")
            return self._items.popleft()

    def pop_back(self) -> T:
        """Remove and return the last item."""
        with self._cond:
            if not self._items:
                raise IndexError("pop from empty queue")
            return self._items.pop()

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until the queue holds an item; False if ``timeout`` ran out."""
        with self._cond:
            return self._cond.wait_for(lambda: bool(self._items), timeout)