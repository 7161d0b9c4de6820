"""
Bounded job queue between admission and printing.

A thread-safe FIFO with a fixed capacity. Producers block while it is full,
which is what throttles admission to the printer's pace. Closing the queue for
admission is one-way: blocked and later producers get QueueClosedError while
the consumer keeps draining what is already queued.
"""

from __future__ import annotations

import logging
import threading
from collections import deque
from typing import Deque, Generic, Iterator, Optional, TypeVar

from remote_print.core.errors import QueueClosedError

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_CAPACITY = 10


class JobQueue(Generic[T]):
    def __init__(self, capacity: int = DEFAULT_CAPACITY) -> None:
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self.capacity = capacity
        self._items: Deque[T] = deque()
        self._lock = threading.Lock()
        self._not_full = threading.Condition(self._lock)
        self._not_empty = threading.Condition(self._lock)
        self._closed = False

    @property
    def closed(self) -> bool:
        with self._lock:
            return self._closed

    def qsize(self) -> int:
        with self._lock:
            return len(self._items)

    def push(self, item: T, timeout: Optional[float] = None) -> None:
        """
        Append an item, blocking while the queue is full.

        Raises:
            QueueClosedError if the queue is (or becomes, while waiting) closed for admission.
            TimeoutError if `timeout` elapses while the queue is still full.
        """
        with self._not_full:
            if not self._not_full.wait_for(lambda: self._closed or len(self._items) < self.capacity, timeout):
                raise TimeoutError("job queue is full")
            if self._closed:
                raise QueueClosedError("job queue is closed for admission")
            self._items.append(item)
            self._not_empty.notify()

    def pop(self, timeout: Optional[float] = None) -> Optional[T]:
        """
        Remove and return the oldest item, blocking while the queue is empty.
        Returns None once the queue is closed and drained, or when `timeout` elapses.
        """
        with self._not_empty:
            self._not_empty.wait_for(lambda: self._closed or bool(self._items), timeout)
            if not self._items:
                return None
            item = self._items.popleft()
            self._not_full.notify()
            return item

    def pop_all(self) -> Iterator[T]:
        """
        Yield items in FIFO order as they arrive; ends (without error) once the
        queue is closed for admission and every queued item has been consumed.
        """
        while True:
            item = self.pop()
            if item is None:
                return
            yield item

    def close_for_admission(self) -> None:
        """Stop accepting new items; queued items remain consumable. Idempotent."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
            pending = len(self._items)
            self._not_full.notify_all()
            self._not_empty.notify_all()
        logger.info("Job queue closed for admission (%d job(s) left to drain)", pending)


__all__ = ["DEFAULT_CAPACITY", "JobQueue"]
