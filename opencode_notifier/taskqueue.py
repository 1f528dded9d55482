"""Single-worker FIFO queue for per-session progress updates."""

import logging
import threading
from collections import deque
from typing import Callable

logger = logging.getLogger(__name__)


class SerialTaskQueue:
    """Run submitted tasks one at a time, in submission order.

    There is no worker thread. Whoever submits into an idle queue drains it;
    tasks submitted while a drain is in progress (from another thread, or
    from inside a running task) are appended and picked up by that drain.
    A failing task is logged and the queue moves on.
    """

    def __init__(self, name: str = ""):
        self.name = name
        self._tasks: deque = deque()
        self._lock = threading.Lock()
        self._draining = False

    @property
    def pending(self) -> int:
        with self._lock:
            return len(self._tasks)

    @property
    def draining(self) -> bool:
        with self._lock:
            return self._draining

    def submit(self, task: Callable[[], None]) -> None:
        with self._lock:
            self._tasks.append(task)
            if self._draining:
                return
            self._draining = True
        self._drain()

    def _drain(self) -> None:
        while True:
            with self._lock:
                if not self._tasks:
                    self._draining = False
                    return
                task = self._tasks.popleft()
            try:
                task()
            except Exception as e:
                logger.error(f"Queued task failed ({self.name or 'queue'}): {e}")
