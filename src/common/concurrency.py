"""
Task Group

Fan-out of independent blocking tasks on threads, joined at a single barrier,
keeping only the first error raised by any task.
"""

from __future__ import annotations

import logging
import threading
from typing import Callable, List, Optional

logger = logging.getLogger(__name__)


class TaskGroup:
    """
    Runs each submitted callable on its own thread.

    A failing task never cancels its siblings: every task runs to completion,
    the first error (in completion order) is kept and the rest are dropped.
    With ``max_workers`` set, :meth:`go` blocks until a slot is free.

    Example:
        with TaskGroup(name="shutdown") as group:
            for vmid in vmids:
                group.go(shutdown, vmid)
        # leaving the block joins all tasks and raises the first error
    """

    def __init__(self, max_workers: Optional[int] = None, name: str = "task"):
        if max_workers is not None and max_workers < 1:
            raise ValueError("max_workers must be at least 1")
        self.name = name
        self._slots = threading.BoundedSemaphore(max_workers) if max_workers else None
        self._lock = threading.Lock()
        self._threads: List[threading.Thread] = []
        self._error: Optional[BaseException] = None

    @property
    def error(self) -> Optional[BaseException]:
        """First error raised by any finished task."""
        with self._lock:
            return self._error

    def go(self, func: Callable[..., object], *args, **kwargs) -> None:
        """Start ``func(*args, **kwargs)`` as a new task."""
        if self._slots is not None:
            self._slots.acquire()

        with self._lock:
            index = len(self._threads)
            thread = threading.Thread(
                target=self._run,
                args=(func, args, kwargs),
                name=f"{self.name}-{index}",
                daemon=True,
            )
            self._threads.append(thread)
        thread.start()

    def _run(self, func, args, kwargs) -> None:
        try:
            func(*args, **kwargs)
        except Exception as e:
            with self._lock:
                if self._error is None:
                    self._error = e
                    return
            logger.debug(f"{self.name}: dropping later error: {e}")
        finally:
            if self._slots is not None:
                self._slots.release()

    def wait(self) -> Optional[BaseException]:
        """Join every task started so far and return the first error, if any."""
        joined = 0
        while True:
            with self._lock:
                pending = self._threads[joined:]
            if not pending:
                break
            for thread in pending:
                thread.join()
            joined += len(pending)
        return self.error

    def __enter__(self) -> "TaskGroup":
        return self

    def __exit__(self, exc_type, exc, tb):
        error = self.wait()
        if exc_type is None and error is not None:
            raise error
