"""
Lifecycle hook queues for post-load and post-save notification.

A drain swaps the pending list for an empty one before running anything,
so a callback that registers another callback (or itself) only schedules
it for the next trigger. Callbacks run sequentially, in registration
order, on the caller's thread.
"""

import logging
import threading
from typing import Any, Callable, Iterator, List

from ..utils.error_handling import ErrorCategory, handle_error

logger = logging.getLogger(__name__)


class HookQueue:
    """Ordered, run-once-per-trigger callback registry."""

    def __init__(self, name: str):
        self.name = name
        self._callbacks: List[Callable[..., Any]] = []
        self._lock = threading.Lock()

    def append(self, callback: Callable[..., Any]) -> None:
        if not callable(callback):
            raise TypeError(f"{self.name} hook must be callable, got {type(callback).__name__}")
        with self._lock:
            self._callbacks.append(callback)

    def __len__(self) -> int:
        with self._lock:
            return len(self._callbacks)

    def __iter__(self) -> Iterator[Callable[..., Any]]:
        with self._lock:
            return iter(list(self._callbacks))

    def __contains__(self, callback: object) -> bool:
        with self._lock:
            return callback in self._callbacks

    def clear(self) -> None:
        with self._lock:
            self._callbacks = []

    def drain(self, *args: Any) -> int:
        """
        Run and remove every currently queued callback.

        A failing callback is reported and does not stop the rest of the
        batch.

        Returns:
            Number of callbacks invoked
        """
        with self._lock:
            pending, self._callbacks = self._callbacks, []

        for callback in pending:
            try:
                callback(*args)
            except Exception as e:
                handle_error(
                    e,
                    f"{self.name}_hook",
                    category=ErrorCategory.CONFIG,
                    additional_context={'callback': getattr(callback, '__qualname__', repr(callback))},
                )

        if pending:
            logger.debug(f"Ran {len(pending)} {self.name} hook(s)")
        return len(pending)


__all__ = ['HookQueue']
