from __future__ import annotations

import logging
from collections import deque
from typing import Callable, Deque, Optional

Callback = Callable[[], None]


class DeferredQueue:
    """Runs callbacks on a later turn of the host thread.

    The host drains the queue once per client tick. Callbacks queued while a
    drain is in progress wait for the next drain, so a deferred step never runs
    in the same turn as the event that scheduled it.
    """

    def __init__(self, logger: Optional[logging.Logger] = None) -> None:
        self._queue: Deque[Callback] = deque()
        self._logger = logger or logging.getLogger("NestTracker.Deferred")

    @property
    def pending(self) -> int:
        return len(self._queue)

    def schedule(self, callback: Callback) -> None:
        self._queue.append(callback)

    def drain(self) -> int:
        batch = len(self._queue)
        ran = 0
        for _ in range(batch):
            if not self._queue:
                break
            callback = self._queue.popleft()
            ran += 1
            try:
                callback()
            except Exception as exc:
                self._logger.warning("Deferred callback %r failed: %s", callback, exc, exc_info=exc)
        return ran

    def clear(self) -> None:
        self._queue.clear()
