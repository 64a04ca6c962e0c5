from __future__ import annotations

import logging
import queue
import threading
from typing import Callable, Optional, Tuple

Request = Callable[[], None]
_Job = Tuple[str, Request]


class RequestWorker:
    """Single background thread that sends crowdsourcing requests in order.

    Requests are fire-and-forget: :meth:`dispatch` queues one and returns at
    once. Each request runs exactly once. Requests still queued when the worker
    stops are dropped and counted in the log.
    """

    def __init__(self, logger: logging.Logger, *, name: str = "NestTrackerRequests") -> None:
        self._queue: "queue.Queue[Optional[_Job]]" = queue.Queue()
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._logger = logger
        self._name = name

    @property
    def running(self) -> bool:
        thread = self._thread
        return bool(thread and thread.is_alive() and not self._stop.is_set())

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    def start(self) -> None:
        if self.running:
            return
        self._stop.clear()
        thread = threading.Thread(target=self._serve, name=self._name, daemon=True)
        self._thread = thread
        thread.start()
        self._logger.debug("Request worker %s started", self._name)

    def stop(self, timeout: float = 2.0) -> None:
        self._stop.set()
        self._queue.put(None)
        thread = self._thread
        self._thread = None
        if thread is not None:
            thread.join(timeout=timeout)
            if thread.is_alive():
                self._logger.warning("Request worker %s did not exit within %.1fs", thread.name, timeout)
                return
        dropped = self._discard_pending()
        if dropped:
            self._logger.info("Dropped %d queued request(s) on shutdown", dropped)

    def dispatch(self, request: Request, *, description: str = "request") -> bool:
        """Queue ``request`` for the worker thread.

        Returns ``False`` without queueing when the worker is not running, so the
        caller can decide to run the request itself.
        """

        if not self.running:
            return False
        self._queue.put((description, request))
        return True

    def _serve(self) -> None:
        while not self._stop.is_set():
            job = self._queue.get()
            if job is None:
                break
            description, request = job
            try:
                request()
            except Exception as exc:
                self._logger.warning("Unhandled error in %s: %s", description, exc, exc_info=exc)

    def _discard_pending(self) -> int:
        dropped = 0
        while True:
            try:
                job = self._queue.get_nowait()
            except queue.Empty:
                return dropped
            if job is not None:
                dropped += 1
