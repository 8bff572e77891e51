"""
Background command worker.

A front end (UI event loop, terminal prompt) must never block on a photo
request or an upload. ``CommandWorker`` runs controller commands on a single
background thread, in the order they were submitted, and hands back a
``concurrent.futures.Future`` for each one.
"""

from __future__ import annotations

import logging
import queue
import threading
from concurrent.futures import Future
from typing import Any, Callable, Optional, Tuple

from ..errors import AlreadySendingError
from ..sync.client import DepthMap
from .controller import BatchController

_STOP = object()


class CommandWorker:
    """Single-writer queue in front of a ``BatchController``."""

    def __init__(self, controller: BatchController) -> None:
        self.controller = controller
        self.logger = logging.getLogger(__name__)
        self._queue: 'queue.Queue[Any]' = queue.Queue()
        self._thread: Optional[threading.Thread] = None
        self._pending_send: Optional[Future] = None
        self._send_lock = threading.Lock()
        self._stopped = False
        self._submit_lock = threading.Lock()

    def start(self) -> None:
        """Start the worker thread. Idempotent."""
        with self._submit_lock:
            if self._thread is not None and self._thread.is_alive():
                return
            self._stopped = False
            self._thread = threading.Thread(name='BatchWorker', target=self._run)
            self._thread.daemon = True
            self._thread.start()

    def stop(self, timeout: float = 5.0) -> None:
        """Finish queued commands, then stop the thread.

        Commands submitted after this call fail immediately.
        """
        with self._submit_lock:
            self._stopped = True
            thread, self._thread = self._thread, None
            if thread is None:
                return
            self._queue.put(_STOP)
        thread.join(timeout=timeout)

    def _run(self) -> None:
        while True:
            item = self._queue.get()
            if item is _STOP:
                break
            future, fn, args = item
            if not future.set_running_or_notify_cancel():
                continue
            try:
                future.set_result(fn(*args))
            except Exception as exc:
                self.logger.debug('Command %s raised %r', getattr(fn, '__name__', fn), exc)
                future.set_exception(exc)

    def submit(self, fn: Callable[..., Any], *args: Any) -> Future:
        """Queue ``fn(*args)`` to run on the worker thread."""
        future: Future = Future()
        item: Tuple[Future, Callable[..., Any], Tuple[Any, ...]] = (future, fn, args)
        with self._submit_lock:
            if self._stopped:
                future.set_exception(RuntimeError('Command worker is not running'))
                return future
            self._queue.put(item)
        return future

    def take_photo(self) -> 'Future[int]':
        return self.submit(self.controller.capture)

    def remove_last(self) -> 'Future[int]':
        return self.submit(self.controller.remove_last)

    def reset(self) -> 'Future[None]':
        return self.submit(self.controller.reset)

    def send(self) -> 'Future[DepthMap]':
        """Queue an upload; rejected at once if one is already queued or running."""
        with self._send_lock:
            if self._pending_send is not None and not self._pending_send.done():
                future: Future = Future()
                future.set_exception(AlreadySendingError('An upload is already queued'))
                return future
            self._pending_send = self.submit(self.controller.send)
            return self._pending_send
