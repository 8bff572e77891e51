"""
Batch capture controller for depthcam.

``BatchController`` owns the image buffer and the batch state machine. It
asks the capture session for photos, pauses the session once the batch is
complete, and hands the batch to the upload client when told to send.

State transitions::

    IDLE --capture--> CAPTURING --capture (5th)--> FULL --send--> SENDING
    FULL --remove_last--> CAPTURING
    SENDING --ok--> RESULTED        SENDING --error--> FAILED
    FAILED --send--> SENDING        FAILED/RESULTED --remove_last--> CAPTURING
    any --reset--> IDLE

All buffer and state mutations happen under one lock. Blocking work (the
photo request and the network round trip) runs outside it, so ``reset`` can
be issued while a capture or upload is in flight; the stale outcome is then
discarded by comparing generations.

Usage:

```python
controller = BatchController(MockCamera(), UploadClient(), 'http://host/depth')
controller.start()
for _ in range(5):
    controller.capture()
depth_map = controller.send()
```
"""

from __future__ import annotations

import logging
import threading
from typing import Callable, List, Optional

from ..camera.base import CaptureSession
from ..errors import (
    AlreadySendingError,
    BatchFullError,
    BatchNotReadyError,
    CaptureFailed,
)
from ..sync import multipart
from ..sync.client import DepthMap, UploadClient
from .buffer import BATCH_CAPACITY, ImageBuffer
from .state import BatchSnapshot, BatchState

Listener = Callable[[BatchSnapshot], None]


class BatchController:
    """Drives capture of one batch of photos and its upload."""

    def __init__(self, session: CaptureSession, client: UploadClient, endpoint_url: str,
                 capacity: int = BATCH_CAPACITY) -> None:
        self.session = session
        self.client = client
        self.endpoint_url = endpoint_url
        self.buffer = ImageBuffer(capacity)
        self.logger = logging.getLogger(__name__)

        self._state = BatchState.IDLE
        self._result: Optional[DepthMap] = None
        self._error: Optional[BaseException] = None
        self._paused = False
        self._generation = 0
        self._lock = threading.RLock()
        self._capture_lock = threading.Lock()
        self._listeners: List[Listener] = []

    # Observable state

    @property
    def state(self) -> BatchState:
        return self._state

    @property
    def count(self) -> int:
        return len(self.buffer)

    @property
    def result(self) -> Optional[DepthMap]:
        return self._result

    @property
    def error(self) -> Optional[BaseException]:
        return self._error

    def snapshot(self) -> BatchSnapshot:
        with self._lock:
            return self._snapshot()

    def subscribe(self, listener: Listener) -> None:
        """Register ``listener`` to receive a snapshot after every change."""
        with self._lock:
            self._listeners.append(listener)

    def unsubscribe(self, listener: Listener) -> None:
        with self._lock:
            if listener in self._listeners:
                self._listeners.remove(listener)

    def _snapshot(self) -> BatchSnapshot:
        return BatchSnapshot(state=self._state, count=len(self.buffer),
                             result=self._result, error=self._error)

    def _notify(self, snapshot: BatchSnapshot) -> None:
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(snapshot)
            except Exception:
                self.logger.exception('Batch listener %r failed', listener)

    # Session control

    def _pause_session(self) -> None:
        if not self._paused:
            self.session.pause()
            self._paused = True

    def _resume_session(self) -> None:
        if self._paused:
            self.session.resume()
            self._paused = False

    def start(self) -> None:
        """Check camera authorization and start the live session.

        Raises:
            PermissionDenied: if the camera may not be used.
        """
        self.session.check_authorization()
        self.session.start()
        self._notify(self.snapshot())
        self.logger.info('Capture session started')

    def stop(self) -> None:
        self.session.stop()
        self.logger.info('Capture session stopped')

    # Commands

    def capture(self) -> int:
        """Take one photo and add it to the batch.

        Returns:
            The number of images in the batch afterwards.

        Raises:
            AlreadySendingError: if an upload is in flight.
            BatchFullError: if the batch already holds five images.
            CaptureFailed: if the session could not produce a photo. The
                batch moves to ``FAILED`` but keeps its images.
        """
        with self._capture_lock:
            with self._lock:
                if self._state is BatchState.SENDING:
                    raise AlreadySendingError('Cannot capture while the batch is uploading')
                if self.buffer.is_full:
                    raise BatchFullError(f'Batch already holds {self.buffer.capacity} images')
                generation = self._generation

            try:
                image = self.session.request_photo()
            except Exception as exc:
                error = exc if isinstance(exc, CaptureFailed) else CaptureFailed(str(exc))
                self.logger.error('Photo capture failed: %s', exc)
                with self._lock:
                    if generation == self._generation:
                        self._state = BatchState.FAILED
                        self._error = error
                    snapshot = self._snapshot()
                self._notify(snapshot)
                if error is exc:
                    raise
                raise error from exc

            with self._lock:
                if generation != self._generation:
                    self.logger.info('Discarding photo taken before reset')
                    return len(self.buffer)
                count = self.buffer.append(image)
                self._error = None
                if self.buffer.is_full:
                    self._state = BatchState.FULL
                    self._pause_session()
                else:
                    self._state = BatchState.CAPTURING
                snapshot = self._snapshot()
            self.logger.info('Captured image %d/%d (%d bytes)', count, self.buffer.capacity, len(image))
            self._notify(snapshot)
            return count

    def remove_last(self) -> int:
        """Discard the most recent photo so it can be retaken.

        No-op on an empty batch. Clears any result or error and resumes the
        session if it was paused.

        Returns:
            The number of images in the batch afterwards.

        Raises:
            AlreadySendingError: if an upload is in flight.
        """
        with self._lock:
            if self._state is BatchState.SENDING:
                raise AlreadySendingError('Cannot change the batch while it is uploading')
            if self.buffer.is_empty:
                return 0
            self.buffer.remove_last()
            self._result = None
            self._error = None
            self._state = BatchState.CAPTURING if len(self.buffer) else BatchState.IDLE
            self._resume_session()
            count = len(self.buffer)
            snapshot = self._snapshot()
        self.logger.info('Removed last image; %d remain', count)
        self._notify(snapshot)
        return count

    def reset(self) -> None:
        """Drop the whole batch and any result; back to ``IDLE``."""
        with self._lock:
            self._generation += 1
            self.buffer.clear()
            self._result = None
            self._error = None
            self._state = BatchState.IDLE
            self._resume_session()
            snapshot = self._snapshot()
        self.logger.info('Batch reset')
        self._notify(snapshot)

    def send(self) -> DepthMap:
        """Upload the complete batch and wait for the depth map.

        Allowed from ``FULL`` and, as a retry, from ``FAILED`` with a complete
        batch. The batch is kept whatever the outcome.

        Raises:
            AlreadySendingError: if an upload is already in flight.
            BatchNotReadyError: if the batch does not hold exactly five images,
                or already has a result. No request is made.
            UploadError: if the upload fails; the batch moves to ``FAILED``.
        """
        with self._lock:
            if self._state is BatchState.SENDING:
                raise AlreadySendingError('An upload is already in flight')
            if len(self.buffer) != self.buffer.capacity:
                raise BatchNotReadyError(
                    f'Batch holds {len(self.buffer)} of {self.buffer.capacity} images')
            if self._state not in (BatchState.FULL, BatchState.FAILED):
                raise BatchNotReadyError(
                    f'Cannot send from state {self._state.value}; reset or replace an image first')
            self._state = BatchState.SENDING
            self._result = None
            self._error = None
            self._pause_session()
            generation = self._generation
            images = self.buffer.snapshot()
            snapshot = self._snapshot()
        self._notify(snapshot)

        try:
            request = multipart.build_request(images)
            depth_map = self.client.send(self.endpoint_url, request.encode(), request.boundary)
        except Exception as exc:
            self.logger.error('Batch upload failed: %s', exc)
            with self._lock:
                if generation == self._generation:
                    self._state = BatchState.FAILED
                    self._error = exc
                snapshot = self._snapshot()
            self._notify(snapshot)
            raise

        with self._lock:
            if generation != self._generation:
                self.logger.info('Discarding depth map for a batch that was reset')
                return depth_map
            self._state = BatchState.RESULTED
            self._result = depth_map
            snapshot = self._snapshot()
        self.logger.info('Batch upload succeeded')
        self._notify(snapshot)
        return depth_map
