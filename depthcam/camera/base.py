"""
Capture session abstractions for depthcam.

This module defines the interface that all camera backends must implement.
A capture session owns a live camera: it is started once, can be paused
while a batch is full or being uploaded, and produces one JPEG-encoded photo
per ``request_photo`` call.

Implementations may use mock data for development/testing or interact with
real hardware on a Raspberry Pi (e.g., via libcamera).
"""

from __future__ import annotations

import enum
import logging

from ..errors import PermissionDenied


class AuthorizationStatus(enum.Enum):
    """Camera access authorization, as reported by the platform."""

    AUTHORIZED = 'authorized'
    NOT_DETERMINED = 'not_determined'
    DENIED = 'denied'
    RESTRICTED = 'restricted'


class CaptureSession:
    """Abstract base class for camera backends."""

    def __init__(self) -> None:
        self._running = False
        self.logger = logging.getLogger(__name__)

    @property
    def running(self) -> bool:
        """True while the session is live (started and not paused)."""
        return self._running

    def authorization_status(self) -> AuthorizationStatus:
        """Return the current camera authorization status."""
        return AuthorizationStatus.AUTHORIZED

    def request_access(self) -> bool:
        """Ask the platform for camera access.

        Backends without a permission model grant access unconditionally.
        """
        return True

    def check_authorization(self) -> None:
        """Make sure the camera may be used, asking for access if undecided.

        Raises:
            PermissionDenied: if access is denied, restricted, or refused
                when requested.
        """
        status = self.authorization_status()
        if status is AuthorizationStatus.AUTHORIZED:
            return
        if status is AuthorizationStatus.NOT_DETERMINED:
            if self.request_access():
                return
            raise PermissionDenied('Camera access was not granted')
        raise PermissionDenied(f'Camera access is {status.value}')

    def start(self) -> None:
        """Start streaming. Idempotent."""
        self._running = True

    def stop(self) -> None:
        """Stop streaming and release hardware. Idempotent."""
        self._running = False

    def pause(self) -> None:
        """Pause the live stream while a batch is full or uploading."""
        if self._running:
            self.logger.debug('Pausing capture session')
        self._running = False

    def resume(self) -> None:
        """Resume the live stream after a pause."""
        if not self._running:
            self.logger.debug('Resuming capture session')
        self._running = True

    def request_photo(self) -> bytes:
        """Capture a single photo.

        Returns:
            JPEG-encoded image bytes.

        Raises:
            CaptureFailed: if the backend could not produce a photo.
            NotImplementedError: if not implemented by subclass.
        """
        raise NotImplementedError('request_photo must be implemented by subclasses')
