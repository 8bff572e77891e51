"""
Exception types raised by depthcam.

Everything derives from ``DepthCamError`` so a front end can catch the whole
family in one place. Upload failures share the ``UploadError`` base; those are
the errors that move a batch into the ``FAILED`` state.
"""

from __future__ import annotations

from typing import Optional


class DepthCamError(Exception):
    """Base class for all depthcam errors."""


class PermissionDenied(DepthCamError):
    """Camera access was refused or is unavailable."""


class CaptureFailed(DepthCamError):
    """The capture session could not produce a photo."""


class BatchFullError(DepthCamError):
    """The batch already holds the maximum number of images."""


class BatchNotReadyError(DepthCamError):
    """A send was requested before the batch was complete."""


class AlreadySendingError(DepthCamError):
    """An upload is already in flight for this batch."""


class UploadError(DepthCamError):
    """Base class for failures of the upload round trip."""


class InvalidURL(UploadError):
    """The endpoint URL could not be parsed."""


class InvalidResponse(UploadError):
    """The server did not answer with HTTP 200, or the transport failed.

    ``status_code`` is None when no response was received at all
    (connection error or timeout).
    """

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class InvalidData(UploadError):
    """The response body could not be decoded as an image."""
