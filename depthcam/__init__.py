"""
depthcam
========

Capture a batch of five photos and upload it to a depth server.

Modules:
    config: YAML configuration
    errors: Exception hierarchy
    camera: Capture session backends
    batch: Image buffer, batch state machine and command worker
    sync: multipart encoding and the upload client
"""

__version__ = "0.1.0"

from .batch.buffer import BATCH_CAPACITY, ImageBuffer
from .batch.controller import BatchController
from .batch.state import BatchSnapshot, BatchState
from .batch.worker import CommandWorker
from .camera.base import AuthorizationStatus, CaptureSession
from .camera.mock_camera import MockCamera
from .config import Config
from .errors import (
    AlreadySendingError,
    BatchFullError,
    BatchNotReadyError,
    CaptureFailed,
    DepthCamError,
    InvalidData,
    InvalidResponse,
    InvalidURL,
    PermissionDenied,
    UploadError,
)
from .sync.client import DepthMap, UploadClient
from .sync.multipart import build_request, decode_multipart, encode_multipart, make_boundary
