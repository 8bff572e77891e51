"""
Shared fixtures for depthcam tests.
"""

import io
from typing import List, Optional, Sequence
from unittest import mock

import pytest
import requests
from PIL import Image

from depthcam.batch.controller import BatchController
from depthcam.camera.base import CaptureSession
from depthcam.errors import CaptureFailed
from depthcam.sync.client import UploadClient

ENDPOINT = "http://depth.test/api/depth"


def make_png(width: int = 8, height: int = 6) -> bytes:
    buf = io.BytesIO()
    Image.new("L", (width, height), color=128).save(buf, format="PNG")
    return buf.getvalue()


def make_jpeg(width: int = 8, height: int = 6) -> bytes:
    buf = io.BytesIO()
    Image.new("RGB", (width, height), color=(10, 20, 30)).save(buf, format="JPEG")
    return buf.getvalue()


class ScriptedSession(CaptureSession):
    """Capture session returning blobs of preset sizes, in order."""

    def __init__(self, sizes: Sequence[int] = (10, 20, 30, 40, 50)) -> None:
        super().__init__()
        self.sizes: List[int] = list(sizes)
        self.taken = 0
        self.pause_calls = 0
        self.resume_calls = 0
        self.fail_next: Optional[Exception] = None

    def pause(self) -> None:
        self.pause_calls += 1
        super().pause()

    def resume(self) -> None:
        self.resume_calls += 1
        super().resume()

    def request_photo(self) -> bytes:
        if self.fail_next is not None:
            exc, self.fail_next = self.fail_next, None
            raise exc
        size = self.sizes[self.taken % len(self.sizes)]
        blob = bytes([self.taken % 256]) * size
        self.taken += 1
        return blob


def fake_response(status_code: int = 200, content: bytes = b"") -> mock.Mock:
    response = mock.Mock(spec=requests.Response)
    response.status_code = status_code
    response.content = content
    return response


@pytest.fixture
def http() -> mock.Mock:
    """A requests.Session stand-in answering 200 with a PNG."""
    session = mock.Mock(spec=requests.Session)
    session.post.return_value = fake_response(200, make_png())
    return session


@pytest.fixture
def client(http: mock.Mock) -> UploadClient:
    return UploadClient(timeout=5.0, session=http)


@pytest.fixture
def camera() -> ScriptedSession:
    session = ScriptedSession()
    session.start()
    return session


@pytest.fixture
def controller(camera: ScriptedSession, client: UploadClient) -> BatchController:
    return BatchController(camera, client, ENDPOINT)


@pytest.fixture
def full_controller(controller: BatchController) -> BatchController:
    for _ in range(5):
        controller.capture()
    return controller
