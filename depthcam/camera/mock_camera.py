"""
Mock camera backend for development and testing on machines without a physical camera.

This implementation creates synthetic photos using the Pillow library. Each
frame is filled with a solid color and annotated with its sequence number,
then JPEG-encoded in memory.

Usage:

```python
from depthcam.camera.mock_camera import MockCamera
cam = MockCamera(image_width=640, image_height=480)
cam.start()
jpeg = cam.request_photo()
```
"""

from __future__ import annotations

import io
import random
from typing import Optional

from PIL import Image, ImageDraw, ImageFont

from ..errors import CaptureFailed
from .base import AuthorizationStatus, CaptureSession


class MockCamera(CaptureSession):
    """Mock camera backend that generates synthetic JPEG photos."""

    def __init__(
        self,
        image_width: int = 640,
        image_height: int = 480,
        quality: int = 90,
        authorization: AuthorizationStatus = AuthorizationStatus.AUTHORIZED,
        grant_access: bool = True,
        seed: Optional[int] = None,
    ) -> None:
        super().__init__()
        self.image_width = image_width
        self.image_height = image_height
        self.quality = quality
        self.authorization = authorization
        self.grant_access = grant_access
        self.frames_taken = 0
        self._random = random.Random(seed)
        self.font = ImageFont.load_default()

    def authorization_status(self) -> AuthorizationStatus:
        return self.authorization

    def request_access(self) -> bool:
        if self.grant_access:
            self.authorization = AuthorizationStatus.AUTHORIZED
        else:
            self.authorization = AuthorizationStatus.DENIED
        return self.grant_access

    def request_photo(self) -> bytes:
        """Generate one synthetic photo.

        Raises:
            CaptureFailed: if the session is not running.
        """
        if not self.running:
            raise CaptureFailed('Capture session is not running')

        r, g, b = [self._random.randint(0, 255) for _ in range(3)]
        img = Image.new('RGB', (self.image_width, self.image_height), color=(r, g, b))
        draw = ImageDraw.Draw(img)
        draw.text((10, 10), f'Frame {self.frames_taken}', fill=(255 - r, 255 - g, 255 - b), font=self.font)

        buf = io.BytesIO()
        img.save(buf, format='JPEG', quality=self.quality)
        self.frames_taken += 1
        return buf.getvalue()
