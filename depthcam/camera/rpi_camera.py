"""
Raspberry Pi camera backend.

This backend uses the libcamera tools available on Raspberry Pi OS. Each
``request_photo`` call invokes ``libcamera-still`` via subprocess and reads
the JPEG from its standard output.

Note: To use this backend, ensure that libcamera is installed and the camera
is enabled on your Raspberry Pi.

If libcamera is not available (e.g., when running on macOS), the session
reports itself as ``RESTRICTED`` and ``check_authorization`` raises
``PermissionDenied``.
"""

from __future__ import annotations

import shutil
import subprocess

from ..errors import CaptureFailed
from .base import AuthorizationStatus, CaptureSession

LIBCAMERA_STILL = 'libcamera-still'


class RpiCamera(CaptureSession):
    """Capture session using libcamera tools on Raspberry Pi."""

    def __init__(self, image_width: int = 4056, image_height: int = 3040, quality: int = 90,
                 timeout: float = 10.0) -> None:
        super().__init__()
        self.image_width = image_width
        self.image_height = image_height
        self.quality = quality
        self.timeout = timeout

    def authorization_status(self) -> AuthorizationStatus:
        if shutil.which(LIBCAMERA_STILL) is None:
            return AuthorizationStatus.RESTRICTED
        return AuthorizationStatus.AUTHORIZED

    def request_photo(self) -> bytes:
        """Capture one still using libcamera-still.

        Raises:
            CaptureFailed: if the session is paused or capturing fails.
        """
        if not self.running:
            raise CaptureFailed('Capture session is not running')
        cmd = [
            LIBCAMERA_STILL,
            '-n',                        # no preview
            '-o', '-',                   # JPEG to stdout
            '--width', str(self.image_width),
            '--height', str(self.image_height),
            '--quality', str(self.quality),
            '--immediate',
        ]
        try:
            result = subprocess.run(cmd, check=True, stdout=subprocess.PIPE, stderr=subprocess.PIPE,
                                    timeout=self.timeout)
        except FileNotFoundError as exc:
            raise CaptureFailed(f'{LIBCAMERA_STILL} is not available on this system') from exc
        except subprocess.TimeoutExpired as exc:
            raise CaptureFailed(f'{LIBCAMERA_STILL} timed out after {self.timeout}s') from exc
        except subprocess.CalledProcessError as exc:
            raise CaptureFailed(f'{LIBCAMERA_STILL} failed: {exc.stderr.decode().strip()}') from exc

        if not result.stdout:
            raise CaptureFailed(f'{LIBCAMERA_STILL} produced no image data')
        return result.stdout
