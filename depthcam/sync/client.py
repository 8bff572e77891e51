"""
Upload client for depthcam.

This module provides an ``UploadClient`` class that encapsulates the HTTP
round trip with the depth server. A complete batch is POSTed as a
``multipart/form-data`` body (see :mod:`depthcam.sync.multipart`) and the
server answers with the computed depth map as an image.

The exchange is:

- POST ``{endpoint_url}`` with header
  ``Content-Type: multipart/form-data; boundary=<token>`` and the encoded body.
  The server responds with HTTP 200 and an image body (PNG or JPEG).

Any other status, a transport failure or a timeout is an ``InvalidResponse``.
A 200 whose body Pillow cannot decode is ``InvalidData``. The client makes a
single attempt; retrying is left to the caller.
"""

from __future__ import annotations

import io
import logging
from dataclasses import dataclass
from typing import Optional, Sequence
from urllib.parse import urlparse

import requests
from PIL import Image, UnidentifiedImageError

from ..errors import InvalidData, InvalidResponse, InvalidURL
from . import multipart


@dataclass
class DepthMap:
    """Decoded image returned by the server."""

    data: bytes
    image: Image.Image
    width_px: int
    height_px: int
    format: Optional[str]

    def save(self, path: str) -> None:
        """Write the depth map to disk exactly as the server sent it."""
        with open(path, 'wb') as f:
            f.write(self.data)


def validate_url(endpoint_url: str) -> str:
    """Return ``endpoint_url`` if it is an absolute http(s) URL.

    Raises:
        InvalidURL: otherwise.
    """
    if not isinstance(endpoint_url, str):
        raise InvalidURL(f'Cannot parse endpoint URL {endpoint_url!r}')
    try:
        parsed = urlparse(endpoint_url)
    except (TypeError, ValueError) as exc:
        raise InvalidURL(f'Cannot parse endpoint URL {endpoint_url!r}') from exc
    if parsed.scheme not in ('http', 'https') or not parsed.netloc:
        raise InvalidURL(f'Cannot parse endpoint URL {endpoint_url!r}')
    return endpoint_url


def decode_image(data: bytes) -> DepthMap:
    """Decode a response body into a ``DepthMap``.

    Raises:
        InvalidData: if the bytes are not an image Pillow understands.
    """
    if not data:
        raise InvalidData('Response body is empty')
    try:
        img = Image.open(io.BytesIO(data))
        img.load()
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError) as exc:
        raise InvalidData(f'Response body is not a decodable image: {exc}') from exc
    width_px, height_px = img.size
    return DepthMap(data=data, image=img, width_px=width_px, height_px=height_px, format=img.format)


class UploadClient:
    """HTTP client that sends a batch and returns the server's depth map."""

    def __init__(self, timeout: float = 30.0, session: Optional[requests.Session] = None) -> None:
        self.timeout = timeout
        self.session = session or requests.Session()
        self.logger = logging.getLogger(__name__)

    def send(self, endpoint_url: str, body: bytes, boundary: str) -> DepthMap:
        """POST an encoded multipart body.

        Args:
            endpoint_url: Absolute http(s) URL of the depth endpoint.
            body: Body produced by :func:`multipart.encode_multipart`.
            boundary: Boundary token used to encode ``body``.

        Returns:
            The decoded depth map.

        Raises:
            InvalidURL: if ``endpoint_url`` cannot be parsed.
            InvalidResponse: on transport failure, timeout, or a non-200 status.
            InvalidData: if the response body is not an image.
        """
        url = validate_url(endpoint_url)
        headers = {'Content-Type': multipart.content_type(boundary)}
        self.logger.info('Uploading %d bytes to %s', len(body), url)
        try:
            response = self.session.post(url, headers=headers, data=body, timeout=self.timeout)
        except requests.exceptions.Timeout as exc:
            self.logger.error('Upload timed out after %ss: %s', self.timeout, exc)
            raise InvalidResponse(f'Request timed out after {self.timeout}s') from exc
        except (requests.exceptions.InvalidURL, requests.exceptions.MissingSchema,
                requests.exceptions.InvalidSchema) as exc:
            raise InvalidURL(f'Cannot parse endpoint URL {endpoint_url!r}') from exc
        except requests.exceptions.RequestException as exc:
            self.logger.error('Upload failed: %s', exc)
            raise InvalidResponse(f'Request failed: {exc}') from exc

        if response.status_code != 200:
            self.logger.error('Server answered %s for %s', response.status_code, url)
            raise InvalidResponse(f'Unexpected status {response.status_code}',
                                  status_code=response.status_code)

        depth_map = decode_image(response.content)
        self.logger.info('Received %dx%d depth map', depth_map.width_px, depth_map.height_px)
        return depth_map

    def upload(self, endpoint_url: str, images: Sequence[bytes]) -> DepthMap:
        """Encode ``images`` with a fresh boundary and send them."""
        request = multipart.build_request(images)
        return self.send(endpoint_url, request.encode(), request.boundary)

    def close(self) -> None:
        self.session.close()
