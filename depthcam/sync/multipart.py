"""
multipart/form-data encoding for batch uploads.

The body layout is fixed by the depth server: one part per image, named
``image1`` .. ``imageN`` in capture order, each declared as
``image{i}.jpg`` with content type ``image/jpeg``, followed by the closing
delimiter. All line separators are CRLF. No escaping is performed; the
boundary is assumed never to occur inside JPEG data.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from typing import List, Optional, Sequence

CRLF = b'\r\n'
IMAGE_CONTENT_TYPE = 'image/jpeg'
MAX_PARTS = 5


@dataclass(frozen=True)
class FormPart:
    """A single file part of a multipart body."""

    field_name: str
    filename: str
    content_type: str
    data: bytes


@dataclass(frozen=True)
class UploadRequest:
    """Ephemeral description of one upload: boundary plus ordered parts."""

    boundary: str
    parts: List[FormPart]

    @property
    def content_type(self) -> str:
        return content_type(self.boundary)

    def encode(self) -> bytes:
        return encode_parts(self.parts, self.boundary)


def make_boundary() -> str:
    """Return a fresh boundary token, unique per request."""
    return f'Boundary-{uuid.uuid4()}'


def content_type(boundary: str) -> str:
    """Return the ``Content-Type`` header value for a body using ``boundary``."""
    return f'multipart/form-data; boundary={boundary}'


def image_parts(images: Sequence[bytes]) -> List[FormPart]:
    """Wrap buffered images as form parts, numbered from 1 in order."""
    if not 1 <= len(images) <= MAX_PARTS:
        raise ValueError(f'Expected 1..{MAX_PARTS} images, got {len(images)}')
    return [
        FormPart(
            field_name=f'image{i}',
            filename=f'image{i}.jpg',
            content_type=IMAGE_CONTENT_TYPE,
            data=bytes(data),
        )
        for i, data in enumerate(images, start=1)
    ]


def encode_parts(parts: Sequence[FormPart], boundary: str) -> bytes:
    """Serialize parts into a multipart/form-data body."""
    delimiter = f'--{boundary}'.encode('ascii')
    chunks: List[bytes] = []
    for part in parts:
        chunks.append(delimiter + CRLF)
        chunks.append(
            f'Content-Disposition: form-data; name="{part.field_name}"; '
            f'filename="{part.filename}"'.encode('utf-8') + CRLF
        )
        chunks.append(f'Content-Type: {part.content_type}'.encode('ascii') + CRLF)
        chunks.append(CRLF)
        chunks.append(part.data)
        chunks.append(CRLF)
    chunks.append(delimiter + b'--' + CRLF)
    return b''.join(chunks)


def encode_multipart(images: Sequence[bytes], boundary: str) -> bytes:
    """Encode 1..5 JPEG images into a multipart/form-data body.

    Pure function: identical images and boundary always give identical bytes.

    Raises:
        ValueError: if ``images`` is empty or holds more than five entries.
    """
    return encode_parts(image_parts(images), boundary)


def build_request(images: Sequence[bytes], boundary: Optional[str] = None) -> UploadRequest:
    """Snapshot ``images`` into an ``UploadRequest`` with a new boundary."""
    return UploadRequest(boundary=boundary or make_boundary(), parts=image_parts(images))


def _parse_headers(block: bytes) -> dict:
    headers = {}
    for line in block.split(CRLF):
        if not line:
            continue
        name, sep, value = line.decode('utf-8').partition(':')
        if not sep:
            raise ValueError(f'Malformed part header: {line!r}')
        headers[name.strip().lower()] = value.strip()
    return headers


def _disposition_params(value: str) -> dict:
    params = {}
    for item in value.split(';')[1:]:
        key, _, val = item.strip().partition('=')
        params[key.lower()] = val.strip('"')
    return params


def decode_multipart(body: bytes, boundary: str) -> List[FormPart]:
    """Parse a body produced by :func:`encode_multipart` back into parts.

    Raises:
        ValueError: if the body is not a well-formed multipart payload.
    """
    delimiter = b'--' + boundary.encode('ascii')
    closing = delimiter + b'--'
    if not body.startswith(delimiter):
        raise ValueError('Body does not start with the boundary delimiter')
    end = body.rfind(closing)
    if end < 0:
        raise ValueError('Missing closing boundary')

    parts: List[FormPart] = []
    # Everything between the first delimiter and the closing one, split on
    # CRLF + delimiter so part data may itself contain bare CRLFs.
    inner = body[len(delimiter):end]
    if not inner.endswith(CRLF):
        raise ValueError('Closing boundary not preceded by CRLF')
    inner = inner[:-len(CRLF)]
    for segment in inner.split(CRLF + delimiter):
        if not segment.startswith(CRLF):
            raise ValueError('Delimiter not followed by CRLF')
        segment = segment[len(CRLF):]
        head, sep, data = segment.partition(CRLF + CRLF)
        if not sep:
            raise ValueError('Part is missing the header terminator')
        headers = _parse_headers(head)
        params = _disposition_params(headers.get('content-disposition', ''))
        parts.append(FormPart(
            field_name=params.get('name', ''),
            filename=params.get('filename', ''),
            content_type=headers.get('content-type', ''),
            data=data,
        ))
    return parts
