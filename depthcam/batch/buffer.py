"""Bounded, ordered store of captured photos."""

from __future__ import annotations

from typing import Iterator, List, Optional, Tuple

from ..errors import BatchFullError

BATCH_CAPACITY = 5


class ImageBuffer:
    """Holds up to ``capacity`` JPEG blobs in capture order."""

    def __init__(self, capacity: int = BATCH_CAPACITY) -> None:
        if capacity < 1:
            raise ValueError('capacity must be positive')
        self.capacity = capacity
        self._images: List[bytes] = []

    def __len__(self) -> int:
        return len(self._images)

    def __iter__(self) -> Iterator[bytes]:
        return iter(self._images)

    @property
    def is_full(self) -> bool:
        return len(self._images) >= self.capacity

    @property
    def is_empty(self) -> bool:
        return not self._images

    def append(self, image: bytes) -> int:
        """Add an image and return the new length.

        Raises:
            BatchFullError: if the buffer is already at capacity.
        """
        if self.is_full:
            raise BatchFullError(f'Batch already holds {self.capacity} images')
        self._images.append(bytes(image))
        return len(self._images)

    def remove_last(self) -> Optional[bytes]:
        """Drop the most recent image; returns it, or None when empty."""
        if not self._images:
            return None
        return self._images.pop()

    def clear(self) -> None:
        self._images.clear()

    def snapshot(self) -> Tuple[bytes, ...]:
        """Immutable copy of the current contents."""
        return tuple(self._images)
