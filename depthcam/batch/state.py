"""
Batch lifecycle states and the snapshot published to observers.

States and their meaning:

- ``IDLE``: no images, session live.
- ``CAPTURING``: 1-4 images, session live.
- ``FULL``: batch complete, session paused, ready to send.
- ``SENDING``: upload in flight, session paused.
- ``RESULTED``: the server returned a depth map.
- ``FAILED``: the last send failed; the batch is kept for a retry.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from ..sync.client import DepthMap


class BatchState(enum.Enum):
    IDLE = 'idle'
    CAPTURING = 'capturing'
    FULL = 'full'
    SENDING = 'sending'
    RESULTED = 'resulted'
    FAILED = 'failed'


@dataclass(frozen=True)
class BatchSnapshot:
    """Read-only view of a controller, handed to listeners."""

    state: BatchState
    count: int
    result: Optional['DepthMap'] = None
    error: Optional[BaseException] = None

    @property
    def is_taken(self) -> bool:
        """True once at least one photo has been captured."""
        return self.count > 0
