"""Bounded output history for owned sessions.

Raw output chunks are kept in arrival order so they can be replayed when
a session returns to the foreground. The total is capped; eviction drops
whole chunks from the oldest end and never splits one.
"""

from collections import deque
from typing import Deque, List

from .status_constants import MAX_HISTORY_BYTES


class OutputHistory:
    """Append-only chunk log with FIFO eviction."""

    def __init__(self, max_bytes: int = MAX_HISTORY_BYTES):
        self.max_bytes = max_bytes
        self._chunks: Deque[bytes] = deque()
        self._total = 0

    def append(self, chunk: bytes) -> None:
        """Add a chunk, then evict oldest chunks until back under the cap.

        The newest chunk is never evicted, so a single chunk larger than
        the cap is kept on its own.
        """
        if not chunk:
            return
        self._chunks.append(chunk)
        self._total += len(chunk)
        while self._total > self.max_bytes and len(self._chunks) > 1:
            self._total -= len(self._chunks.popleft())

    @property
    def total_bytes(self) -> int:
        return self._total

    def chunks(self) -> List[bytes]:
        """Snapshot of retained chunks, oldest first."""
        return list(self._chunks)

    def replay(self) -> bytes:
        """All retained output joined in order."""
        return b"".join(self._chunks)

    def clear(self) -> None:
        self._chunks.clear()
        self._total = 0

    def __len__(self) -> int:
        return len(self._chunks)

    def __bool__(self) -> bool:
        return bool(self._chunks)
