"""
Bounded store of finalized live transcript fragments.
"""

import threading
from collections import deque
from typing import Deque, List


DEFAULT_MAX_SEGMENTS = 200
DEFAULT_MAX_CHARS = 120_000


class LiveBuffer:
    """
    FIFO of rendered chunk fragments with a count cap and a size cap.

    Thread-safe: chunk tasks append while the UI reads snapshots.
    The newest fragment is never evicted by its own insertion.
    """

    def __init__(
        self,
        max_segments: int = DEFAULT_MAX_SEGMENTS,
        max_chars: int = DEFAULT_MAX_CHARS,
    ):
        self.max_segments = max_segments
        self.max_chars = max_chars
        self._fragments: Deque[str] = deque()
        self._total_chars = 0
        self._lock = threading.Lock()

    def append(self, text: str) -> None:
        """Add a fragment and evict oldest ones until both limits hold."""
        if not text or not text.strip():
            return

        with self._lock:
            self._fragments.append(text)
            self._total_chars += len(text)

            while len(self._fragments) > self.max_segments and len(self._fragments) > 1:
                self._evict_oldest()

            while self._total_chars > self.max_chars and len(self._fragments) > 1:
                self._evict_oldest()

    def _evict_oldest(self) -> None:
        """Must be called with lock held."""
        dropped = self._fragments.popleft()
        self._total_chars -= len(dropped)

    def snapshot(self, separator: str = "\n") -> str:
        """All held fragments joined in arrival order."""
        with self._lock:
            return separator.join(self._fragments)

    def fragments(self) -> List[str]:
        with self._lock:
            return list(self._fragments)

    @property
    def total_chars(self) -> int:
        with self._lock:
            return self._total_chars

    def __len__(self) -> int:
        with self._lock:
            return len(self._fragments)
