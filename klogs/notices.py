"""
notices.py

User-facing messages produced while klogs runs.

Banner holds the one-line notification shown at the bottom of the dashboard
("Found Pod: ...") and clears itself after a few seconds. Notices collects
the warnings printed under the summary table once the run is over.
"""

import threading
import time
from typing import Callable, List, Optional

BANNER_CLEAR_SECONDS = 5.0


class Banner:
    """Ephemeral notification; the latest message wins."""

    def __init__(self, clear_after: float = BANNER_CLEAR_SECONDS, clock: Callable[[], float] = time.monotonic):
        self._lock = threading.Lock()
        self._clock = clock
        self._clear_after = clear_after
        self._text: Optional[str] = None
        self._shown_at = 0.0

    def show(self, text: str) -> None:
        with self._lock:
            self._text = text
            self._shown_at = self._clock()

    def current(self) -> Optional[str]:
        """The message on display, or None once it has expired."""
        with self._lock:
            if self._text is None:
                return None
            if self._clock() - self._shown_at >= self._clear_after:
                self._text = None
            return self._text


class Notices:
    """Thread-safe list of warnings reported after the run."""

    def __init__(self):
        self._lock = threading.Lock()
        self._items: List[str] = []

    def add(self, text: str) -> None:
        with self._lock:
            self._items.append(text)

    def items(self) -> List[str]:
        with self._lock:
            return list(self._items)

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)
