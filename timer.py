"""Elapsed-time stopwatch for timed writing tasks."""

import threading
import time
from typing import Callable


class Stopwatch:
    """Monotonic elapsed-time counter that only advances while running.

    Nothing ticks in the background: elapsed time is the sum of completed
    running spans plus the current one, read from ``clock``.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._lock = threading.Lock()
        self._accumulated = 0.0
        self._started_at = None

    @property
    def running(self) -> bool:
        return self._started_at is not None

    def start(self) -> None:
        with self._lock:
            if self._started_at is None:
                self._started_at = self._clock()

    def stop(self) -> None:
        with self._lock:
            if self._started_at is not None:
                self._accumulated += self._clock() - self._started_at
                self._started_at = None

    def reset(self) -> None:
        with self._lock:
            self._accumulated = 0.0
            self._started_at = None

    def get_elapsed(self) -> int:
        with self._lock:
            elapsed = self._accumulated
            if self._started_at is not None:
                elapsed += self._clock() - self._started_at
        return int(elapsed)

    def get_formatted_elapsed(self) -> str:
        return format_seconds(self.get_elapsed())


def format_seconds(seconds: int) -> str:
    return f"{seconds // 60:02d}:{seconds % 60:02d}"
