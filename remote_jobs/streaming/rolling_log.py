"""Bounded append-only line buffer with caller-owned read cursors."""

from __future__ import annotations

from collections.abc import Sequence
import threading


class RollingLog:
    """Thread-safe line buffer retaining the most recent `capacity` lines.

    Positions are absolute line offsets since the log was created. Lines that
    fall out of the buffer increase `discarded_count`; a reader whose position
    is older than that count is moved forward to the oldest retained line.
    """

    def __init__(self, capacity: int):
        """Initialize an empty rolling log.

        Args:
            capacity: Maximum number of retained lines.

        Returns:
            None: Initializer does not return a value.

        Raises:
            ValueError: Raised when capacity is lower than one.
        """

        if capacity < 1:
            raise ValueError("capacity must be >= 1")

        self._capacity = capacity
        self._lock = threading.Lock()
        self._lines: list[str] = []
        self._start = 0
        self._discarded = 0

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def discarded_count(self) -> int:
        with self._lock:
            return self._discarded

    @property
    def line_count(self) -> int:
        """Number of currently retained lines."""

        with self._lock:
            return len(self._lines) - self._start

    def rolling_log_add_lines(self, lines: Sequence[str]) -> None:
        """Append lines, discarding the oldest ones beyond capacity.

        Args:
            lines: Lines in producer order.

        Returns:
            None: Buffer is updated as side effect.

        Raises:
            RuntimeError: This method does not raise runtime errors.
        """

        if not lines:
            return

        with self._lock:
            self._lines.extend(lines)
            overflow = (len(self._lines) - self._start) - self._capacity
            if overflow > 0:
                self._start += overflow
                self._discarded += overflow
                # Compact once the dead prefix is as large as the live window.
                if self._start >= self._capacity:
                    del self._lines[: self._start]
                    self._start = 0

    def rolling_log_get(self, position: int, max_lines: int = 100) -> tuple[list[str], int]:
        """Copy the next available lines starting at `position`.

        Args:
            position: Absolute offset returned by a previous call, or 0.
            max_lines: Maximum number of lines to return.

        Returns:
            tuple[list[str], int]: Returned lines and the advanced position.

        Raises:
            ValueError: Raised when `position` is negative or `max_lines` is lower than one.
        """

        if position < 0:
            raise ValueError("position must be >= 0")
        if max_lines < 1:
            raise ValueError("max_lines must be >= 1")

        with self._lock:
            retained = len(self._lines) - self._start
            to_skip = min(max(0, position - self._discarded), retained)
            available = min(max_lines, retained - to_skip)
            first_index = self._start + to_skip
            lines = self._lines[first_index : first_index + available]
            return lines, self._discarded + to_skip + available

    def rolling_log_render(self) -> str:
        """Return all retained lines joined by newlines."""

        with self._lock:
            return "\n".join(self._lines[self._start :])
