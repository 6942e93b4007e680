"""Cooperative long-poll protocol for tailing a rolling log."""

from __future__ import annotations

from collections.abc import Callable, Iterator
import threading
import time

from .rolling_log import RollingLog

LOG_STREAM_FLUSH = None
"""Marker yielded between lines when transport buffers should be flushed."""


def stream_rolling_log(
    rolling_log: RollingLog,
    is_completed: Callable[[], bool],
    stop_event: threading.Event | None = None,
    batch_size: int = 100,
    initial_backoff_seconds: float = 0.1,
    max_backoff_seconds: float = 1.0,
    backoff_step_seconds: float = 0.01,
    keepalive_seconds: float = 10.0,
    monotonic_provider: Callable[[], float] = time.monotonic,
) -> Iterator[str | None]:
    """Yield log lines as they arrive and flush markers while quiet.

    The stream ends once the producer reports completion and every retained
    line has been delivered, or when `stop_event` is set.

    Args:
        rolling_log: Log to tail from position zero.
        is_completed: Returns True once no more lines will be appended.
        stop_event: Optional event ending the stream early (client disconnect).
        batch_size: Maximum lines read per poll.
        initial_backoff_seconds: Delay after the first empty poll.
        max_backoff_seconds: Upper bound of the poll delay.
        backoff_step_seconds: Delay growth per consecutive empty poll.
        keepalive_seconds: Emit a flush marker after this much silence.
        monotonic_provider: Clock used for keepalive accounting.

    Yields:
        str | None: A log line, or `LOG_STREAM_FLUSH`.

    Raises:
        ValueError: Raised when batch or backoff arguments are invalid.
    """

    if batch_size < 1:
        raise ValueError("batch_size must be >= 1")
    if initial_backoff_seconds <= 0 or max_backoff_seconds < initial_backoff_seconds:
        raise ValueError("backoff bounds must satisfy 0 < initial <= max")

    wait_event = stop_event or threading.Event()
    position = 0
    backoff_seconds = 0.0
    last_yield_at = monotonic_provider()
    last_read_count = 0

    while not wait_event.is_set():
        completed_before_read = is_completed()
        lines, position = rolling_log.rolling_log_get(position, batch_size)

        yield from lines

        if lines:
            backoff_seconds = 0.0
            last_yield_at = monotonic_provider()
            if len(lines) != batch_size:
                yield LOG_STREAM_FLUSH
        else:
            if last_read_count == batch_size:
                yield LOG_STREAM_FLUSH

            if completed_before_read:
                break

            backoff_seconds = min(
                max(backoff_seconds + backoff_step_seconds, initial_backoff_seconds),
                max_backoff_seconds,
            )
            if wait_event.wait(backoff_seconds):
                break

            if monotonic_provider() - last_yield_at > keepalive_seconds:
                last_yield_at = monotonic_provider()
                yield LOG_STREAM_FLUSH

        last_read_count = len(lines)
