"""Thread-based cancellation and completion primitives for job coordination.

Idle timeout and lifetime deadline are modelled as two independent
`CancellationSource` instances; a job races them against its
`CompletionSignal` with `wait_for_first`.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Callable

logger = logging.getLogger(__name__)


class _OneShotSignal:
    """Single-assignment event with registered callbacks."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._event = threading.Event()
        self._callbacks: list[Callable[[], None]] = []

    def _signal_fire(self) -> bool:
        with self._lock:
            callbacks = self._signal_set_locked()

        if callbacks is None:
            return False
        for callback in callbacks:
            _signal_invoke(callback)
        return True

    def _signal_set_locked(self) -> list[Callable[[], None]] | None:
        """Set the event and detach callbacks; `None` when already set."""

        if self._event.is_set():
            return None
        self._event.set()
        callbacks = self._callbacks
        self._callbacks = []
        return callbacks

    def _signal_register(self, callback: Callable[[], None]) -> Callable[[], None]:
        with self._lock:
            if not self._event.is_set():
                self._callbacks.append(callback)
                return lambda: self._signal_unregister(callback)

        _signal_invoke(callback)
        return lambda: None

    def _signal_unregister(self, callback: Callable[[], None]) -> None:
        with self._lock:
            if callback in self._callbacks:
                self._callbacks.remove(callback)


class CancellationSource(_OneShotSignal):
    """Idempotent cancellation flag with an optional re-armable deadline.

    At most one watchdog timer is pending at any time. Pushing the deadline
    forward leaves the pending timer in place; when it fires early it re-arms
    itself for the remaining time.
    """

    def __init__(self, name: str = "cancellation"):
        super().__init__()
        self._name = name
        self._reason: str | None = None
        self._deadline: float | None = None
        self._deadline_reason = ""
        self._timer: threading.Timer | None = None
        self._timer_fire_at: float | None = None
        self._timer_generation = 0
        self._disposed = False

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> str | None:
        return self._reason

    def cancellation_cancel(self, reason: str) -> bool:
        """Cancel the source.

        Args:
            reason: Cancellation reason exposed through `reason`.

        Returns:
            bool: True for the first call, False when already cancelled.

        Raises:
            RuntimeError: This method does not raise runtime errors.
        """

        with self._lock:
            if self._event.is_set():
                return False
            self._reason = reason
            self._cancellation_disarm_locked()
            callbacks = self._signal_set_locked() or []

        for callback in callbacks:
            _signal_invoke(callback)
        return True

    def cancellation_cancel_after(self, seconds: float | None, reason: str = "deadline exceeded") -> None:
        """Arm, move or disarm the cancellation deadline.

        Args:
            seconds: Delay from now, or `None` to disarm.
            reason: Reason used when the deadline fires.

        Returns:
            None: Deadline is updated as side effect.

        Raises:
            ValueError: Raised when `seconds` is negative.
        """

        if seconds is not None and seconds < 0:
            raise ValueError("seconds must be >= 0")

        with self._lock:
            if self._disposed or self._event.is_set():
                return

            if seconds is None:
                self._cancellation_disarm_locked()
                return

            deadline = time.monotonic() + seconds
            self._deadline = deadline
            self._deadline_reason = reason

            if self._timer is not None and self._timer_fire_at is not None and self._timer_fire_at <= deadline:
                return

            self._cancellation_start_timer_locked(seconds)

    def cancellation_register(self, callback: Callable[[], None]) -> Callable[[], None]:
        """Run `callback` once on cancellation, immediately when already cancelled.

        Returns:
            Callable[[], None]: Function removing the registration.
        """

        return self._signal_register(callback)

    def cancellation_wait(self, timeout: float | None = None) -> bool:
        """Block until cancelled or `timeout` elapses; return the cancelled state."""

        return self._event.wait(timeout)

    def cancellation_dispose(self) -> None:
        """Disarm the deadline permanently; later arming requests are ignored."""

        with self._lock:
            self._disposed = True
            self._cancellation_disarm_locked()

    def _cancellation_disarm_locked(self) -> None:
        self._deadline = None
        self._timer_generation += 1
        if self._timer is not None:
            self._timer.cancel()
        self._timer = None
        self._timer_fire_at = None

    def _cancellation_start_timer_locked(self, seconds: float) -> None:
        if self._timer is not None:
            self._timer.cancel()

        self._timer_generation += 1
        generation = self._timer_generation
        timer = threading.Timer(seconds, self._cancellation_on_timer, args=(generation,))
        timer.daemon = True
        timer.name = f"{self._name}-watchdog"
        self._timer = timer
        self._timer_fire_at = time.monotonic() + seconds
        timer.start()

    def _cancellation_on_timer(self, generation: int) -> None:
        with self._lock:
            if generation != self._timer_generation:
                return

            self._timer = None
            self._timer_fire_at = None
            if self._disposed or self._event.is_set() or self._deadline is None:
                return

            remaining_seconds = self._deadline - time.monotonic()
            if remaining_seconds > 0:
                self._cancellation_start_timer_locked(remaining_seconds)
                return

            reason = self._deadline_reason

        self.cancellation_cancel(reason)


class CompletionSignal(_OneShotSignal):
    """Single-assignment completion flag; only the first `signal_try_set` wins."""

    @property
    def is_set(self) -> bool:
        return self._event.is_set()

    def signal_try_set(self) -> bool:
        """Set the signal; return False when it was already set."""

        return self._signal_fire()

    def signal_register(self, callback: Callable[[], None]) -> Callable[[], None]:
        return self._signal_register(callback)

    def signal_wait(self, timeout: float | None = None) -> bool:
        return self._event.wait(timeout)


def wait_for_first(*waitables: CancellationSource | CompletionSignal, timeout: float | None = None) -> bool:
    """Block until any of the given sources or signals fires.

    Args:
        waitables: Cancellation sources and completion signals to race.
        timeout: Optional maximum wait in seconds.

    Returns:
        bool: True when one of them fired, False on timeout.

    Raises:
        ValueError: Raised when no waitables are given.
    """

    if not waitables:
        raise ValueError("at least one waitable is required")

    fired = threading.Event()
    unregister_callbacks = [waitable._signal_register(fired.set) for waitable in waitables]
    try:
        return fired.wait(timeout)
    finally:
        for unregister in unregister_callbacks:
            unregister()


def _signal_invoke(callback: Callable[[], None]) -> None:
    try:
        callback()
    except Exception:
        logger.exception("signal callback failed")
