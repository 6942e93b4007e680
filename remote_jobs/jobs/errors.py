"""Project-native typed exceptions for job-layer failures."""

from __future__ import annotations


class JobError(Exception):
    """Base exception for job-layer failures."""


class JobCancelledError(JobError):
    """Run routine was interrupted by idle timeout, lifetime deadline or explicit cancel.

    Attributes:
        reason: Cancellation reason text.
    """

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


class JobNotFoundError(JobError, LookupError):
    """No registered job matches the requested identifier."""
