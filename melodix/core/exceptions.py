"""
Exception classes for Melodix.

This module defines the custom exceptions used throughout the core subsystem.
Each exception carries a human-readable message and an optional details
dictionary for logging, so callers can tell failure modes apart.

Exception Hierarchy:
    MelodixError (base)
        StorageError - Persisted state could not be read or written
        EnrichmentError - A remote enrichment lookup failed (retried)
            ProviderError - Provider answered with an error or garbage
            LookupTimeoutError - Provider did not answer in time
        TaskCancelledError - An in-flight task run was abandoned
        InvalidTransitionError - Illegal task state change (programming error)
        AudioDecodeError - An audio resource could not be fetched or decoded
"""

import asyncio
from typing import Optional


class MelodixError(Exception):
    """
    Base exception for all Melodix errors.

    Attributes:
        message: Human-readable error description.
        details: Optional dictionary with additional context (e.g. task id, URL).
    """

    def __init__(self, message: str, details: Optional[dict] = None) -> None:
        """
        Initialize the base exception.

        Args:
            message: Human-readable error description.
            details: Optional dictionary containing additional context about the error.
                     Common keys include 'song_id', 'task_id', 'url' and
                     'original_error'.
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        return self.message


class StorageError(MelodixError):
    """
    Raised when persisted state cannot be loaded or saved.

    The task queue never lets this escape: a failed load starts from an empty
    task list and a failed save is logged and repeated on the next mutation.
    """
    pass


class EnrichmentError(MelodixError):
    """
    Raised when the enrichment pipeline cannot complete a lookup.

    This is a RECOVERABLE error: the task queue retries the task before
    marking it failed.
    """
    pass


class ProviderError(EnrichmentError):
    """
    Raised when an enrichment provider returns an error response.

    Attributes:
        status: HTTP status code when the provider is reached over HTTP.
        is_rate_limit: True when the provider asked us to slow down.
    """

    def __init__(
        self,
        message: str,
        details: Optional[dict] = None,
        status: Optional[int] = None,
        is_rate_limit: bool = False
    ) -> None:
        super().__init__(message, details)
        self.status = status
        self.is_rate_limit = is_rate_limit


class LookupTimeoutError(EnrichmentError):
    """Raised when a single provider lookup exceeds its time budget."""
    pass


class TaskCancelledError(MelodixError):
    """
    Raised inside a pipeline run whose cancellation token was cancelled.

    The task was removed or paused while the run was suspended; the result
    must be discarded, not recorded as a failure.
    """
    pass


class InvalidTransitionError(MelodixError):
    """Raised when the task state machine is asked for an illegal transition."""
    pass


class AudioDecodeError(MelodixError):
    """
    Raised when an audio resource cannot be fetched or decoded.

    The signal adapter turns this into an empty peak list so that the
    visualization degrades instead of failing.
    """
    pass


def user_message(error: BaseException) -> str:
    """
    Map a technical error to a message suitable for the task list UI

    Args:
        error: Exception raised while processing a task

    Returns:
        Short human-readable description of what went wrong
    """
    if isinstance(error, (LookupTimeoutError, asyncio.TimeoutError)):
        return "The enrichment service did not respond in time."

    if isinstance(error, ProviderError) and error.is_rate_limit:
        return "The enrichment service rate limit was reached. Try again later."

    text = f"{type(error).__name__} {error}".lower()
    if 'network' in text or 'connect' in text or 'fetch' in text:
        return "Network error. Check your internet connection."
    if 'permission' in text or 'access' in text:
        return "Access to the file was denied. Check its permissions."
    if 'quota' in text or 'limit' in text:
        return "The enrichment service usage limit was reached."
    if 'decode' in text:
        return "The audio file could not be decoded. Its format may be unsupported."

    detail = str(error).strip()
    if detail:
        return f"Enhancement failed: {detail}"
    return "An unexpected error occurred."
