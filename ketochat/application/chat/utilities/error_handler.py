"""
Error handling utilities - pure functions for exception handling patterns.

Turns failures from the store and the model into domain errors and into the
short, user-visible messages the chat surfaces.
"""

import logging
from typing import Tuple, Type

from ketochat.domain.errors import (
    CompletionFailedError,
    CompletionTimeoutError,
    DomainError,
    InferenceCapacityError,
    InferenceUnavailableError,
    MessageNotFoundError,
    ModelUnavailableError,
    PersistenceError,
    SubmissionInProgressError,
    ThreadNotFoundError,
)

logger = logging.getLogger(__name__)


def classify_completion_error(error: Exception) -> Tuple[Type[CompletionFailedError], str]:
    """
    Classify a failure raised while waiting on the model.

    Returns:
        Tuple of (error_class, reason). The reason is safe to show to users.
    """
    if isinstance(error, CompletionFailedError):
        return (type(error), error.message)

    if isinstance(error, InferenceUnavailableError):
        return (ModelUnavailableError, "The on-device model is unavailable.")

    if isinstance(error, InferenceCapacityError):
        return (CompletionFailedError, "The model is busy with other requests. Please try again in a moment.")

    error_str = str(error).lower()
    error_type_name = type(error).__name__

    if isinstance(error, TimeoutError) or "timeout" in error_str or "timed out" in error_str:
        return (CompletionTimeoutError, "The model did not answer in time. Please try again.")

    if "RateLimitError" in error_type_name or "rate limit" in error_str:
        return (CompletionFailedError, "The model is busy with other requests. Please try again in a moment.")

    return (CompletionFailedError, "The model could not produce a reply. Please try again.")


def user_message_for(error: Exception) -> str:
    """
    User-visible text for a failed submission.

    NOTE: never includes raw exception details from the store or the model.
    """
    if isinstance(error, ModelUnavailableError):
        return "On-device model unavailable."
    if isinstance(error, CompletionFailedError):
        return error.message or "The model could not produce a reply."
    if isinstance(error, ThreadNotFoundError):
        return "This conversation no longer exists."
    if isinstance(error, MessageNotFoundError):
        return "That message no longer exists."
    if isinstance(error, PersistenceError):
        return "Save failed: the conversation could not be stored."
    if isinstance(error, SubmissionInProgressError):
        return "Still waiting for the previous reply in this conversation."
    if isinstance(error, DomainError):
        return error.message
    return "Something went wrong. Please try again."
