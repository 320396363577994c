"""Domain-level errors and exceptions."""

from typing import Optional


class DomainError(Exception):
    """Base domain error."""
    def __init__(self, message: str, code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.code = code


class ThreadNotFoundError(DomainError):
    """Raised when a conversation thread cannot be found."""
    pass


class MessageNotFoundError(DomainError):
    """Raised when a message cannot be found."""
    pass


class PersistenceError(DomainError):
    """Raised when the durable store is unavailable or a write failed."""
    pass


class CompletionFailedError(DomainError):
    """Raised when a completion request could not produce a reply."""
    pass


class ModelUnavailableError(CompletionFailedError):
    """Raised when the inference capability reports itself unavailable."""
    pass


class CompletionTimeoutError(CompletionFailedError):
    """Raised when the inference capability did not answer in time."""
    pass


class SubmissionInProgressError(DomainError):
    """Raised when a thread already has a submission awaiting its reply."""
    pass


class InferenceError(DomainError):
    """Raised by an inference capability when a call fails."""
    pass


class InferenceUnavailableError(InferenceError):
    """Raised by an inference capability that cannot serve requests."""
    pass


class InferenceCapacityError(InferenceError):
    """Raised by an inference capability that is at its concurrency cap."""
    pass
