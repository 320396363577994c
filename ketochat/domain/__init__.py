"""Domain layer - pure business models and logic."""

from .errors import (
    CompletionFailedError,
    CompletionTimeoutError,
    DomainError,
    InferenceCapacityError,
    InferenceError,
    InferenceUnavailableError,
    MessageNotFoundError,
    ModelUnavailableError,
    PersistenceError,
    SubmissionInProgressError,
    ThreadNotFoundError,
)
from .net_carbs import NetCarbDirective, build_snack_prompt, format_summary, net_carbs, parse_directive
from .threads.models import Message, MessageRole, Thread

__all__ = [
    # Errors
    "DomainError",
    "ThreadNotFoundError",
    "MessageNotFoundError",
    "PersistenceError",
    "CompletionFailedError",
    "ModelUnavailableError",
    "CompletionTimeoutError",
    "SubmissionInProgressError",
    "InferenceError",
    "InferenceUnavailableError",
    "InferenceCapacityError",
    # Threads
    "Thread",
    "Message",
    "MessageRole",
    # Net carbs
    "NetCarbDirective",
    "parse_directive",
    "net_carbs",
    "format_summary",
    "build_snack_prompt",
]
