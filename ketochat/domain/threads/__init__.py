"""Domain models for threads."""

from .models import Message, MessageRole, Thread

__all__ = [
    "Message",
    "MessageRole",
    "Thread",
]
