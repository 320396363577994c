"""Domain models for conversation threads and their messages."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict


class MessageRole(Enum):
    """Message role enumeration."""
    USER = "user"
    ASSISTANT = "assistant"


@dataclass(frozen=True)
class Thread:
    """A named conversation."""
    id: str
    title: str
    created_at: datetime
    message_count: int = 0

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "id": self.id,
            "title": self.title,
            "created_at": self.created_at.isoformat(),
            "message_count": self.message_count,
        }


@dataclass(frozen=True)
class Message:
    """One turn in a thread.

    ``sequence`` is assigned by the store at insertion and breaks ties
    between messages that share a ``created_at``.
    """
    id: str
    thread_id: str
    role: MessageRole
    text: str
    created_at: datetime
    sequence: int

    @property
    def is_user(self) -> bool:
        return self.role is MessageRole.USER

    @property
    def sort_key(self):
        return (self.created_at, self.sequence)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "id": self.id,
            "thread_id": self.thread_id,
            "role": self.role.value,
            "text": self.text,
            "created_at": self.created_at.isoformat(),
            "sequence": self.sequence,
        }
