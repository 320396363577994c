"""SQLAlchemy models for thread and message persistence.

Uses String(36) UUIDs to maximize DuckDB compatibility. Timestamps are stored
as naive UTC. No database-level foreign key constraints since DuckDB does not
support CASCADE on FK-constrained tables; the cascade from a thread to its
messages is carried out by ConversationStore in a single transaction.
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    Column,
    DateTime,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""
    pass


def _uuid_default():
    return str(uuid.uuid4())


def utc_now() -> datetime:
    """Current UTC time as a naive datetime, the storage representation."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class ThreadRecord(Base):
    """A conversation thread."""

    __tablename__ = "chat_threads"

    id = Column(String(36), primary_key=True, default=_uuid_default)
    title = Column(String(500), nullable=False)
    created_at = Column(DateTime, default=utc_now, nullable=False)
    updated_at = Column(DateTime, default=utc_now, nullable=False)
    message_count = Column(Integer, default=0, nullable=False)
    # Highest sequence handed out and newest message timestamp in this thread
    last_sequence = Column(Integer, default=0, nullable=False)
    last_message_at = Column(DateTime, nullable=True)

    __table_args__ = (
        Index("ix_chat_threads_created", "created_at"),
    )


class MessageRecord(Base):
    """A single message within a thread."""

    __tablename__ = "chat_messages"

    id = Column(String(36), primary_key=True, default=_uuid_default)
    thread_id = Column(String(36), nullable=False, index=True)
    role = Column(String(20), nullable=False)
    text = Column(Text, nullable=False)
    created_at = Column(DateTime, default=utc_now, nullable=False)
    sequence_number = Column(Integer, nullable=False)

    __table_args__ = (
        Index("ix_chat_messages_thread_order", "thread_id", "created_at", "sequence_number"),
    )
