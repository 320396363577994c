"""Store for conversation threads and their messages.

Handles thread CRUD and message appends. Referential integrity (messages
belong to exactly one existing thread, deletes cascade) is enforced here
rather than via database FK constraints for DuckDB compatibility.

Writes to the same thread are serialized by a per-thread lock that guards
the thread's sequence counter. Writes to different threads run concurrently.
"""

import logging
import threading
import uuid
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone
from typing import Dict, Iterator, List, Optional, Union

from sqlalchemy import delete, desc
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from ketochat.core.log_sanitizer import preview_for_logging
from ketochat.domain.errors import MessageNotFoundError, PersistenceError, ThreadNotFoundError
from ketochat.domain.threads.models import Message, MessageRole, Thread

from .models import MessageRecord, ThreadRecord, utc_now

logger = logging.getLogger(__name__)

DEFAULT_THREAD_TITLE = "Keto Chat"
RENAME_TITLE_FORMAT = "%b %d, %Y at %I:%M %p"

_ONE_TICK = timedelta(microseconds=1)


class ConversationStore:
    """Handles all thread and message persistence operations."""

    def __init__(self, session_factory: sessionmaker, default_title: str = DEFAULT_THREAD_TITLE):
        self._session_factory = session_factory
        self._default_title = default_title
        self._locks: Dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()
        self._bootstrap_lock = threading.Lock()
        self._last_created_at: Optional[datetime] = None

    # ------------------------------------------------------------------
    # Threads
    # ------------------------------------------------------------------
    def create_thread(self, title: Optional[str] = None) -> Thread:
        """Create and persist a new thread."""
        record = ThreadRecord(
            id=str(uuid.uuid4()),
            title=title.strip() if title and title.strip() else self._default_title,
            created_at=self._next_created_at(),
            message_count=0,
            last_sequence=0,
        )
        record.updated_at = record.created_at
        with self._session_scope("create thread") as session:
            session.add(record)
            session.commit()
            thread = _to_thread(record)
        logger.info("Created thread %s", thread.id)
        return thread

    def get_thread(self, thread_id: str) -> Thread:
        """Get a thread with its title, message count and creation time."""
        with self._session_scope("load thread") as session:
            return _to_thread(self._require_thread(session, thread_id))

    def list_threads(self) -> List[Thread]:
        """List all threads, newest first."""
        with self._session_scope("list threads") as session:
            records = session.query(ThreadRecord).order_by(desc(ThreadRecord.created_at)).all()
            return [_to_thread(r) for r in records]

    def get_or_create_active_thread(self) -> Thread:
        """Return the newest thread, creating a default one when none exist."""
        with self._bootstrap_lock:
            with self._session_scope("load newest thread") as session:
                newest = session.query(ThreadRecord).order_by(desc(ThreadRecord.created_at)).first()
                if newest is not None:
                    return _to_thread(newest)
            return self.create_thread()

    def rename_thread(self, thread_id: str, new_title: Optional[str] = None) -> Thread:
        """Rename a thread. Without a title, the current date and time is used."""
        if new_title is None or not new_title.strip():
            new_title = datetime.now().strftime(RENAME_TITLE_FORMAT)
        with self._thread_lock(thread_id):
            with self._session_scope("rename thread") as session:
                record = self._require_thread(session, thread_id)
                record.title = new_title.strip()
                record.updated_at = utc_now()
                session.commit()
                return _to_thread(record)

    def delete_thread(self, thread_id: str) -> None:
        """Delete a thread and all of its messages in one transaction."""
        with self._thread_lock(thread_id):
            with self._session_scope("delete thread") as session:
                record = self._require_thread(session, thread_id)
                count = record.message_count
                self._delete_thread_cascade(session, [thread_id])
                session.commit()
        self._forget_lock(thread_id)
        logger.info("Deleted thread %s with %d messages", thread_id, count)

    def purge(self) -> int:
        """Delete every thread and message. Returns the number of threads removed."""
        with self._session_scope("list threads for purge") as session:
            thread_ids = sorted(r[0] for r in session.query(ThreadRecord.id).all())

        # Locks are taken in id order so purge cannot deadlock with itself
        locks = [self._lock_for(tid) for tid in thread_ids]
        for lock in locks:
            lock.acquire()
        try:
            with self._session_scope("purge threads") as session:
                self._delete_thread_cascade(session, thread_ids)
                session.commit()
        finally:
            for lock in reversed(locks):
                lock.release()

        for tid in thread_ids:
            self._forget_lock(tid)
        logger.warning("Purged %d threads from chat history", len(thread_ids))
        return len(thread_ids)

    # ------------------------------------------------------------------
    # Messages
    # ------------------------------------------------------------------
    def append_message(self, thread_id: str, text: str, role: Union[MessageRole, str]) -> Message:
        """Append a message to a thread.

        The message row and the thread's counters are committed together,
        so readers never see one without the other.
        """
        role = role if isinstance(role, MessageRole) else MessageRole(role)
        with self._thread_lock(thread_id):
            with self._session_scope("append message") as session:
                thread = self._require_thread(session, thread_id)

                created_at = utc_now()
                if thread.last_message_at is not None and created_at <= thread.last_message_at:
                    created_at = thread.last_message_at + _ONE_TICK
                sequence = (thread.last_sequence or 0) + 1

                record = MessageRecord(
                    id=str(uuid.uuid4()),
                    thread_id=thread_id,
                    role=role.value,
                    text=text,
                    created_at=created_at,
                    sequence_number=sequence,
                )
                session.add(record)

                thread.last_sequence = sequence
                thread.last_message_at = created_at
                thread.message_count = (thread.message_count or 0) + 1
                thread.updated_at = created_at
                session.commit()
                message = _to_message(record)

        logger.debug(
            "Appended %s message #%d to thread %s: %s",
            role.value, message.sequence, thread_id, preview_for_logging(text),
        )
        return message

    def list_messages(self, thread_id: str) -> List[Message]:
        """List a thread's messages in display order."""
        with self._session_scope("list messages") as session:
            self._require_thread(session, thread_id)
            records = session.query(MessageRecord).filter(
                MessageRecord.thread_id == thread_id,
            ).order_by(MessageRecord.created_at, MessageRecord.sequence_number).all()
            return [_to_message(r) for r in records]

    def get_message(self, message_id: str) -> Message:
        """Get a single message by id."""
        with self._session_scope("load message") as session:
            record = session.get(MessageRecord, message_id)
            if record is None:
                raise MessageNotFoundError(f"Message {message_id} not found", code="MESSAGE_NOT_FOUND")
            return _to_message(record)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    @contextmanager
    def _session_scope(self, operation: str) -> Iterator[Session]:
        session = self._session_factory()
        try:
            yield session
        except SQLAlchemyError as exc:
            session.rollback()
            logger.error("Chat history operation '%s' failed: %s", operation, exc, exc_info=True)
            raise PersistenceError(f"Failed to {operation}: {exc}", code="PERSISTENCE_ERROR") from exc
        finally:
            session.close()

    def _require_thread(self, session: Session, thread_id: str) -> ThreadRecord:
        record = session.get(ThreadRecord, thread_id)
        if record is None:
            raise ThreadNotFoundError(f"Thread {thread_id} not found", code="THREAD_NOT_FOUND")
        return record

    def _delete_thread_cascade(self, session: Session, thread_ids: List[str]) -> None:
        """Delete threads and their messages (manual cascade)."""
        if not thread_ids:
            return
        session.execute(
            delete(MessageRecord).where(MessageRecord.thread_id.in_(thread_ids))
        )
        session.execute(
            delete(ThreadRecord).where(ThreadRecord.id.in_(thread_ids))
        )

    def _lock_for(self, thread_id: str) -> threading.Lock:
        with self._locks_guard:
            lock = self._locks.get(thread_id)
            if lock is None:
                lock = threading.Lock()
                self._locks[thread_id] = lock
            return lock

    @contextmanager
    def _thread_lock(self, thread_id: str) -> Iterator[None]:
        with self._lock_for(thread_id):
            yield

    def _forget_lock(self, thread_id: str) -> None:
        # Thread ids are never reused, so a deleted thread's lock is dead weight
        with self._locks_guard:
            self._locks.pop(thread_id, None)

    def _next_created_at(self) -> datetime:
        with self._locks_guard:
            now = utc_now()
            if self._last_created_at is not None and now <= self._last_created_at:
                now = self._last_created_at + _ONE_TICK
            self._last_created_at = now
            return now


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _to_thread(record: ThreadRecord) -> Thread:
    return Thread(
        id=record.id,
        title=record.title,
        created_at=_as_utc(record.created_at),
        message_count=record.message_count or 0,
    )


def _to_message(record: MessageRecord) -> Message:
    return Message(
        id=record.id,
        thread_id=record.thread_id,
        role=MessageRole(record.role),
        text=record.text,
        created_at=_as_utc(record.created_at),
        sequence=record.sequence_number,
    )
