"""Tests for the thread and message store.

Tests cover: database init, thread CRUD, append ordering, cascade delete,
purge, and concurrent appends. Uses a temporary DuckDB file per test.
"""

import os
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest
from sqlalchemy.exc import OperationalError

from ketochat.domain.errors import MessageNotFoundError, PersistenceError, ThreadNotFoundError
from ketochat.domain.threads.models import MessageRole
from ketochat.modules.chat_history.database import reset_engine


@pytest.fixture(autouse=True)
def _clean_engine():
    """Reset the global engine before and after each test."""
    reset_engine()
    yield
    reset_engine()


@pytest.fixture
def db_path(tmp_path):
    """Provide a temporary DuckDB file path."""
    return str(tmp_path / "test_ketochat.db")


@pytest.fixture
def store(db_path):
    """Create a ConversationStore backed by a temp DuckDB."""
    from ketochat.modules.chat_history import ConversationStore, get_session_factory, init_database

    init_database(f"duckdb:///{db_path}")
    return ConversationStore(get_session_factory())


class TestDatabaseInit:
    def test_init_creates_tables(self, db_path):
        from ketochat.modules.chat_history import init_database
        engine = init_database(f"duckdb:///{db_path}")
        assert engine is not None
        assert os.path.exists(db_path)

    def test_init_idempotent(self, db_path):
        from ketochat.modules.chat_history import init_database
        init_database(f"duckdb:///{db_path}")
        reset_engine()
        init_database(f"duckdb:///{db_path}")

    def test_data_survives_engine_restart(self, db_path):
        from ketochat.modules.chat_history import ConversationStore, get_session_factory, init_database

        init_database(f"duckdb:///{db_path}")
        first = ConversationStore(get_session_factory())
        thread = first.create_thread("Breakfast")
        first.append_message(thread.id, "eggs?", MessageRole.USER)

        reset_engine()
        init_database(f"duckdb:///{db_path}")
        second = ConversationStore(get_session_factory())
        assert second.get_thread(thread.id).title == "Breakfast"
        assert [m.text for m in second.list_messages(thread.id)] == ["eggs?"]


class TestThreads:
    def test_create_thread_default_title(self, store):
        thread = store.create_thread()
        assert thread.title == "Keto Chat"
        assert thread.message_count == 0
        assert thread.created_at.tzinfo is not None

    def test_create_thread_custom_title(self, store):
        thread = store.create_thread("  Dinner ideas  ")
        assert thread.title == "Dinner ideas"

    def test_custom_default_title(self, db_path):
        from ketochat.modules.chat_history import ConversationStore, get_session_factory, init_database
        init_database(f"duckdb:///{db_path}")
        custom = ConversationStore(get_session_factory(), default_title="Low Carb")
        assert custom.create_thread().title == "Low Carb"

    def test_list_threads_newest_first(self, store):
        a = store.create_thread("A")
        b = store.create_thread("B")
        c = store.create_thread("C")
        assert [t.id for t in store.list_threads()] == [c.id, b.id, a.id]

    def test_list_threads_empty(self, store):
        assert store.list_threads() == []

    def test_get_missing_thread(self, store):
        with pytest.raises(ThreadNotFoundError):
            store.get_thread("nonexistent-id")

    def test_active_thread_created_when_none(self, store):
        thread = store.get_or_create_active_thread()
        assert thread.title == "Keto Chat"
        assert len(store.list_threads()) == 1

    def test_active_thread_is_newest(self, store):
        store.create_thread("old")
        newest = store.create_thread("new")
        assert store.get_or_create_active_thread().id == newest.id
        assert len(store.list_threads()) == 2

    def test_rename_thread(self, store):
        thread = store.create_thread()
        renamed = store.rename_thread(thread.id, "Snacks")
        assert renamed.title == "Snacks"
        assert store.get_thread(thread.id).title == "Snacks"

    def test_rename_without_title_uses_timestamp(self, store):
        thread = store.create_thread()
        renamed = store.rename_thread(thread.id)
        # e.g. "Oct 17, 2026 at 09:41 AM"
        parsed = datetime.strptime(renamed.title, "%b %d, %Y at %I:%M %p")
        assert abs((datetime.now() - parsed).total_seconds()) < 120

    def test_rename_missing_thread(self, store):
        with pytest.raises(ThreadNotFoundError):
            store.rename_thread("nonexistent-id", "x")


class TestMessages:
    def test_append_and_list(self, store):
        thread = store.create_thread()
        store.append_message(thread.id, "hello", MessageRole.USER)
        store.append_message(thread.id, "hi there", "assistant")

        messages = store.list_messages(thread.id)
        assert [m.text for m in messages] == ["hello", "hi there"]
        assert [m.role for m in messages] == [MessageRole.USER, MessageRole.ASSISTANT]
        assert messages[0].is_user
        assert not messages[1].is_user
        assert store.get_thread(thread.id).message_count == 2

    def test_append_assigns_increasing_sequence_and_time(self, store):
        thread = store.create_thread()
        appended = [store.append_message(thread.id, f"m{i}", MessageRole.USER) for i in range(10)]

        assert [m.sequence for m in appended] == list(range(1, 11))
        for earlier, later in zip(appended, appended[1:]):
            assert earlier.created_at < later.created_at

        listed = store.list_messages(thread.id)
        assert [m.id for m in listed] == [m.id for m in appended]
        assert listed == sorted(listed, key=lambda m: m.sort_key)

    def test_append_timestamps_are_utc(self, store):
        thread = store.create_thread()
        message = store.append_message(thread.id, "x", MessageRole.USER)
        assert message.created_at.tzinfo == timezone.utc
        assert abs((datetime.now(timezone.utc) - message.created_at).total_seconds()) < 60

    def test_append_preserves_text_verbatim(self, store):
        thread = store.create_thread()
        text = "  line one\nline two → ≤ 20g  "
        store.append_message(thread.id, text, MessageRole.ASSISTANT)
        assert store.list_messages(thread.id)[0].text == text

    def test_append_to_missing_thread(self, store):
        with pytest.raises(ThreadNotFoundError):
            store.append_message("nonexistent-id", "hello", MessageRole.USER)

    def test_append_rejects_unknown_role(self, store):
        thread = store.create_thread()
        with pytest.raises(ValueError):
            store.append_message(thread.id, "hello", "system")

    def test_list_messages_missing_thread(self, store):
        with pytest.raises(ThreadNotFoundError):
            store.list_messages("nonexistent-id")

    def test_messages_isolated_per_thread(self, store):
        a = store.create_thread("A")
        b = store.create_thread("B")
        store.append_message(a.id, "for a", MessageRole.USER)
        store.append_message(b.id, "for b", MessageRole.USER)
        assert [m.text for m in store.list_messages(a.id)] == ["for a"]
        assert [m.text for m in store.list_messages(b.id)] == ["for b"]
        # Each thread has its own sequence
        assert store.list_messages(b.id)[0].sequence == 1

    def test_get_message(self, store):
        thread = store.create_thread()
        message = store.append_message(thread.id, "hello", MessageRole.USER)
        assert store.get_message(message.id) == message

    def test_get_missing_message(self, store):
        with pytest.raises(MessageNotFoundError):
            store.get_message("nonexistent-id")


class TestDelete:
    def test_delete_cascades_to_messages(self, store):
        thread = store.create_thread()
        first = store.append_message(thread.id, "one", MessageRole.USER)
        second = store.append_message(thread.id, "two", MessageRole.ASSISTANT)

        store.delete_thread(thread.id)

        with pytest.raises(ThreadNotFoundError):
            store.get_thread(thread.id)
        for message in (first, second):
            with pytest.raises(MessageNotFoundError):
                store.get_message(message.id)
        assert store.list_threads() == []

    def test_delete_leaves_other_threads(self, store):
        keep = store.create_thread("keep")
        drop = store.create_thread("drop")
        kept_msg = store.append_message(keep.id, "stay", MessageRole.USER)
        store.append_message(drop.id, "go", MessageRole.USER)

        store.delete_thread(drop.id)

        assert [t.id for t in store.list_threads()] == [keep.id]
        assert store.get_message(kept_msg.id).text == "stay"

    def test_delete_missing_thread(self, store):
        with pytest.raises(ThreadNotFoundError):
            store.delete_thread("nonexistent-id")

    def test_append_after_delete_fails(self, store):
        thread = store.create_thread()
        store.delete_thread(thread.id)
        with pytest.raises(ThreadNotFoundError):
            store.append_message(thread.id, "late", MessageRole.ASSISTANT)

    def test_purge(self, store):
        for i in range(3):
            t = store.create_thread(f"T{i}")
            store.append_message(t.id, "x", MessageRole.USER)
        assert store.purge() == 3
        assert store.list_threads() == []

    def test_purge_empty(self, store):
        assert store.purge() == 0


class TestConcurrency:
    def test_concurrent_appends_same_thread(self, store):
        thread = store.create_thread()
        count = 20

        with ThreadPoolExecutor(max_workers=8) as pool:
            results = list(pool.map(
                lambda i: store.append_message(thread.id, f"msg {i}", MessageRole.USER),
                range(count),
            ))

        assert sorted(m.sequence for m in results) == list(range(1, count + 1))
        listed = store.list_messages(thread.id)
        assert len(listed) == count
        assert [m.sequence for m in listed] == list(range(1, count + 1))
        for earlier, later in zip(listed, listed[1:]):
            assert earlier.created_at < later.created_at
        assert store.get_thread(thread.id).message_count == count

    def test_concurrent_appends_different_threads(self, store):
        threads = [store.create_thread(f"T{i}") for i in range(3)]

        def write(thread):
            for i in range(5):
                store.append_message(thread.id, f"{thread.title}-{i}", MessageRole.USER)

        with ThreadPoolExecutor(max_workers=len(threads)) as pool:
            list(pool.map(write, threads))

        for thread in threads:
            listed = store.list_messages(thread.id)
            assert [m.text for m in listed] == [f"{thread.title}-{i}" for i in range(5)]
            assert [m.sequence for m in listed] == [1, 2, 3, 4, 5]


class TestPersistenceErrors:
    def test_database_failure_becomes_persistence_error(self):
        from ketochat.modules.chat_history import ConversationStore

        session = MagicMock()
        session.get.side_effect = OperationalError("SELECT", {}, Exception("disk I/O error"))
        failing = ConversationStore(MagicMock(return_value=session))

        with pytest.raises(PersistenceError) as exc_info:
            failing.append_message("some-thread", "hello", MessageRole.USER)

        assert exc_info.value.code == "PERSISTENCE_ERROR"
        session.rollback.assert_called_once()
        session.close.assert_called_once()
