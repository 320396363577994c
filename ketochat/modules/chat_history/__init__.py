"""Thread and message persistence using SQLAlchemy with DuckDB/PostgreSQL."""

from .conversation_store import DEFAULT_THREAD_TITLE, ConversationStore
from .database import get_engine, get_session_factory, init_database, reset_engine
from .models import Base, MessageRecord, ThreadRecord

__all__ = [
    "get_engine",
    "get_session_factory",
    "init_database",
    "reset_engine",
    "ConversationStore",
    "DEFAULT_THREAD_TITLE",
    "Base",
    "MessageRecord",
    "ThreadRecord",
]
