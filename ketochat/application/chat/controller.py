"""Chat controller - turns one user submission into persisted turns."""

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional

from ketochat.core.log_sanitizer import preview_for_logging
from ketochat.domain.errors import (
    CompletionFailedError,
    DomainError,
    PersistenceError,
    SubmissionInProgressError,
    ThreadNotFoundError,
)
from ketochat.domain.net_carbs import NetCarbDirective, build_snack_prompt, format_summary, parse_directive
from ketochat.domain.threads.models import Message, MessageRole, Thread
from ketochat.modules.chat_history.conversation_store import ConversationStore

from .completion_orchestrator import CompletionOrchestrator
from .utilities.error_handler import user_message_for

logger = logging.getLogger(__name__)


class ChatState(Enum):
    """Where a thread's in-flight submission currently is."""
    IDLE = "idle"
    SENDING = "sending"
    AWAITING_COMPLETION = "awaiting_completion"


@dataclass
class ChatTurn:
    """Outcome of one submission.

    A blank submission yields a turn with neither messages nor an error.
    A failed one carries the error and whatever was persisted before it.
    """
    thread_id: str
    user_message: Optional[Message] = None
    assistant_message: Optional[Message] = None
    directive: Optional[NetCarbDirective] = None
    net_carbs: Optional[float] = None
    error: Optional[DomainError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def skipped(self) -> bool:
        return self.user_message is None and self.error is None

    @property
    def error_message(self) -> Optional[str]:
        return user_message_for(self.error) if self.error is not None else None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "thread_id": self.thread_id,
            "user_message": self.user_message.to_dict() if self.user_message else None,
            "assistant_message": self.assistant_message.to_dict() if self.assistant_message else None,
            "net_carbs": self.net_carbs,
            "error": self.error_message,
        }


class ChatController:
    """
    Coordinates one chat submission end to end.

    user text -> store (user turn) -> net carb directive (optional)
    -> orchestrator -> store (assistant turn)

    Store calls run in worker threads so the event loop keeps serving other
    submissions while one waits on disk or on the model.
    """

    def __init__(self, store: ConversationStore, orchestrator: CompletionOrchestrator):
        """
        Initialize chat controller.

        Args:
            store: Thread and message persistence
            orchestrator: Completion entry point for the model
        """
        self._store = store
        self._orchestrator = orchestrator
        self._states: Dict[str, ChatState] = {}

    def state(self, thread_id: str) -> ChatState:
        return self._states.get(thread_id, ChatState.IDLE)

    async def submit(self, thread_id: str, text: str) -> ChatTurn:
        """
        Handle one user submission on ``thread_id``.

        Never raises for store or model failures; they are returned on the
        turn so the caller can show them. The user turn is kept even when
        the reply fails.
        """
        turn = ChatTurn(thread_id=thread_id)
        text = (text or "").strip()
        if not text:
            return turn

        if self.state(thread_id) is not ChatState.IDLE:
            logger.warning("Rejected submission on busy thread %s", thread_id)
            turn.error = SubmissionInProgressError(
                f"Thread {thread_id} is still waiting for a reply",
                code="SUBMISSION_IN_PROGRESS",
            )
            return turn

        self._states[thread_id] = ChatState.SENDING
        try:
            try:
                turn.user_message = await asyncio.to_thread(
                    self._store.append_message, thread_id, text, MessageRole.USER
                )
            except (ThreadNotFoundError, PersistenceError) as exc:
                logger.error("User message not saved on thread %s: %s", thread_id, exc)
                turn.error = exc
                return turn

            self._states[thread_id] = ChatState.AWAITING_COMPLETION
            try:
                reply = await self._build_reply(text, turn)
            except CompletionFailedError as exc:
                logger.error("No reply for thread %s: %s", thread_id, exc)
                turn.error = exc
                return turn

            # A cancel landing during this call stops the wait; the worker still commits
            try:
                turn.assistant_message = await asyncio.to_thread(
                    self._store.append_message, thread_id, reply, MessageRole.ASSISTANT
                )
            except ThreadNotFoundError as exc:
                # Thread deleted while the model was answering: drop the reply
                logger.info("Discarding reply for deleted thread %s", thread_id)
                turn.error = exc
            except PersistenceError as exc:
                logger.error("Assistant reply not saved on thread %s: %s", thread_id, exc)
                turn.error = exc
            return turn
        finally:
            self._states.pop(thread_id, None)

    async def _build_reply(self, text: str, turn: ChatTurn) -> str:
        directive = parse_directive(text)
        if directive is None:
            logger.debug("Plain completion: %s", preview_for_logging(text))
            return await self._orchestrator.complete(text)

        net = directive.net
        turn.directive = directive
        turn.net_carbs = net
        logger.info("Net carb directive on thread %s: net=%.1f", turn.thread_id, net)
        answer = await self._orchestrator.complete(build_snack_prompt(net))
        return f"{format_summary(directive, net)}\n{answer}"

    # ------------------------------------------------------------------
    # Thread management pass-throughs
    # ------------------------------------------------------------------
    async def start_thread(self, title: Optional[str] = None) -> Thread:
        return await asyncio.to_thread(self._store.create_thread, title)

    async def active_thread(self) -> Thread:
        return await asyncio.to_thread(self._store.get_or_create_active_thread)

    async def list_threads(self) -> List[Thread]:
        return await asyncio.to_thread(self._store.list_threads)

    async def thread_summary(self, thread_id: str) -> Thread:
        return await asyncio.to_thread(self._store.get_thread, thread_id)

    async def history(self, thread_id: str) -> List[Message]:
        return await asyncio.to_thread(self._store.list_messages, thread_id)

    async def rename_thread(self, thread_id: str, new_title: Optional[str] = None) -> Thread:
        return await asyncio.to_thread(self._store.rename_thread, thread_id, new_title)

    async def delete_thread(self, thread_id: str) -> None:
        await asyncio.to_thread(self._store.delete_thread, thread_id)
