"""Chat application services."""

from .completion_orchestrator import CompletionOrchestrator, CompletionSession
from .controller import ChatController, ChatState, ChatTurn

__all__ = [
    "ChatController",
    "ChatState",
    "ChatTurn",
    "CompletionOrchestrator",
    "CompletionSession",
]
