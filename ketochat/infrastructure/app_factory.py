"""Application factory for dependency injection and wiring."""

import logging
from typing import Optional

from ketochat.application.chat.completion_orchestrator import CompletionOrchestrator
from ketochat.application.chat.controller import ChatController
from ketochat.interfaces.inference import InferenceProtocol
from ketochat.modules.chat_history import ConversationStore, get_session_factory, init_database
from ketochat.modules.config import ConfigManager
from ketochat.modules.inference import LiteLLMInference

logger = logging.getLogger(__name__)


class AppFactory:
    """Application factory that wires dependencies (simple in-memory DI).

    Database initialization failure propagates as PersistenceError: without
    its tables the store cannot exist, so callers treat it as fatal.
    """

    def __init__(
        self,
        config_manager: Optional[ConfigManager] = None,
        inference: Optional[InferenceProtocol] = None,
    ) -> None:
        # Configuration
        self.config_manager = config_manager or ConfigManager()
        settings = self.config_manager.app_settings

        # Durable store
        engine = init_database(settings.chat_history_db_url)
        self.conversation_store = ConversationStore(
            get_session_factory(engine),
            default_title=settings.default_thread_title,
        )

        # Inference capability
        inference_config = self.config_manager.inference_config
        self.inference = inference or LiteLLMInference(inference_config, debug_mode=settings.debug_mode)

        self.orchestrator = CompletionOrchestrator(
            self.inference,
            system_instructions=inference_config.system_instructions,
            timeout_seconds=settings.completion_timeout_seconds,
        )
        self.chat_controller = ChatController(self.conversation_store, self.orchestrator)

        logger.info("AppFactory initialized")

    # Accessors
    def get_config_manager(self) -> ConfigManager:  # noqa: D401
        return self.config_manager

    def get_conversation_store(self) -> ConversationStore:  # noqa: D401
        return self.conversation_store

    def get_chat_controller(self) -> ChatController:  # noqa: D401
        return self.chat_controller
