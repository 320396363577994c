"""Completion orchestrator - one entry point to the language model."""

import asyncio
import logging
from typing import Callable, Optional

from opentelemetry import trace

from ketochat.domain.errors import CompletionFailedError, CompletionTimeoutError, ModelUnavailableError
from ketochat.interfaces.inference import InferenceProtocol
from ketochat.modules.config.config_manager import DEFAULT_SYSTEM_INSTRUCTIONS

from .utilities.error_handler import classify_completion_error

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


class CompletionSession:
    """
    A model session scoped to exactly one completion.

    Sessions are never reused, so no conversational memory lives inside the
    model; the thread store is the only source of context.
    """

    def __init__(self, inference: InferenceProtocol, system_instructions: str):
        self._inference = inference
        self._system_instructions = system_instructions
        self._used = False

    async def respond(self, prompt: str) -> str:
        if self._used:
            raise RuntimeError("CompletionSession is single-use")
        self._used = True
        return await self._inference.respond(self._system_instructions, prompt)


SessionFactory = Callable[[InferenceProtocol, str], CompletionSession]


class CompletionOrchestrator:
    """
    Concurrency-safe ``complete(prompt) -> reply`` over an inference capability.

    The only state is the system instructions and the timeout, both fixed at
    construction, so calls share nothing mutable and need no lock. Any number
    of calls may be in flight; none holds a resource across its await.
    """

    def __init__(
        self,
        inference: InferenceProtocol,
        system_instructions: str = DEFAULT_SYSTEM_INSTRUCTIONS,
        timeout_seconds: Optional[float] = 60.0,
        session_factory: SessionFactory = CompletionSession,
    ):
        """
        Initialize the orchestrator.

        Args:
            inference: Inference capability implementation
            system_instructions: Instructions sent with every prompt
            timeout_seconds: Upper bound on one model call; None disables it
            session_factory: Builds the per-call session
        """
        self._inference = inference
        self._system_instructions = system_instructions
        self._timeout_seconds = timeout_seconds
        self._session_factory = session_factory

    @property
    def system_instructions(self) -> str:
        return self._system_instructions

    @property
    def timeout_seconds(self) -> Optional[float]:
        return self._timeout_seconds

    async def complete(self, prompt: str) -> str:
        """
        Ask the model for a single reply to ``prompt``.

        Raises:
            ModelUnavailableError: The capability reports itself unavailable
                (no session is constructed)
            CompletionFailedError: Any other failure, including timeouts

        Cancelling the awaiting task stops the wait; the request itself may
        still run to completion inside the capability.
        """
        with tracer.start_as_current_span("ketochat.completion") as span:
            span.set_attribute("ketochat.prompt_chars", len(prompt))

            try:
                available = self._inference.is_available()
            except Exception as exc:
                logger.error("Inference availability check failed: %s", exc, exc_info=True)
                raise ModelUnavailableError("On-device model unavailable.", code="MODEL_UNAVAILABLE") from exc
            if not available:
                logger.warning("Completion rejected: inference capability unavailable")
                raise ModelUnavailableError("On-device model unavailable.", code="MODEL_UNAVAILABLE")

            try:
                session = self._session_factory(self._inference, self._system_instructions)
                if self._timeout_seconds is None:
                    reply = await session.respond(prompt)
                else:
                    reply = await asyncio.wait_for(session.respond(prompt), timeout=self._timeout_seconds)
            except asyncio.TimeoutError as exc:
                logger.error("Completion timed out after %.1fs", self._timeout_seconds)
                raise CompletionTimeoutError(
                    f"The model did not answer within {self._timeout_seconds:g} seconds.",
                    code="COMPLETION_TIMEOUT",
                ) from exc
            except asyncio.CancelledError:
                logger.info("Completion abandoned by caller")
                raise
            except CompletionFailedError:
                raise
            except Exception as exc:
                error_class, reason = classify_completion_error(exc)
                logger.error("Completion failed (%s): %s", error_class.__name__, exc, exc_info=True)
                raise error_class(reason, code="COMPLETION_FAILED") from exc

            span.set_attribute("ketochat.reply_chars", len(reply))
            return reply
