"""Inference capability interface."""

from typing import Protocol, runtime_checkable


@runtime_checkable
class InferenceProtocol(Protocol):
    """
    Port for the language model that answers prompts.

    Implementations may be local or remote. They raise
    InferenceUnavailableError when they cannot serve requests and
    InferenceError for any other failure.
    """

    def is_available(self) -> bool:
        """Report whether the capability can currently serve requests."""
        ...

    async def respond(self, system_instructions: str, prompt: str) -> str:
        """
        Produce a single reply to ``prompt``.

        Args:
            system_instructions: Fixed instructions framing every reply
            prompt: The user-facing prompt text

        Returns:
            Reply text
        """
        ...
