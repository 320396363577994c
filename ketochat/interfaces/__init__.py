"""Interfaces (ports) the application layer depends on."""

from .inference import InferenceProtocol

__all__ = [
    "InferenceProtocol",
]
