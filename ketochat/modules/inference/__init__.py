"""Inference capability adapters."""

from .litellm_inference import LiteLLMInference

__all__ = [
    "LiteLLMInference",
]
