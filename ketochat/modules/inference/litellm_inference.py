"""
LiteLLM-backed inference capability.

Talks to whatever model the inference config names (a local Ollama model by
default, standing in for an on-device model). Each ``respond`` call is a
single, stateless chat completion: the system instructions plus one user
prompt. Conversation context is never carried inside the model.
"""

import logging
import warnings
from typing import Any, Dict, List, Optional

# litellm touches Pydantic attributes deprecated in 2.11 on every response;
# the warnings are cosmetic.
try:
    from pydantic import PydanticDeprecatedSince211
    warnings.filterwarnings("ignore", category=PydanticDeprecatedSince211)
except ImportError:
    pass  # Pydantic <2.11 does not define this category

import litellm
from litellm import acompletion

from ketochat.core.log_sanitizer import preview_for_logging
from ketochat.domain.errors import InferenceCapacityError, InferenceError, InferenceUnavailableError
from ketochat.modules.config.config_manager import InferenceConfig, resolve_env_var

logger = logging.getLogger(__name__)

litellm.drop_params = True  # Drop unsupported params instead of erroring

# Exceptions meaning "the model cannot be reached right now"
_UNAVAILABLE_ERRORS = (
    litellm.ServiceUnavailableError,
    litellm.APIConnectionError,
)


class LiteLLMInference:
    """InferenceProtocol implementation on top of ``litellm.acompletion``.

    ``max_concurrent_requests`` caps calls in flight. A call over the cap is
    rejected with InferenceCapacityError instead of waiting for a slot.
    """

    def __init__(self, inference_config: Optional[InferenceConfig] = None, debug_mode: bool = False):
        if inference_config is None:
            from ketochat.modules.config import config_manager
            inference_config = config_manager.inference_config
        self.config = inference_config
        self._in_flight = 0
        litellm.set_verbose = debug_mode

    @property
    def in_flight(self) -> int:
        return self._in_flight

    def _get_litellm_model_name(self) -> str:
        """Build the provider-qualified model id LiteLLM expects."""
        model_id = self.config.model_name
        provider = self.config.provider
        if provider and not model_id.startswith(f"{provider}/"):
            return f"{provider}/{model_id}"
        return model_id

    def _resolve_api_key(self) -> Optional[str]:
        return resolve_env_var(self.config.api_key or None, required=False)

    def _get_model_kwargs(self) -> Dict[str, Any]:
        kwargs: Dict[str, Any] = {
            "temperature": self.config.temperature,
            "max_tokens": self.config.max_tokens,
        }
        if self.config.api_base:
            kwargs["api_base"] = self.config.api_base
        api_key = self._resolve_api_key()
        if api_key:
            kwargs["api_key"] = api_key
        return kwargs

    def is_available(self) -> bool:
        """A model is available when it is enabled, named, and its api key resolves."""
        if not self.config.enabled or not self.config.model_name:
            return False
        if self.config.api_key and self._resolve_api_key() is None:
            logger.warning("Inference api key reference %s is not set", self.config.api_key)
            return False
        return True

    async def respond(self, system_instructions: str, prompt: str) -> str:
        """Single chat completion: system instructions plus one user prompt."""
        if not self.is_available():
            raise InferenceUnavailableError("Inference model is not configured or disabled", code="MODEL_UNAVAILABLE")

        cap = self.config.max_concurrent_requests
        if cap and self._in_flight >= cap:
            raise InferenceCapacityError(
                f"Inference capacity reached ({cap} requests in flight)",
                code="MODEL_AT_CAPACITY",
            )

        messages: List[Dict[str, str]] = [
            {"role": "system", "content": system_instructions},
            {"role": "user", "content": prompt},
        ]
        model = self._get_litellm_model_name()

        self._in_flight += 1
        try:
            logger.info("Completion request to %s: %d prompt chars", model, len(prompt))
            response = await acompletion(model=model, messages=messages, **self._get_model_kwargs())
        except _UNAVAILABLE_ERRORS as exc:
            logger.error("Inference model %s unreachable: %s", model, exc)
            raise InferenceUnavailableError(f"Model {model} is unreachable: {exc}", code="MODEL_UNAVAILABLE") from exc
        except Exception as exc:
            logger.error("Error calling model %s: %s", model, exc, exc_info=True)
            raise InferenceError(f"Failed to call model {model}: {exc}") from exc
        finally:
            self._in_flight -= 1

        content = response.choices[0].message.content or ""
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug("Model response preview: %s", preview_for_logging(content, 200))
        else:
            logger.info("Model response length: %d chars", len(content))
        return content
