"""
Generation provider interface and the OpenAI implementation.

The pipeline depends only on the GenerationProvider capability: a blocking
generate() call and a lazy generate_stream() iterator of text fragments.
Both report failures as ProviderError.
"""

import logging
from typing import Any, Dict, Iterator, Optional, Protocol, runtime_checkable

from .config import config, get_client

logger = logging.getLogger(__name__)


class ProviderError(Exception):
    """Raised when a generation or transcription provider fails or returns an unusable response."""

    pass


@runtime_checkable
class GenerationProvider(Protocol):
    """Capability interface for text generation."""

    def generate(self, prompt: str) -> str:
        """Return the full response text or raise ProviderError."""
        ...

    def generate_stream(self, prompt: str) -> Iterator[str]:
        """
        Return an ordered, finite iterator of text fragments.

        Closing the iterator must abort the underlying request.
        """
        ...


class OpenAIGenerationProvider:
    """
    Generation provider backed by OpenAI chat completions.

    Handles both standard and reasoning models: reasoning models get
    max_completion_tokens and no temperature.
    """

    def __init__(self, client: Optional[Any] = None, model: Optional[str] = None, max_output_tokens: int = 2000):
        """
        Initialize the provider.

        Args:
            client: OpenAI client, created from configuration when omitted
            model: Model name, defaults to LLM_MODEL
            max_output_tokens: Upper bound on generated tokens
        """
        self.client = client if client is not None else get_client()
        self.model = model or config.llm_model
        self.max_output_tokens = max_output_tokens

    def _request_params(self, prompt: str, stream: bool) -> Dict[str, Any]:
        request_params: Dict[str, Any] = {
            "model": self.model,
            "messages": [{"role": "user", "content": prompt}],
        }

        if config.is_reasoning_model:
            request_params["max_completion_tokens"] = self.max_output_tokens
        else:
            request_params["max_tokens"] = self.max_output_tokens
            request_params["temperature"] = config.model_temperature

        if stream:
            request_params["stream"] = True
        return request_params

    def generate(self, prompt: str) -> str:
        """
        Make a single non-streaming generation request.

        Raises:
            ProviderError: If the request fails or the response is empty
        """
        try:
            response = self.client.chat.completions.create(**self._request_params(prompt, stream=False))
        except Exception as e:
            raise ProviderError(f"Generation request failed: {e}") from e

        content = response.choices[0].message.content if response.choices else None
        if not content or not content.strip():
            raise ProviderError("No response text received from generation provider")
        return content

    def generate_stream(self, prompt: str) -> Iterator[str]:
        """
        Stream text deltas from a chat completion.

        The HTTP response is closed when the iterator finishes, fails, or is
        closed by the consumer.

        Raises:
            ProviderError: If the request cannot be opened or the stream breaks
        """
        try:
            stream = self.client.chat.completions.create(**self._request_params(prompt, stream=True))
        except Exception as e:
            raise ProviderError(f"Generation request failed: {e}") from e

        try:
            for chunk in stream:
                if not chunk.choices:
                    continue
                delta = chunk.choices[0].delta.content
                if delta:
                    yield delta
        except Exception as e:
            raise ProviderError(f"Generation stream failed: {e}") from e
        finally:
            logger.debug("Closing generation stream")
            stream.close()


# Global provider instance
_provider: Optional[OpenAIGenerationProvider] = None


def get_generation_provider() -> OpenAIGenerationProvider:
    """
    Get or create the global OpenAI generation provider.

    Raises:
        ConfigError: If the OpenAI client cannot be configured
    """
    global _provider
    if _provider is None or _provider.model != config.llm_model:
        _provider = OpenAIGenerationProvider()
    return _provider
