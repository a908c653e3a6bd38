# WORKFLOW: Text generation collaborator for tariff summaries.
# Used by: Summary pipeline
# Functions:
# 1. OllamaTextGenerator.generate() - One bounded LLM call, raw text or TextGenerationError
#
# Generation flow: Prompt -> Ollama client (host, timeout) -> response['response'] -> raw text
# Missing configuration, transport errors, timeouts and malformed payloads are all
# raised as TextGenerationError; the summary pipeline decides how to degrade.

from typing import Optional
import logging

import httpx
import ollama

from core.config import settings
from core.exceptions import TextGenerationError

logger = logging.getLogger(__name__)


class OllamaTextGenerator:
    """Ollama-backed text generator with low-temperature, bounded output."""

    def __init__(self, host: Optional[str] = None, model: Optional[str] = None,
                 max_tokens: Optional[int] = None):
        self.host = settings.ollama_url if host is None else host
        self.model = settings.llm_model if model is None else model
        self.max_tokens = max_tokens or settings.summary_max_tokens

    def _client(self, timeout: float) -> ollama.Client:
        return ollama.Client(host=self.host, timeout=timeout)

    def generate(self, prompt: str, timeout: float) -> str:
        """
        Generate text for ``prompt``.

        Args:
            prompt: Complete prompt text
            timeout: Seconds before the call is abandoned

        Returns:
            Raw generated text

        Raises:
            TextGenerationError: on missing configuration or any call failure
        """
        if not self.host or not self.model:
            raise TextGenerationError("Text generation is not configured (ollama_url/llm_model missing)")

        try:
            response = self._client(timeout).generate(
                model=self.model,
                prompt=prompt,
                options={
                    "temperature": 0.1,  # Low temperature for factual responses
                    "num_predict": self.max_tokens,
                }
            )
        except httpx.TimeoutException as e:
            raise TextGenerationError(f"LLM call timed out after {timeout}s") from e
        except Exception as e:
            raise TextGenerationError(f"LLM call failed: {e}") from e

        try:
            text = response["response"]
        except (KeyError, TypeError) as e:
            raise TextGenerationError("LLM response has no 'response' field") from e
        if not isinstance(text, str):
            raise TextGenerationError(f"LLM response text has unexpected type {type(text).__name__}")

        logger.debug(f"LLM returned {len(text)} characters")
        return text


# Factory function
def create_text_generator() -> OllamaTextGenerator:
    """Create text generator instance."""
    return OllamaTextGenerator()
