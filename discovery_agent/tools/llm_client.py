"""
Thin async wrapper around the OpenAI chat completions API.

All model calls in the conversation go through ``LLMClient.generate`` so
failures surface as one exception type, ``GenerationError``. JSON calls
go through ``generate_json``, which strips code fences and returns None
instead of raising when the model output cannot be parsed.
"""

import json
import logging
import os
from typing import Any, Optional

from openai import AsyncOpenAI, OpenAIError

from discovery_agent.config import settings
from discovery_agent.utils import strip_code_fences

logger = logging.getLogger(__name__)

Message = dict[str, str]


class GenerationError(Exception):
    """Raised when the model call fails or returns no usable text."""


class LLMClient:
    """Chat-completions client with lazy construction of the SDK client."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        client: Optional[AsyncOpenAI] = None,
        model: Optional[str] = None,
    ) -> None:
        self._api_key = api_key or os.getenv("OPENAI_API_KEY")
        self._client = client
        self.model = model or settings.model.llm_model

    def _get_client(self) -> AsyncOpenAI:
        if self._client is None:
            if not self._api_key:
                raise GenerationError("OPENAI_API_KEY is not configured")
            self._client = AsyncOpenAI(
                api_key=self._api_key,
                timeout=settings.model.llm_timeout_sec,
            )
        return self._client

    async def generate(
        self,
        messages: list[Message],
        model: Optional[str] = None,
        max_tokens: Optional[int] = None,
        temperature: Optional[float] = None,
    ) -> str:
        """Return the model's reply text.

        Raises:
            GenerationError: On any API failure or an empty reply.
        """
        client = self._get_client()
        try:
            response = await client.chat.completions.create(
                model=model or self.model,
                messages=messages,
                max_tokens=max_tokens or settings.model.llm_max_tokens,
                temperature=settings.model.llm_temperature if temperature is None else temperature,
            )
        except OpenAIError as exc:
            raise GenerationError(f"Model call failed: {exc}") from exc

        content = response.choices[0].message.content if response.choices else None
        if not content or not content.strip():
            raise GenerationError("Model returned an empty reply")
        return content.strip()

    async def generate_json(
        self,
        messages: list[Message],
        max_tokens: int = 200,
        temperature: Optional[float] = None,
    ) -> Optional[dict[str, Any]]:
        """Return the model's reply parsed as a JSON object, or None."""
        if temperature is None:
            temperature = settings.model.classifier_temperature
        try:
            raw = await self.generate(messages, max_tokens=max_tokens, temperature=temperature)
        except GenerationError as exc:
            logger.warning("Structured model call failed: %s", exc)
            return None

        try:
            parsed = json.loads(strip_code_fences(raw))
        except json.JSONDecodeError:
            logger.warning("Model returned malformed JSON: %.200s", raw)
            return None
        if not isinstance(parsed, dict):
            logger.warning("Model returned non-object JSON: %.200s", raw)
            return None
        return parsed
