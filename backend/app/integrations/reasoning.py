"""
Reasoning client — turns a (system prompt, user prompt) pair into a JSON
string.

The pipeline only depends on ReasoningClient.evaluate(); the Gemini
implementation is the production one.  Anything that goes wrong on the
way (no API key, transport error, empty answer) is raised as
ReasoningError, which each stage turns into its fallback.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

import httpx
from google import genai
from google.genai import errors as genai_errors
from google.genai import types

from app.core.config import settings
from app.core.logging import get_logger
from app.core.tracing import traceable_step
from app.pipeline.errors import ReasoningError

logger = get_logger(__name__)


class ReasoningClient(ABC):
    """Anything that can answer a structured prompt with JSON text."""

    @abstractmethod
    async def evaluate(self, system_prompt: str, user_prompt: str) -> str:
        """Return the raw model answer (expected to be a JSON object)."""


class GeminiReasoningClient(ReasoningClient):
    """
    Google Gemini via google-genai's async API.

    The client is created lazily so that importing this module (and
    building the API app) works without GOOGLE_API_KEY set.
    """

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        client: genai.Client | None = None,
    ) -> None:
        self.api_key = settings.GOOGLE_API_KEY if api_key is None else api_key
        self.model = model or settings.GEMINI_MODEL
        self._client = client

    def _get_client(self) -> genai.Client:
        if self._client is None:
            if not self.api_key:
                raise ReasoningError("GOOGLE_API_KEY is not configured")
            self._client = genai.Client(api_key=self.api_key)
        return self._client

    @traceable_step(name="reasoning_call", run_type="llm", tags=["gemini", "reasoning"])
    async def evaluate(self, system_prompt: str, user_prompt: str) -> str:
        client = self._get_client()

        logger.debug("Calling Gemini", model=self.model, prompt_length=len(user_prompt))
        try:
            response = await client.aio.models.generate_content(
                model=self.model,
                contents=user_prompt,
                config=types.GenerateContentConfig(
                    system_instruction=system_prompt,
                    temperature=settings.LLM_TEMPERATURE,
                    max_output_tokens=settings.LLM_MAX_TOKENS,
                    response_mime_type="application/json",
                ),
            )
        except (genai_errors.APIError, httpx.HTTPError) as exc:
            raise ReasoningError(f"Gemini call failed: {exc}", details={"model": self.model}) from exc

        text = (response.text or "").strip()
        if not text:
            raise ReasoningError("Gemini returned an empty response", details={"model": self.model})

        logger.debug("Gemini response received", model=self.model, response_length=len(text))
        return text
