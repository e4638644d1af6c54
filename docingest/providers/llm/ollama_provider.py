"""Completion adapter for a local Ollama server.

Ollama serves an OpenAI-compatible ``/v1`` API, so the ``openai`` async
client is reused with a different base URL and a placeholder key.  The
chat model is taken from ``OLLAMA_CHAT_MODEL`` (``gemma3`` by default).
"""

from __future__ import annotations

from collections.abc import AsyncIterator

import openai
import structlog

from docingest.config.settings import Settings
from docingest.interfaces.llm_provider import ILLMProvider
from docingest.utils.errors import LLMError

logger = structlog.get_logger(logger_name=__name__)

_PROVIDER_NAME = "ollama"


class OllamaLLMProvider(ILLMProvider):
    """Answers grounded RAG prompts with an Ollama chat model."""

    def __init__(self, settings: Settings) -> None:
        self._base_url = settings.ollama_base_url
        self._model = settings.ollama_chat_model
        self._client = openai.AsyncOpenAI(
            base_url=f"{self._base_url.rstrip('/')}/v1",
            api_key="ollama",
            timeout=settings.http_timeout_seconds,
        )

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float = 0.2,
        max_tokens: int = 2000,
    ) -> str:
        try:
            response = await self._client.chat.completions.create(
                model=self._model,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_prompt},
                ],
                temperature=temperature,
                max_tokens=max_tokens,
            )
        except openai.APIError as exc:
            logger.error("rag_completion_failed", model=self._model, error=str(exc))
            raise LLMError(
                message=f"Chat completion failed: {exc}",
                provider_name=_PROVIDER_NAME,
            ) from exc

        answer = (response.choices[0].message.content or "").strip()
        if not answer:
            raise LLMError(
                message=f"Model {self._model} returned an empty response",
                provider_name=_PROVIDER_NAME,
            )
        logger.info(
            "rag_completion_received",
            model=self._model,
            prompt_chars=len(system_prompt) + len(user_prompt),
            answer_chars=len(answer),
        )
        return answer

    async def stream(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float = 0.2,
        max_tokens: int = 2000,
    ) -> AsyncIterator[str]:
        streamed_chars = 0
        try:
            response = await self._client.chat.completions.create(
                model=self._model,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_prompt},
                ],
                temperature=temperature,
                max_tokens=max_tokens,
                stream=True,
            )
            async for event in response:
                if not event.choices:
                    continue
                delta = event.choices[0].delta.content
                if delta:
                    streamed_chars += len(delta)
                    yield delta
        except openai.APIError as exc:
            logger.error("rag_stream_failed", model=self._model, error=str(exc))
            raise LLMError(
                message=f"Streaming chat completion failed: {exc}",
                provider_name=_PROVIDER_NAME,
            ) from exc
        logger.info("rag_stream_finished", model=self._model, answer_chars=streamed_chars)

    def get_provider_name(self) -> str:
        return _PROVIDER_NAME

    def is_available(self) -> bool:
        return bool(self._base_url and self._model)
