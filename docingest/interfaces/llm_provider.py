"""Abstract base class for text-completion providers."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator


class ILLMProvider(ABC):
    """Contract for the completion service that turns a RAG prompt into an answer."""

    @abstractmethod
    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float = 0.2,
        max_tokens: int = 2000,
    ) -> str:
        """Generate a completion.

        Parameters
        ----------
        system_prompt:
            Instruction block; for RAG this is the assembled grounded prompt.
        user_prompt:
            The user's question.
        temperature:
            Sampling temperature.
        max_tokens:
            Upper bound on generated tokens.

        Returns
        -------
        str
            The model's text response.

        Raises
        ------
        docingest.utils.errors.LLMError
            If the call fails or the response is empty.
        """

    @abstractmethod
    def stream(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float = 0.2,
        max_tokens: int = 2000,
    ) -> AsyncIterator[str]:
        """Yield the completion as text deltas while it is generated.

        Takes the same arguments as :meth:`complete`.  Implementations are
        async generators; the request is sent on first iteration.

        Raises
        ------
        docingest.utils.errors.LLMError
            If the call fails mid-stream.
        """

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a short provider name used in logs and errors."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if the backing service is configured."""
