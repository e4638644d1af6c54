"""LLM provider adapters."""

from docingest.providers.llm.ollama_provider import OllamaLLMProvider

__all__ = ["OllamaLLMProvider"]
