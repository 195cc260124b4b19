"""LLM provider adapters.

One concrete implementation of ILLMProvider (interfaces/llm_provider.py):
    - OllamaLLMProvider -- local models via Ollama's OpenAI-compatible API

main.py builds it from Settings and hands the same instance to the
classifier, the checker and the command generator; each passes its own
model name per call.
"""

from semantic_archive.providers.llm.ollama_provider import OllamaLLMProvider

__all__ = ["OllamaLLMProvider"]
