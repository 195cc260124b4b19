"""Abstract base class for LLM service providers.

Defines the contract for the language-model backend used by the
classification, validation and command-generation stages.  The stages only
ever see this interface, so a different model server can be swapped in
without touching them.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any


# Concrete implementation: OllamaLLMProvider (semantic_archive/providers/llm/)
class ILLMProvider(ABC):
    """Contract for schema-constrained text completion."""

    @abstractmethod
    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        *,
        model: str | None = None,
        json_schema: dict[str, Any] | None = None,
        temperature: float = 0.0,
        max_tokens: int = 4000,
    ) -> str:
        """Generate a completion from the model.

        Parameters
        ----------
        system_prompt:
            The system/instruction message that sets the model's behaviour.
        user_prompt:
            The user-facing prompt containing the document and request.
        model:
            Model name override; the provider's default model when None.
        json_schema:
            When given, the response is constrained to JSON matching this
            schema.  Callers must still validate the result.
        temperature:
            Sampling temperature.  Every pipeline stage passes 0.0.
        max_tokens:
            Upper bound on the number of tokens in the response.

        Returns
        -------
        str
            The model's raw text response.

        Raises
        ------
        semantic_archive.utils.errors.LLMError
            If the API call fails or returns no content.
        """

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier for this LLM provider."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if the provider is configured.

        Does not contact the remote service.
        """

    @abstractmethod
    async def validate_credentials(self) -> bool:
        """Perform a lightweight call to confirm the service is reachable."""
