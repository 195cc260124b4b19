"""LLM-based document classification service.

Sends the head of a document's text to the classifier model and turns the
schema-constrained JSON answer into a :class:`Classification`: a title, one
of a closed set of document types, a short summary, and the named entities
that appear in the text.

The prompt asks for extraction, not inference: every entity must be
findable verbatim in the source.
"""

from __future__ import annotations

from typing import Any

from pydantic import ValidationError

from semantic_archive.interfaces.llm_provider import ILLMProvider
from semantic_archive.models.classification import CLASSIFICATION_SCHEMA, Classification
from semantic_archive.utils.errors import ClassificationError
from semantic_archive.utils.llm_json import parse_json_object
from semantic_archive.utils.logging import get_logger


class DocumentClassifier:
    """Classifies extracted document text with a single schema-constrained call.

    There is no in-service retry: the model runs at temperature 0.0, so a
    second identical request would most likely return the same answer.
    Retries happen at the job level, where they also cover transport errors.
    """

    def __init__(
        self,
        llm_provider: ILLMProvider,
        model: str | None = None,
        char_limit: int = 8000,
    ) -> None:
        """Initialise the classifier.

        Parameters
        ----------
        llm_provider:
            The LLM backend used for completion.
        model:
            Classifier model name; the provider default when None.
        char_limit:
            Number of leading characters of the document sent to the model.
        """
        self._llm = llm_provider
        self._model = model
        self._char_limit = char_limit
        self._logger = get_logger(__name__)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def classify(self, text: str, metadata: dict[str, Any]) -> Classification:
        """Classify *text* and extract its entities.

        Parameters
        ----------
        text:
            Full extracted document text.  Only the first ``char_limit``
            characters are sent.
        metadata:
            File metadata; ``fileName`` is included in the prompt.

        Returns
        -------
        Classification
            Validated classification with camelCase JSON aliases.

        Raises
        ------
        ClassificationError
            If the response is not JSON or does not match the schema.
        semantic_archive.utils.errors.LLMError
            If the model call itself fails.
        """
        file_name = str(metadata.get("fileName", "unknown"))
        self._logger.info(
            "classification_start",
            file=file_name,
            chars=len(text),
            sent_chars=min(len(text), self._char_limit),
        )

        response = await self._llm.complete(
            system_prompt=self._system_prompt(),
            user_prompt=self._build_prompt(text[: self._char_limit], file_name),
            model=self._model,
            json_schema=CLASSIFICATION_SCHEMA,
            temperature=0.0,
        )

        try:
            classification = Classification.model_validate(parse_json_object(response))
        except (ValueError, ValidationError) as exc:
            self._logger.warning("classification_unparseable", file=file_name, error=str(exc))
            raise ClassificationError(
                message=f"Classifier returned malformed output for {file_name}: {exc}",
                provider_name=self._llm.get_provider_name(),
            ) from exc

        self._logger.info(
            "classification_complete",
            file=file_name,
            document_type=classification.document_type.value,
            entities=len(classification.entities),
        )
        return classification

    # ------------------------------------------------------------------
    # Prompt construction
    # ------------------------------------------------------------------

    @staticmethod
    def _system_prompt() -> str:
        return (
            "You are a precise extraction agent.  Report only information that "
            "is explicitly present in the source text.  Never infer, assume, or "
            "add related concepts.  Answer with a single JSON object."
        )

    @staticmethod
    def _build_prompt(text: str, file_name: str) -> str:
        return (
            f"Document: {file_name}\n"
            f"Text:\n{text}\n\n"
            "Rules:\n"
            "1. title: the file name, or a title stated explicitly in the text.\n"
            "2. documentType: code files (.py, .js, .sh, .json, ...) are "
            '"TechSpec"; research write-ups are "ResearchReport"; READMEs and '
            'guides are "Tutorial"; completion or handoff notes are '
            '"CompletionDoc" or "HandoffDoc"; anything else is "Other".\n'
            "3. summary: two or three sentences describing only what the text "
            "actually contains.\n"
            "4. entities: only names that appear verbatim in the text, each with "
            "a short type (Technology, Person, Organization, Concept, ...).  Do "
            "not add related concepts, inferred technologies, generic terms, or "
            "components that are described but never named.\n\n"
            "Every entity must be findable in the source text.  Return JSON "
            "with the keys title, documentType, summary and entities."
        )
