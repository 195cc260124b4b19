"""Optional second-opinion check on a classification.

A separate model call compares the classifier's output with the head of the
source text and returns ``isValid`` plus its reasoning.  A rejection raises
:class:`ValidationRejectedError`, which aborts the job attempt before any
graph write.

The check is lenient: entities that follow from imports, file names or the
language of a code file are accepted, and only entities with no basis in
the text are grounds for rejection.
"""

from __future__ import annotations

import json

from pydantic import ValidationError

from semantic_archive.interfaces.llm_provider import ILLMProvider
from semantic_archive.models.classification import (
    VALIDATION_SCHEMA,
    Classification,
    ValidationVerdict,
)
from semantic_archive.utils.errors import ClassificationError, ValidationRejectedError
from semantic_archive.utils.llm_json import parse_json_object
from semantic_archive.utils.logging import get_logger

logger = get_logger(__name__)


class ClassificationChecker:
    """Accepts or rejects a classification against its source text."""

    def __init__(
        self,
        llm_provider: ILLMProvider,
        model: str | None = None,
        char_limit: int = 4000,
    ) -> None:
        self._llm = llm_provider
        self._model = model
        self._char_limit = char_limit

    async def check(self, text: str, classification: Classification) -> ValidationVerdict:
        """Return the verdict when the classification is accepted.

        Raises
        ------
        ValidationRejectedError
            When the checker answers ``isValid: false``; carries the reasoning.
        ClassificationError
            When the checker's own output is malformed.
        """
        response = await self._llm.complete(
            system_prompt=(
                "You are a reasonable validation agent.  Decide whether a "
                "document classification is supported by the source text.  "
                "Answer with a single JSON object."
            ),
            user_prompt=self._build_prompt(text[: self._char_limit], classification),
            model=self._model,
            json_schema=VALIDATION_SCHEMA,
            temperature=0.0,
        )

        try:
            verdict = ValidationVerdict.model_validate(parse_json_object(response))
        except (ValueError, ValidationError) as exc:
            raise ClassificationError(
                message=f"Checker returned malformed output: {exc}",
                provider_name=self._llm.get_provider_name(),
            ) from exc

        if not verdict.is_valid:
            logger.warning(
                "classification_rejected",
                title=classification.title,
                reasoning=verdict.reasoning,
            )
            raise ValidationRejectedError(
                message=f"Classification of '{classification.title}' rejected",
                provider_name=self._llm.get_provider_name(),
                reasoning=verdict.reasoning,
            )

        logger.info("classification_accepted", title=classification.title)
        return verdict

    @staticmethod
    def _build_prompt(text: str, classification: Classification) -> str:
        return (
            f"Original text snippet:\n{text}\n\n"
            "Classified output:\n"
            f"{json.dumps(classification.to_prompt_json(), indent=2)}\n\n"
            "Accept entities that are:\n"
            "- mentioned verbatim in the text;\n"
            "- standard inferences from code, such as the language of a .py "
            'file, or "PyTorch" from "import torch";\n'
            "- derived from the file name or extension;\n"
            "- clearly implied by the context.\n\n"
            "Reject only entities that are fabricated with no basis in the "
            "text, contradicted by it, or from an unrelated domain.  The "
            "summary must reasonably describe the content and the document "
            "type must match its general category.\n\n"
            'Return {"isValid": true|false, "reasoning": "..."}; when '
            "rejecting, name the fabricated entities."
        )
