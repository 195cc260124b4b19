"""Graph-command generation from a classification.

The function-calling model turns the classifier's entity list into a batch
of ``INSERT_ENTITY`` / ``INSERT_RELATIONSHIP`` commands that link the
document to every concept it mentions.  The batch is returned unexecuted;
the graph executor applies it inside one transaction.
"""

from __future__ import annotations

import json

from pydantic import ValidationError

from semantic_archive.interfaces.llm_provider import ILLMProvider
from semantic_archive.models.classification import COMMANDS_SCHEMA, Classification
from semantic_archive.models.graph import DEFAULT_RELATIONSHIP_CLASS, GraphCommand
from semantic_archive.utils.errors import ClassificationError
from semantic_archive.utils.llm_json import parse_json_object
from semantic_archive.utils.logging import get_logger

logger = get_logger(__name__)


class CommandGenerator:
    """Asks the function-calling model for the graph mutations of one document."""

    def __init__(self, llm_provider: ILLMProvider, model: str | None = None) -> None:
        self._llm = llm_provider
        self._model = model

    async def generate(
        self,
        classification: Classification,
        document_id: str,
    ) -> list[GraphCommand]:
        """Return the commands for *classification*, in model order.

        Items whose action is not a known command, or whose payload is not
        an object, are dropped with a ``command_dropped`` warning; the rest
        of the batch is kept.

        Raises
        ------
        ClassificationError
            If the response is not JSON or has no ``databaseCommands`` list.
        """
        response = await self._llm.complete(
            system_prompt=(
                "You generate database commands that build a knowledge graph.  "
                "Answer with a single JSON object."
            ),
            user_prompt=self._build_prompt(classification, document_id),
            model=self._model,
            json_schema=COMMANDS_SCHEMA,
            temperature=0.0,
        )

        try:
            raw_commands = parse_json_object(response)["databaseCommands"]
        except (ValueError, KeyError) as exc:
            raise ClassificationError(
                message=f"Command generator returned malformed output: {exc}",
                provider_name=self._llm.get_provider_name(),
            ) from exc
        if not isinstance(raw_commands, list):
            raise ClassificationError(
                message="Command generator returned a non-list databaseCommands",
                provider_name=self._llm.get_provider_name(),
            )

        commands: list[GraphCommand] = []
        for index, raw in enumerate(raw_commands):
            try:
                commands.append(GraphCommand.model_validate(raw))
            except ValidationError as exc:
                logger.warning(
                    "command_dropped",
                    document_id=document_id,
                    index=index,
                    error=exc.errors()[0]["msg"] if exc.errors() else str(exc),
                )

        logger.info(
            "commands_generated",
            document_id=document_id,
            commands=len(commands),
            dropped=len(raw_commands) - len(commands),
        )
        return commands

    @staticmethod
    def _build_prompt(classification: Classification, document_id: str) -> str:
        entities = [concept.model_dump() for concept in classification.entities]
        return (
            f"Document ID: {document_id}\n"
            f"Entities: {json.dumps(entities)}\n\n"
            "For each entity emit:\n"
            '1. INSERT_ENTITY with payload {"id": "<entity name>", '
            '"type": "<entity type>", "_class": "Concept"}\n'
            "2. INSERT_RELATIONSHIP linking the document to the entity with "
            f'payload {{"source": "{document_id}", "target": "<entity name>", '
            f'"_class": "{DEFAULT_RELATIONSHIP_CLASS}"}}\n\n'
            'Return {"databaseCommands": [{"action": ..., "payload": {...}}, ...]}.'
        )
