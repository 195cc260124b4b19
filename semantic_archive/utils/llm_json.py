"""Pull a JSON object out of an LLM response string.

Schema-constrained decoding usually yields bare JSON, but some models still
wrap the object in markdown fences or add a sentence of preamble.  The
stages parse every response through :func:`parse_json_object` so that both
shapes are accepted.
"""

from __future__ import annotations

import json
import re
from typing import Any

# Matches markdown code fences (```json ... ``` or ``` ... ```).
_JSON_FENCE_RE = re.compile(r"```(?:json)?\s*\n?(.*?)\n?\s*```", re.DOTALL)


def parse_json_object(response: str) -> dict[str, Any]:
    """Return the JSON object contained in *response*.

    Raises
    ------
    ValueError
        If no JSON object can be decoded (``json.JSONDecodeError`` is a
        subclass), or the decoded value is not an object.
    """
    text = response.strip()

    fence_match = _JSON_FENCE_RE.search(text)
    if fence_match:
        text = fence_match.group(1).strip()

    # Preamble before the object: keep the outermost brace pair.
    if not text.startswith("{"):
        start = text.find("{")
        end = text.rfind("}")
        if start == -1 or end <= start:
            raise ValueError("No JSON object found in LLM response")
        text = text[start : end + 1]

    parsed = json.loads(text)
    if not isinstance(parsed, dict):
        raise ValueError(f"Expected a JSON object, got {type(parsed).__name__}")
    return parsed
