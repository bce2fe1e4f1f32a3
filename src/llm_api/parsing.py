"""Lenient JSON parsing for model-generated function arguments."""

from __future__ import annotations

import json
import logging

import json_repair

from llm_api.errors import ParseError
from llm_api.types import JsonValue

logger = logging.getLogger(__name__)


def parse_lenient_json(text: str) -> JsonValue:
    """Parse *text* as JSON, repairing common model mistakes.

    Models emit trailing commas, single quotes, unquoted keys and truncated
    objects. Strict parsing is tried first; on failure the text is repaired.
    Blank input means a call without arguments and yields ``{}``.

    Raises:
        ParseError: When nothing meaningful can be recovered.
    """
    if not text.strip():
        return {}
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        pass

    try:
        value = json_repair.loads(text)
    except Exception as e:
        raise ParseError(
            f"Could not parse function arguments: {text[:200]!r}"
        ) from e

    # json_repair answers "" when it cannot recover anything.
    if value == "":
        raise ParseError(
            f"Could not parse function arguments: {text[:200]!r}",
            hint="The model produced arguments that are not JSON.",
        )
    logger.debug("Repaired malformed JSON arguments: %r", text[:200])
    return value
