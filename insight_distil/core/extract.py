"""
Structured insight extraction from model output.

Models often wrap the requested JSON in markdown fences or surround it with
prose. The extractor strips fences, takes the widest {...} span, parses it
and validates its shape. Malformed JSON is never repaired: a response that
cannot be parsed into a correctly shaped insight is an ExtractionError.
"""

import json
import logging
import re
from typing import Any

from pydantic import ValidationError

from .debug_log import timer
from .types import StructuredInsight

logger = logging.getLogger(__name__)

OPENING_FENCE = re.compile(r"^```[\w+\-]*[ \t]*\n?")
CLOSING_FENCE = re.compile(r"\n?[ \t]*```\s*$")
JSON_OBJECT = re.compile(r"\{[\s\S]*\}")


class ExtractionError(Exception):
    """Raised when model output does not contain a well-formed structured insight."""

    pass


def strip_code_fence(text: str) -> str:
    """Remove an opening ```lang fence and its closing fence, if the text starts with one."""
    if not text.startswith("```"):
        return text
    text = OPENING_FENCE.sub("", text, count=1)
    text = CLOSING_FENCE.sub("", text, count=1)
    return text.strip()


def find_json_candidate(text: str) -> str:
    """
    Return the greedy span from the first '{' to the last '}'.

    Raises:
        ExtractionError: If the text contains no such span
    """
    match = JSON_OBJECT.search(text)
    if match is None:
        raise ExtractionError("No JSON object found in model response")
    return match.group(0)


def _describe_validation_error(error: ValidationError) -> str:
    details = []
    for item in error.errors():
        field_path = ".".join(str(loc) for loc in item.get("loc", ())) or "<root>"
        details.append(f"{field_path}: {item.get('msg', 'invalid')}")
    return "; ".join(details)


@timer
def extract_insight(full_text: str) -> StructuredInsight:
    """
    Parse accumulated model output into a StructuredInsight.

    Args:
        full_text: Complete text produced by the generation provider

    Returns:
        Validated StructuredInsight

    Raises:
        ExtractionError: If no JSON object is found, it fails to parse, or it has the wrong shape
    """
    text = strip_code_fence((full_text or "").strip())
    candidate = find_json_candidate(text)

    try:
        parsed: Any = json.loads(candidate)
    except json.JSONDecodeError as e:
        raise ExtractionError(f"Failed to parse AI response as JSON: {e}") from e

    if not isinstance(parsed, dict):
        raise ExtractionError(f"AI response format is invalid: expected a JSON object, got {type(parsed).__name__}")

    try:
        return StructuredInsight.model_validate(parsed)
    except ValidationError as e:
        logger.debug(f"Insight validation failed for keys: {sorted(parsed.keys())}")
        raise ExtractionError(f"AI response format is invalid: {_describe_validation_error(e)}") from e
