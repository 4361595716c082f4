"""
Repair and parse structured model output.

Models are asked for a bare JSON array but often answer with markdown
fences, trailing commentary, or output cut off by the token limit. The
repair keeps every element that was fully closed before the cut and drops
only the dangling partial one.
"""
import json
import re
from typing import Any, List, Optional, Type, TypeVar

import structlog
from pydantic import BaseModel, ValidationError

from .errors import MalformedResponseError

logger = structlog.get_logger()

T = TypeVar("T", bound=BaseModel)

_OPENING_FENCE = re.compile(r"^```(?:json)?[ \t]*\n?", re.IGNORECASE)
_CLOSING_FENCE = re.compile(r"\n?```$")


def strip_code_fence(text: str) -> str:
    """Remove a leading ```json fence and a trailing ``` fence, if present."""
    if text.startswith("```"):
        text = _OPENING_FENCE.sub("", text, count=1)
        text = _CLOSING_FENCE.sub("", text, count=1)
    return text


def repair_truncated_json(text: str) -> str:
    """
    Close a truncated JSON array.

    Scans once, tracking string state and bracket/brace depth (ignored
    inside strings). If the structure is still open at the end, cuts back to
    the last element that closed at the top level of the array, closes any
    brace still open at that point, then closes the array.

    Input with nested trailing garbage can lose more than the final element.
    """
    repaired = text.strip()

    if not repaired.startswith("["):
        array_start = repaired.find("[")
        if array_start != -1:
            repaired = repaired[array_start:]
        else:
            repaired = "[" + repaired

    bracket_depth = 0
    brace_depth = 0
    in_string = False
    escaped = False
    last_closed = -1

    for i, char in enumerate(repaired):
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue
        if char == '"':
            in_string = True
            continue

        if char == "[":
            bracket_depth += 1
        elif char == "]":
            bracket_depth -= 1
        elif char == "{":
            brace_depth += 1
        elif char == "}":
            brace_depth -= 1
            if brace_depth == 0 and bracket_depth == 1:
                last_closed = i

    if brace_depth > 0 or bracket_depth > 0:
        if last_closed != -1:
            repaired = repaired[:last_closed + 1]
            # No object is open at the cut point
            brace_depth = 0

        repaired += "}" * max(brace_depth, 0)

        if not repaired.endswith("]"):
            repaired += "]"

    return repaired


def parse_structured(raw: str) -> List[Any]:
    """
    Parse a model response that should contain a JSON array.

    Args:
        raw: Raw completion text

    Returns:
        The parsed list

    Raises:
        MalformedResponseError: If no valid JSON array can be recovered
    """
    if raw is None or not raw.strip():
        raise MalformedResponseError("Empty model response")

    cleaned = strip_code_fence(raw.strip())

    # Drop commentary after the array
    last_bracket = cleaned.rfind("]")
    if last_bracket != -1 and last_bracket < len(cleaned) - 1:
        cleaned = cleaned[:last_bracket + 1]

    try:
        parsed = json.loads(cleaned)
    except json.JSONDecodeError as e:
        logger.warning("structured_response_parse_failed_repairing", error=str(e))
        repaired = repair_truncated_json(cleaned)
        logger.info(
            "structured_response_repaired",
            original_len=len(cleaned),
            repaired_len=len(repaired),
            preview=repaired[:200],
        )
        try:
            parsed = json.loads(repaired)
        except json.JSONDecodeError as e2:
            logger.error("structured_response_unrecoverable", error=str(e2), preview=repaired[:200])
            raise MalformedResponseError(
                f"Could not parse model response after repair: {e2}. Repaired text: {repaired[:500]}",
                repaired_text=repaired,
            ) from e2

    if not isinstance(parsed, list):
        raise MalformedResponseError(
            f"Expected a JSON array, got {type(parsed).__name__}",
            repaired_text=cleaned,
        )

    return parsed


def parse_records(raw: str, model: Type[T]) -> List[T]:
    """
    Parse a response and validate each element against a pydantic model.

    Elements that don't match are logged and skipped; the rest are kept
    in order.

    Raises:
        MalformedResponseError: If parsing fails, or no element matches
    """
    items = parse_structured(raw)
    records: List[T] = []
    last_error: Optional[ValidationError] = None

    for index, item in enumerate(items):
        try:
            records.append(model.model_validate(item))
        except ValidationError as e:
            last_error = e
            logger.warning(
                "record_skipped",
                model=model.__name__,
                index=index,
                error=str(e)[:200],
            )

    if items and not records:
        raise MalformedResponseError(
            f"Model response did not match {model.__name__}: {last_error}"
        ) from last_error

    return records
