"""
Decoding of raw generator output into candidate items.

The payload is classified as one of three shapes before any record is
read: a top-level array, an object wrapping the array under a known key,
or an object whose first array-valued field is the payload. Anything else
is a decode failure reported as MalformedOutputError.
"""
import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any, List, Optional, Union

from pydantic import ValidationError

from src.core.constants import MALFORMED_STRUCTURE
from src.core.error_handling import MalformedOutputError
from src.models.generator_models import RawQuestionRecord
from src.models.question_models import CandidateItem, ValidationIssue

logger = logging.getLogger(__name__)

SHAPE_ARRAY = "array"
SHAPE_KEYED_OBJECT = "keyed_object"
SHAPE_FIRST_ARRAY_FIELD = "first_array_field"

# Wrapper keys generators commonly use, checked in this order
KNOWN_ARRAY_KEYS = ("questions", "preguntas", "items", "data", "results")

_CODE_FENCE_RE = re.compile(r"^\s*```[a-zA-Z]*\s*\n?|\n?\s*```\s*$")
_EMBEDDED_ARRAY_RE = re.compile(r"\[[\s\S]*\]")
_EMBEDDED_OBJECT_RE = re.compile(r"\{[\s\S]*\}")


@dataclass(frozen=True)
class DecodedPayload:
    shape: str
    records: List[Any] = field(default_factory=list)
    key: Optional[str] = None
    salvaged: bool = False


def strip_code_fences(text: str) -> str:
    """Remove a surrounding ```json ... ``` fence."""
    return _CODE_FENCE_RE.sub("", text.strip()).strip()


def _classify(data: Any, salvaged: bool) -> DecodedPayload:
    if isinstance(data, list):
        return DecodedPayload(SHAPE_ARRAY, data, salvaged=salvaged)
    if isinstance(data, dict):
        for key in KNOWN_ARRAY_KEYS:
            if isinstance(data.get(key), list):
                return DecodedPayload(SHAPE_KEYED_OBJECT, data[key], key=key, salvaged=salvaged)
        for key, value in data.items():
            if isinstance(value, list):
                return DecodedPayload(SHAPE_FIRST_ARRAY_FIELD, value, key=key, salvaged=salvaged)
    raise MalformedOutputError(f"no array-shaped payload found (top-level {type(data).__name__})")


def decode_payload(text: str) -> DecodedPayload:
    """
    Decode generator text into a tagged payload.

    Args:
        text: Raw generator output, possibly fenced or wrapped in prose

    Returns:
        DecodedPayload with its shape and records

    Raises:
        MalformedOutputError: If no array-shaped value can be found
    """
    if not text or not text.strip():
        raise MalformedOutputError("generator returned an empty response")

    cleaned = strip_code_fences(text)
    try:
        return _classify(json.loads(cleaned), salvaged=False)
    except json.JSONDecodeError:
        pass

    # Prose around the JSON: salvage the outermost array or object, whichever opens first
    matches = [m for m in (_EMBEDDED_ARRAY_RE.search(cleaned), _EMBEDDED_OBJECT_RE.search(cleaned)) if m]
    for match in sorted(matches, key=lambda m: m.start()):
        try:
            data = json.loads(match.group(0))
        except json.JSONDecodeError:
            continue
        logger.warning("Salvaged JSON payload embedded in generator prose")
        return _classify(data, salvaged=True)

    raise MalformedOutputError(f"response is not valid JSON: {cleaned[:120]!r}")


def _describe_validation_error(error: ValidationError) -> str:
    parts = []
    for detail in error.errors()[:3]:
        location = ".".join(str(part) for part in detail.get("loc", ())) or "record"
        parts.append(f"{location}: {detail.get('msg', 'invalid')}")
    return "; ".join(parts)


def parse_candidates(records: List[Any], source_context: str) -> List[Union[CandidateItem, ValidationIssue]]:
    """
    Turn decoded records into slots, one per record, in order.

    A record that cannot become a CandidateItem yields a malformed-structure
    issue in its slot so the batch keeps its positions.
    """
    slots: List[Union[CandidateItem, ValidationIssue]] = []
    for index, raw in enumerate(records):
        if not isinstance(raw, dict):
            slots.append(ValidationIssue(
                index, MALFORMED_STRUCTURE, f"record is a {type(raw).__name__}, expected an object"
            ))
            continue
        try:
            slots.append(RawQuestionRecord.model_validate(raw).to_candidate(source_context))
        except ValidationError as e:
            slots.append(ValidationIssue(index, MALFORMED_STRUCTURE, f"invalid record ({_describe_validation_error(e)})"))
        except ValueError as e:
            slots.append(ValidationIssue(index, MALFORMED_STRUCTURE, f"invalid record ({e})"))

    malformed = sum(1 for slot in slots if isinstance(slot, ValidationIssue))
    if malformed:
        logger.warning(f"{malformed}/{len(slots)} generator records are malformed")
    return slots
