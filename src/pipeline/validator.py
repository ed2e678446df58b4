"""Schema Validator: untrusted model text -> validated Recipe.

Pure functions. ``validate_recipe`` either returns a Recipe that satisfies every
contract rule or raises:

- ``MalformedJSON`` when the text does not decode (carries the length only).
- ``SchemaViolation`` listing every (field path, reason) pair pydantic reports,
  not just the first one.

``validate_filters`` applies the same decoding to the filter model's answer.
"""

import json
import re
from typing import Any

from pydantic import ValidationError

from src.models.errors import MalformedJSON, SchemaViolation
from src.models.models import PreferenceFilters, Recipe
from src.utils.logger import logger


# ```json ... ``` wrappers some models add around otherwise valid JSON
_CODE_FENCE = re.compile(r"^```(?:json)?\s*(.*?)\s*```$", re.DOTALL | re.IGNORECASE)

# Display reasons for the required fields, keyed by (field, pydantic error type)
_REASONS = {
    ("title", "missing"): "Recipe title is required",
    ("title", "string_too_short"): "Recipe title is required",
    ("ingredients", "missing"): "At least one ingredient is required",
    ("ingredients", "too_short"): "At least one ingredient is required",
    ("instructions", "missing"): "Instructions are required",
    ("instructions", "too_short"): "Instructions are required",
    ("imagePrompt", "missing"): "Image prompt is required",
    ("imagePrompt", "string_too_short"): "Image prompt is too short for quality generation",
}


def decode_model_text(raw: str) -> Any:
    """Decode model text into a generic object.

    Args:
        raw: Text the model claims is JSON. A surrounding Markdown code fence is tolerated.

    Returns:
        The decoded value (any JSON type).

    Raises:
        MalformedJSON: If the text is empty or does not parse.
    """
    text = raw.strip() if isinstance(raw, str) else ""
    fenced = _CODE_FENCE.match(text)
    if fenced:
        text = fenced.group(1)

    if not text:
        raise MalformedJSON(length=len(raw) if isinstance(raw, str) else 0)

    try:
        return json.loads(text)
    except (json.JSONDecodeError, ValueError, RecursionError):
        # Length only: the text itself can be large and is untrusted. RecursionError
        # covers nesting deeper than the decoder can follow
        logger.warning(f"Model response failed to decode as JSON ({len(raw)} chars)")
        raise MalformedJSON(length=len(raw)) from None


def _field_path(loc: tuple) -> str:
    return ".".join(str(part) for part in loc)


def collect_violations(error: ValidationError) -> list[tuple[str, str]]:
    """Flatten a pydantic ValidationError into (field path, reason) pairs."""
    violations = []
    for item in error.errors():
        path = _field_path(item["loc"])
        reason = _REASONS.get((path, item["type"]), item["msg"])
        violations.append((path, reason))
    return violations


def validate_recipe(raw: Any) -> Recipe:
    """Validate and normalize a model response against the Recipe contract.

    Args:
        raw: Model text (``str``/``bytes``) or an already-decoded object.

    Returns:
        A Recipe with every defaultable field filled in.

    Raises:
        MalformedJSON: Text input that does not decode.
        SchemaViolation: Decoded value that breaks the contract, with all violations.
    """
    if isinstance(raw, bytes):
        raw = raw.decode("utf-8", errors="replace")
    data = decode_model_text(raw) if isinstance(raw, str) else raw

    if not isinstance(data, dict):
        raise SchemaViolation([("", "AI response is not a valid object.")])

    try:
        return Recipe.model_validate(data)
    except ValidationError as e:
        violations = collect_violations(e)
        logger.warning(f"Recipe failed validation with {len(violations)} violation(s): {[p for p, _ in violations]}")
        raise SchemaViolation(violations) from None


def validate_filters(raw: Any) -> PreferenceFilters:
    """Validate the filter model's answer.

    Raises:
        MalformedJSON: Text that does not decode.
        SchemaViolation: A decoded value that is not an object of string preferences.
    """
    data = decode_model_text(raw) if isinstance(raw, str) else raw
    if not isinstance(data, dict):
        raise SchemaViolation([("", "AI response is not a valid object.")])

    try:
        return PreferenceFilters.model_validate(data)
    except ValidationError as e:
        raise SchemaViolation(collect_violations(e)) from None
