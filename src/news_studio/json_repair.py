"""Recover JSON objects from free-form model output.

Providers wrap JSON in Markdown fences or add a sentence of commentary before
and after it. The helpers here strip the fences, locate the first balanced
``{...}`` span and validate it against the expected response model. Callers
that cannot afford a hard failure use :func:`repair_model_json`, which returns
a fallback payload instead of raising.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Dict, Optional, Type, TypeVar

from pydantic import BaseModel, ValidationError

from .errors import ResponseParseError

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

_FENCE_PATTERN = re.compile(r"```[A-Za-z0-9_-]*")


def strip_code_fences(text: str) -> str:
    """Remove Markdown code-fence markers (with or without a language tag)."""
    return _FENCE_PATTERN.sub("", text).strip()


def find_json_object(text: str) -> Optional[str]:
    """
    Return the first balanced ``{...}`` span in text, or None.

    Braces inside JSON strings (including escaped quotes) do not count toward
    the balance.
    """
    start = text.find("{")
    while start != -1:
        depth = 0
        in_string = False
        escaped = False
        for idx in range(start, len(text)):
            char = text[idx]
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
            elif char == "{":
                depth += 1
            elif char == "}":
                depth -= 1
                if depth == 0:
                    return text[start : idx + 1]
        # Unbalanced from this brace; try the next opening brace.
        start = text.find("{", start + 1)
    return None


def parse_json_object(text: str) -> Dict[str, Any]:
    """Strictly parse the embedded JSON object or raise ResponseParseError."""
    cleaned = strip_code_fences(text or "")
    candidate = find_json_object(cleaned)
    if candidate is None:
        raise ResponseParseError("No JSON object found in model output.")
    try:
        data = json.loads(candidate)
    except json.JSONDecodeError as exc:
        raise ResponseParseError(f"Model output is not valid JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise ResponseParseError("Model output JSON is not an object.")
    return data


def _string_list(value: Any) -> list[str]:
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, list):
        raise ResponseParseError(f"Expected a list of strings, got {type(value).__name__}.")
    return [str(entry).strip() for entry in value if entry is not None and str(entry).strip()]


def validate_string_lists(data: Dict[str, Any], model: Type[ModelT]) -> ModelT:
    """
    Validate a parsed object whose fields are all lists of strings.

    Missing keys become empty lists, but at least one expected key must be
    present; scalar strings are lifted into one-element lists.
    """
    normalized: Dict[str, list[str]] = {}
    for name, field in model.model_fields.items():
        key = field.alias or name
        if key in data:
            normalized[key] = _string_list(data[key])
    if not normalized:
        expected = ", ".join(field.alias or name for name, field in model.model_fields.items())
        raise ResponseParseError(f"Model output is missing all expected keys ({expected}).")
    try:
        return model.model_validate(normalized)
    except ValidationError as exc:
        raise ResponseParseError(str(exc)) from exc


def repair_model_json(text: str, model: Type[ModelT], fallback: ModelT) -> ModelT:
    """Parse model output into ``model``; on any parse failure return ``fallback``."""
    try:
        return validate_string_lists(parse_json_object(text), model)
    except ResponseParseError as exc:
        logger.warning("Falling back to default %s payload: %s", model.__name__, exc.message)
        return fallback.model_copy(deep=True)
