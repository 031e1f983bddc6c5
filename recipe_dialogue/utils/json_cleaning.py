"""
Cleaning and parsing of JSON embedded in free-text LLM responses.

Providers wrap JSON in code fences, prepend markdown headers or trail
explanations after the object. Both the intent classifier and the
alternative recipe generator go through the functions below.
"""

import json
import re
from typing import Any, Dict, Optional

from .error_handling import ErrorKind, Result


_LEADING_FENCE = re.compile(r"^```[\w+-]*\s*")
_TRAILING_FENCE = re.compile(r"\s*```$")


def _strip_fences(text: str) -> str:
    # Repeat until stable so nested or doubled fences collapse in one call.
    while True:
        stripped = _TRAILING_FENCE.sub("", _LEADING_FENCE.sub("", text.strip())).strip()
        if stripped == text:
            return stripped
        text = stripped


def find_json_object_span(text: str) -> Optional[tuple]:
    """
    Locate the first balanced JSON object in ``text``.

    Scans forward from the first ``{`` tracking brace depth. Braces inside
    JSON string literals are ignored.

    Returns:
        (start, end) indices with ``text[start:end]`` being the object, or
        None when no balanced object exists
    """
    start = text.find("{")
    if start == -1:
        return None

    depth = 0
    in_string = False
    escaped = False
    for index in range(start, len(text)):
        char = text[index]
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
                return start, index + 1
    return None


def clean_json_response(response: str) -> str:
    """
    Reduce a raw provider response to the JSON object it carries.

    1. trim
    2. strip leading/trailing code fences, with or without a language tag
    3. if prose surrounds an object, slice to the first balanced object
    4. trim

    The function is idempotent: ``clean_json_response(clean_json_response(x))``
    equals ``clean_json_response(x)``.

    Args:
        response: Raw text returned by the provider

    Returns:
        Cleaned text, ideally a bare JSON object
    """
    if not response:
        return ""

    cleaned = _strip_fences(response)

    span = find_json_object_span(cleaned)
    if span is not None:
        cleaned = cleaned[span[0]:span[1]]

    return cleaned.strip()


def parse_json_object(response: Optional[str]) -> Result[Dict[str, Any]]:
    """
    Clean a provider response and parse it as a JSON object.

    Args:
        response: Raw text returned by the provider

    Returns:
        Result holding the parsed dict, or a MALFORMED_RESPONSE failure
    """
    if response is None or not response.strip():
        return Result.fail(ErrorKind.MALFORMED_RESPONSE, "empty response")

    cleaned = clean_json_response(response)
    try:
        parsed = json.loads(cleaned)
    except (json.JSONDecodeError, ValueError) as e:
        return Result.fail(ErrorKind.MALFORMED_RESPONSE, f"invalid JSON: {str(e)}")

    if not isinstance(parsed, dict):
        return Result.fail(ErrorKind.MALFORMED_RESPONSE, f"expected a JSON object, got {type(parsed).__name__}")

    return Result.ok(parsed)
