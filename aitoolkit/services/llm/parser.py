"""
Recovery of structured JSON from free-form LLM output.

LLM responses are not guaranteed to be pure JSON: they may be wrapped in
markdown code fences or surrounded by explanatory prose. parse_response()
strips fences and, when the text is not a single JSON document, parses the
first balanced object or array it finds.

Parsing never raises. Failures return parse_failure(), a mapping with a single
"error" key; callers must treat it as "no usable data".
"""
import json
import re
from typing import Any, Dict, Optional

from aitoolkit.core.logging import get_logger
from aitoolkit.core.metrics import record_parse_failure

logger = get_logger(__name__)

PARSE_ERROR_MESSAGE = "Failed to parse response"

_JSON_FENCE = re.compile(r"```json\s*", re.IGNORECASE)
_BARE_FENCE = re.compile(r"```\s*")


def parse_failure() -> Dict[str, str]:
    """Fresh failure sentinel (a new dict each call so callers may mutate it)."""
    return {"error": PARSE_ERROR_MESSAGE}


def is_parse_failure(value: Any) -> bool:
    """
    True when value carries an "error" marker instead of usable data.

    This is the downstream consistency check used by the operations: the
    sentinel itself, or any mapping the model returned with a truthy "error".
    """
    return isinstance(value, dict) and bool(value.get("error"))


def strip_code_fences(text: str) -> str:
    text = _JSON_FENCE.sub("", text)
    text = _BARE_FENCE.sub("", text)
    return text.strip()


def _balanced_end(text: str, start: int, opening: str, closing: str) -> Optional[int]:
    """
    Index just past the bracket that closes text[start], counting only the
    given bracket kind. None when the scan runs off the end.
    """
    depth = 0
    for index in range(start, len(text)):
        char = text[index]
        if char == opening:
            depth += 1
        elif char == closing:
            depth -= 1
        if depth == 0:
            return index + 1
    return None


def _extract_json(cleaned: str) -> Any:
    if cleaned.startswith("{") and cleaned.endswith("}"):
        return json.loads(cleaned)

    if cleaned.startswith("[") and cleaned.endswith("]"):
        return json.loads(cleaned)

    first_object = cleaned.find("{")
    first_array = cleaned.find("[")

    if first_object == -1 and first_array == -1:
        return json.loads(cleaned)

    # Whichever opening bracket comes first decides the branch, even when
    # its balanced region is not the intended payload.
    is_array = first_array != -1 and (first_object == -1 or first_array < first_object)

    if is_array:
        start, opening, closing = first_array, "[", "]"
    else:
        start, opening, closing = first_object, "{", "}"

    end = _balanced_end(cleaned, start, opening, closing)
    if end is not None:
        return json.loads(cleaned[start:end])

    return json.loads(cleaned)


def parse_response(response: Any, *, debug: bool = False) -> Any:
    """
    Parse an LLM response into a structured value.

    Args:
        response: Raw response text. Non-string values are returned unchanged.
        debug: Log the raw input and error message on failure.

    Returns:
        The decoded JSON value, or the failure sentinel.
    """
    if not isinstance(response, str):
        return response

    try:
        return _extract_json(strip_code_fences(response))
    except (ValueError, RecursionError) as exc:
        record_parse_failure()
        if debug:
            logger.warning(
                "response_parse_failed",
                error=str(exc),
                error_type=type(exc).__name__,
                raw_response=response,
            )
        return parse_failure()


class ResponseParser:
    """Object form of parse_response(), holding the debug flag."""

    def __init__(self, debug: bool = False):
        self.debug = debug

    def parse(self, response: Any) -> Any:
        return parse_response(response, debug=self.debug)

    __call__ = parse
