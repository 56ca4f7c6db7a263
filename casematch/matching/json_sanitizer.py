"""Parse the JSON that the scoring model returns.

OpenAI runs in JSON-object mode, but Bedrock models only follow prompt
instructions and sometimes wrap the object in a markdown code fence or put
literal newlines inside the ``reasoning`` string.
"""

import json
import re
from numbers import Real
from typing import Any, Dict

_FENCE_RE = re.compile(r"^```(?:json)?\s*(.*?)\s*```$", re.DOTALL)

_ESCAPES = {
    "\n": "\\n",
    "\r": "\\r",
    "\t": "\\t",
    "\b": "\\b",
    "\f": "\\f",
}


class ScoreParseError(ValueError):
    """Raised when a model response carries no usable similarity score."""


def parse_llm_json(raw: Any) -> Dict[str, Any]:
    """Parse a JSON object from an LLM response.

    Args:
        raw: Response content; LangChain may hand back a list of content
            blocks instead of a plain string.

    Returns:
        Parsed dictionary

    Raises:
        json.JSONDecodeError: If the text is not JSON even after cleanup
        ValueError: If the parsed value is not an object
    """
    text = _content_to_text(raw).strip()
    fenced = _FENCE_RE.match(text)
    if fenced:
        text = fenced.group(1)

    try:
        result = json.loads(text)
    except json.JSONDecodeError:
        result = json.loads(_escape_control_chars(text))

    if not isinstance(result, dict):
        raise ValueError(f"Expected dict, got {type(result).__name__}")
    return result


def extract_similarity_score(payload: Dict[str, Any], key: str = "similarityScore") -> float:
    """Return the top-level similarity score of a parsed response.

    Raises:
        ScoreParseError: when the key is missing or not a number.
    """
    if key not in payload:
        raise ScoreParseError(f"Response has no '{key}' field")
    value = payload[key]
    # bool is a Real subclass; "true" is not a score
    if isinstance(value, bool) or not isinstance(value, Real):
        raise ScoreParseError(f"'{key}' is not a number: {value!r}")
    return float(value)


def _content_to_text(raw: Any) -> str:
    if isinstance(raw, str):
        return raw
    if isinstance(raw, list):
        parts = []
        for block in raw:
            if isinstance(block, str):
                parts.append(block)
            elif isinstance(block, dict) and block.get("type") == "text":
                parts.append(block.get("text", ""))
        return "".join(parts)
    raise ValueError(f"Unsupported response content type: {type(raw).__name__}")


def _escape_control_chars(raw: str) -> str:
    """Escape control characters that appear inside JSON string values."""
    result = []
    in_string = False
    escaped = False

    for char in raw:
        if in_string and escaped:
            escaped = False
            result.append(char)
        elif in_string and char == "\\":
            escaped = True
            result.append(char)
        elif char == '"':
            in_string = not in_string
            result.append(char)
        elif in_string and ord(char) < 0x20:
            result.append(_ESCAPES.get(char, f"\\u{ord(char):04x}"))
        else:
            result.append(char)

    return "".join(result)
