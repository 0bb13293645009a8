"""
Best-effort structured (JSON) extraction from chat completions.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Literal, Mapping, Sequence

from .llm import ChatMessage, ChatResult, CompletionCallable

logger = logging.getLogger(__name__)

JsonShape = Literal["object", "array"]

_FENCE_PATTERN = re.compile(r"^\s*```(?:json)?\s*|\s*```\s*$", re.IGNORECASE)
_BRACKETS: dict[str, tuple[str, str]] = {
    "object": ("{", "}"),
    "array": ("[", "]"),
}


def build_response_format(schema: Mapping[str, Any], *, name: str) -> dict[str, Any]:
    """Wrap a JSON schema in the ``response_format`` payload understood by LiteLLM."""
    return {
        "type": "json_schema",
        "json_schema": {"name": name, "schema": dict(schema)},
    }


def parse_json_response(text: str, *, expect: JsonShape = "object") -> Any | None:
    """
    Decode ``text`` as JSON of the expected shape, or return None.

    The whole reply is decoded first. If that fails, the first bracket-delimited
    array/object in the raw text is decoded instead.
    """
    if expect not in _BRACKETS:
        raise ValueError(f"expect must be 'object' or 'array', received {expect!r}.")

    if not text or not text.strip():
        return None

    candidate = _FENCE_PATTERN.sub("", text.strip())
    parsed = _try_decode(candidate)
    if _matches_shape(parsed, expect):
        return parsed

    opening, closing = _BRACKETS[expect]
    start = text.find(opening)
    end = text.rfind(closing)
    if start == -1 or end <= start:
        logger.warning("No JSON %s found in model response.", expect)
        return None

    parsed = _try_decode(text[start : end + 1])
    if _matches_shape(parsed, expect):
        return parsed

    logger.warning("JSON parse failed, falling back.")
    return None


def request_structured_json(
    completion_fn: CompletionCallable,
    *,
    model: str,
    messages: Sequence[ChatMessage],
    schema: Mapping[str, Any] | None = None,
    schema_name: str = "response",
    expect: JsonShape = "object",
    api_key: str | None = None,
    **completion_kwargs: Any,
) -> Any | None:
    """
    Send a chat request and parse the reply as JSON of the expected shape.

    When ``schema`` is given it is declared to the model as the required output
    shape. Request failures propagate; unparsable replies yield None.
    """
    if schema is not None:
        completion_kwargs["response_format"] = build_response_format(schema, name=schema_name)

    result: ChatResult = completion_fn(
        model=model,
        messages=messages,
        api_key=api_key,
        **completion_kwargs,
    )
    return parse_json_response(result.text, expect=expect)


def _try_decode(text: str) -> Any | None:
    try:
        return json.loads(text)
    except (json.JSONDecodeError, TypeError):
        return None


def _matches_shape(value: Any, expect: JsonShape) -> bool:
    if expect == "object":
        return isinstance(value, dict)
    return isinstance(value, list)
