from __future__ import annotations

import json
import re
from typing import Any

from buckled.extraction.normalizer import title_case

_KEYWORD_SERVICES = (
    "oil change",
    "brake",
    "battery",
    "tire",
    "engine",
    "transmission",
    "air filter",
    "spark plug",
    "coolant",
    "alignment",
    "exhaust",
    "ac",
)
_KEYWORD_PATTERNS = [
    (re.compile(rf"\b{re.escape(keyword)}(?:e?s)?\b", re.IGNORECASE), keyword)
    for keyword in _KEYWORD_SERVICES
]
_NON_WORD = re.compile(r"[^\w\s]")
# Reasoning models prefix their answer with a <think> block.
_REASONING = re.compile(r"<think>.*?</think>", re.DOTALL)


def find_json_object(text: str) -> str | None:
    """Return the first balanced {...} span, skipping braces inside strings."""
    start = text.find("{")
    while start != -1:
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
            elif char == '"':
                in_string = True
            elif char == "{":
                depth += 1
            elif char == "}":
                depth -= 1
                if depth == 0:
                    return text[start : index + 1]
        start = text.find("{", start + 1)
    return None


def parse_json_payload(text: str) -> dict[str, Any]:
    """
    Decode the JSON object embedded in a model response.

    Raises ValueError when no object is present or it does not decode.
    """
    span = find_json_object(_REASONING.sub("", text))
    if span is None:
        raise ValueError("No JSON object found in response")
    payload = json.loads(span)
    if not isinstance(payload, dict):
        raise ValueError("Response JSON is not an object")
    return payload


def extract_service_keyword(text: str) -> str:
    for pattern, keyword in _KEYWORD_PATTERNS:
        if pattern.search(text):
            return title_case(keyword)
    return "General Service"


def clean_user_input(text: str) -> str:
    words = _NON_WORD.sub("", text).split()
    return " ".join(word[:1].upper() + word[1:].lower() for word in words)
