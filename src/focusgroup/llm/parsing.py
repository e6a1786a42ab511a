"""Recover structured data from loosely formatted model output.

Two stages, each usable on its own:

1. ``strip_code_fence`` keeps only the body of a fenced code block.
2. ``extract_json_span`` slices from the first ``{``/``[`` to the last closer of
   the same family, dropping prose around it.

``remove_trailing_commas`` then repairs ``[1, 2,]`` style artifacts outside of
string literals before ``json.loads`` runs.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any

from focusgroup.llm.exceptions import ResponseParseError

logger = logging.getLogger(__name__)

_CODE_FENCE_RE = re.compile(r"```[\w+-]*[ \t]*\n?(.*?)\s*```", re.DOTALL)
_CLOSERS = {"{": "}", "[": "]"}


def strip_code_fence(text: str) -> str:
    """Return the body of the first fenced code block, or ``text`` unchanged."""
    match = _CODE_FENCE_RE.search(text)
    return match.group(1) if match else text


def extract_json_span(text: str) -> str:
    """Slice ``text`` to its outermost object or array.

    Whichever of ``{`` and ``[`` appears first decides the family; the span ends
    at the last matching closer. Text without a usable span is returned as-is.
    """
    starts = [idx for idx in (text.find("{"), text.find("[")) if idx != -1]
    if not starts:
        return text
    start = min(starts)
    end = text.rfind(_CLOSERS[text[start]])
    if end <= start:
        return text
    return text[start : end + 1]


def remove_trailing_commas(text: str) -> str:
    """Drop commas that directly precede ``}`` or ``]``, ignoring string contents."""
    out: list[str] = []
    in_string = False
    escaped = False
    pending_comma: list[str] = []

    for char in text:
        if in_string:
            out.append(char)
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue

        if pending_comma:
            if char.isspace():
                pending_comma.append(char)
                continue
            if char in "}]":
                # Keep the whitespace, lose the comma.
                out.extend(pending_comma[1:])
            else:
                out.extend(pending_comma)
            pending_comma = []

        if char == ",":
            pending_comma = [char]
        else:
            out.append(char)
            if char == '"':
                in_string = True

    out.extend(pending_comma)
    return "".join(out)


def parse_structured_response(text: str | None, context: str) -> Any:
    """Parse a model response into JSON data.

    Raises:
        ResponseParseError: when the text is empty or no JSON can be recovered

    """
    if not text:
        raise ResponseParseError(context, "empty response text")

    cleaned = remove_trailing_commas(extract_json_span(strip_code_fence(text)))
    try:
        return json.loads(cleaned)
    except json.JSONDecodeError as exc:
        logger.warning("JSON parse error in %s: %s", context, exc)
        raise ResponseParseError(context, str(exc)) from exc
