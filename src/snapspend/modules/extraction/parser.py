from __future__ import annotations

import json
from collections.abc import Iterator
from typing import Any

from pydantic import ValidationError

from snapspend.modules.extraction.schemas import ReceiptCandidate


def parse_candidate(text: str | None) -> ReceiptCandidate | None:
    """
    Recover a receipt candidate from free-form model output.

    Takes the first top-level balanced `{...}` substring that decodes to a JSON
    object, tolerating prose or code fences around it. Braces nested inside a
    block that fails to decode are never tried on their own. A miss returns None; this
    is an expected outcome, not an error.
    """
    obj = _first_json_object(text or "")
    if obj is None:
        return None
    try:
        return ReceiptCandidate.model_validate(obj)
    except ValidationError:
        return None


def _first_json_object(text: str) -> dict[str, Any] | None:
    for block in _balanced_blocks(text):
        try:
            obj = json.loads(block)
        except ValueError:
            continue
        if isinstance(obj, dict):
            return obj
    return None


def _balanced_blocks(text: str) -> Iterator[str]:
    # Never descends into a block that failed; an unclosed block ends the scan.
    start = text.find("{")
    while start != -1:
        end = _matching_brace(text, start)
        if end is None:
            return
        yield text[start : end + 1]
        start = text.find("{", end + 1)


def _matching_brace(text: str, start: int) -> int | None:
    depth = 0
    in_string = False
    escaped = False
    for idx in range(start, len(text)):
        ch = text[idx]
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return idx
    return None
