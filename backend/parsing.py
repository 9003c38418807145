from __future__ import annotations

import json
import re
from dataclasses import dataclass
from typing import Any, Literal, Union

JsonKind = Literal["object", "array"]

_FENCE_RE = re.compile(r"```(?:json|JSON)?\s*(.*?)```", re.DOTALL)
_DELIMS = {"object": ("{", "}"), "array": ("[", "]")}


@dataclass(frozen=True)
class Ok:
    value: Any


@dataclass(frozen=True)
class Malformed:
    raw_text: str
    reason: str


ParseOutcome = Union[Ok, Malformed]


def strip_code_fence(text: str) -> str:
    match = _FENCE_RE.search(text or "")
    if match:
        return match.group(1).strip()
    return (text or "").strip()


def extract_json(text: str, kind: JsonKind = "object") -> ParseOutcome:
    """
    Best-effort extraction of one JSON value from model output.

    Code fences are stripped first, then the span from the first opening
    delimiter to the last closing delimiter is parsed. Callers decide whether
    a ``Malformed`` outcome degrades or fails.
    """
    raw = text or ""
    body = strip_code_fence(raw)
    open_ch, close_ch = _DELIMS[kind]
    start = body.find(open_ch)
    end = body.rfind(close_ch)
    if start == -1 or end == -1 or end < start:
        return Malformed(raw_text=raw, reason=f"no JSON {kind} found")
    try:
        value = json.loads(body[start : end + 1])
    except json.JSONDecodeError as exc:
        return Malformed(raw_text=raw, reason=f"invalid JSON: {exc.msg}")
    return Ok(value)


__all__ = ["JsonKind", "Malformed", "Ok", "ParseOutcome", "extract_json", "strip_code_fence"]
