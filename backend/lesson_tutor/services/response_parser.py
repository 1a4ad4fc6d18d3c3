"""Turns the model's reply into an answer plus follow-up suggestions.

The model is asked for ``{"answer": ..., "suggestions": [{"label", "question"}]}``
but may reply in plain text, wrap the JSON in a markdown fence, emit a
``<think>`` block first, or produce broken JSON. ``parse`` never raises: the
worst case is the raw text as the answer with no suggestions.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from typing import Any, List, Optional, Union

from lesson_tutor.core.config import settings


EMPTY_REPLY = "Sorry, I couldn't generate a reply."

_THINK_RE = re.compile(r"<\s*(think|analysis)\s*>.*?<\s*/\s*\1\s*>", re.IGNORECASE | re.DOTALL)
_FENCE_RE = re.compile(r"^\s*```[a-zA-Z0-9_-]*\s*\n?(.*?)\n?\s*```\s*$", re.DOTALL)


@dataclass(frozen=True)
class Suggestion:
    label: str
    question: str


@dataclass(frozen=True)
class StructuredAnswer:
    answer: str
    suggestions: List[Suggestion] = field(default_factory=list)
    kind: str = "structured"


@dataclass(frozen=True)
class RawAnswer:
    answer: str
    kind: str = "raw"

    @property
    def suggestions(self) -> List[Suggestion]:
        return []


ParsedAnswer = Union[StructuredAnswer, RawAnswer]


def _preprocess_llm_text(s: str) -> str:
    s = (s or "").strip()
    if not s:
        return ""
    s = _THINK_RE.sub("", s).strip()
    m = _FENCE_RE.match(s)
    if m:
        s = m.group(1).strip()
    return s


def _fix_trailing_commas(text: str) -> str:
    # Common LLM mistake: trailing commas before '}' or ']'
    return re.sub(r",\s*([}\]])", r"\1", text)


def _decode_object(text: str) -> Optional[dict]:
    for candidate in (text, _fix_trailing_commas(text)):
        try:
            obj = json.loads(candidate)
        except (ValueError, RecursionError):
            # RecursionError: pathologically nested input
            continue
        return obj if isinstance(obj, dict) else None
    return None


def _clean_suggestions(items: Any, limit: int) -> List[Suggestion]:
    out: List[Suggestion] = []
    if not isinstance(items, list):
        return out
    for item in items:
        if not isinstance(item, dict):
            continue
        label = item.get("label")
        question = item.get("question")
        if not isinstance(label, str) or not isinstance(question, str):
            continue
        label, question = label.strip(), question.strip()
        if not label or not question:
            continue
        out.append(Suggestion(label=label, question=question))
        if len(out) >= limit:
            break
    return out


class ResponseParser:
    def __init__(self, *, max_suggestions: Optional[int] = None):
        self.max_suggestions = int(max_suggestions or settings.SUGGESTIONS_MAX)

    def parse(self, raw_text: Optional[str]) -> ParsedAnswer:
        raw = (raw_text or "").strip()
        if not raw:
            return RawAnswer(answer=EMPTY_REPLY)

        obj = _decode_object(_preprocess_llm_text(raw))
        if obj is None:
            return RawAnswer(answer=raw)

        answer = obj.get("answer")
        if not isinstance(answer, str) or not answer.strip():
            answer = raw
        return StructuredAnswer(
            answer=answer,
            suggestions=_clean_suggestions(obj.get("suggestions"), self.max_suggestions),
        )
