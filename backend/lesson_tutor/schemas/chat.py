from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class AskRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    course_id: str = Field(default="", alias="courseId")
    chapter_id: str = Field(default="", alias="chapterId")
    message: str = ""


class SuggestionOut(BaseModel):
    label: str
    question: str


class AskData(BaseModel):
    reply: str
    suggestions: List[SuggestionOut] = Field(default_factory=list)


class ChatMessageOut(BaseModel):
    role: str
    content: str


class HistoryData(BaseModel):
    messages: List[ChatMessageOut] = Field(default_factory=list)


class ChatErrorOut(BaseModel):
    code: str
    message: str
    details: Optional[Dict[str, Any]] = None


class AskEnvelope(BaseModel):
    """POST reply. ``error`` is set alongside ``data`` when the apology was served."""

    request_id: str
    data: AskData
    error: Optional[ChatErrorOut] = None


class HistoryEnvelope(BaseModel):
    request_id: str
    data: HistoryData
    error: Optional[ChatErrorOut] = None
