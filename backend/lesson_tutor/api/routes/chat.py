from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Request

from lesson_tutor.api.deps import get_orchestrator, require_identity
from lesson_tutor.schemas.chat import (
    AskData,
    AskEnvelope,
    AskRequest,
    ChatErrorOut,
    ChatMessageOut,
    HistoryData,
    HistoryEnvelope,
    SuggestionOut,
)
from lesson_tutor.services.chat_service import ConversationOrchestrator

router = APIRouter(tags=["ai-chat"])


@router.get("/ai/chat", response_model=HistoryEnvelope)
def chat_history(
    request: Request,
    course_id: str = Query(default="", alias="courseId"),
    chapter_id: str = Query(default="", alias="chapterId"),
    identity: str = Depends(require_identity),
    orchestrator: ConversationOrchestrator = Depends(get_orchestrator),
):
    """Persisted history of the caller's thread for one lesson (oldest first)."""
    rows = orchestrator.list_history(identity, course_id, chapter_id)
    return HistoryEnvelope(
        request_id=request.state.request_id,
        data=HistoryData(messages=[ChatMessageOut(**m) for m in rows]),
    )


@router.post("/ai/chat", response_model=AskEnvelope)
def chat_ask(
    request: Request,
    payload: AskRequest,
    identity: str = Depends(require_identity),
    orchestrator: ConversationOrchestrator = Depends(get_orchestrator),
):
    result = orchestrator.ask(identity, payload.course_id, payload.chapter_id, payload.message)
    data = AskData(
        reply=result.answer,
        suggestions=[SuggestionOut(label=s.label, question=s.question) for s in result.suggestions],
    )
    # Generation failures still return the apology as data, with the error alongside.
    error = ChatErrorOut(**result.error.to_error()) if result.error is not None else None
    return AskEnvelope(request_id=request.state.request_id, data=data, error=error)
