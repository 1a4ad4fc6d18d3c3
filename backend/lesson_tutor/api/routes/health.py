from fastapi import APIRouter, Depends

from lesson_tutor.api.deps import get_transcript_provider
from lesson_tutor.core.config import settings
from lesson_tutor.services.llm_service import llm_available
from lesson_tutor.services.transcript_provider import MuxTranscriptProvider


router = APIRouter(tags=["health"])


@router.get("/health")
def health(provider: MuxTranscriptProvider = Depends(get_transcript_provider)):
    return {
        "status": "ok",
        "generation": {"configured": llm_available(), "model": settings.OPENAI_CHAT_MODEL},
        "transcripts": {"configured": provider.configured()},
    }
