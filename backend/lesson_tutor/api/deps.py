"""Common FastAPI dependencies.

Identity:
  - AUTH_ENABLED=false (default): the session layer in front of this service
    forwards the verified user id in the X-User-Id header.
  - AUTH_ENABLED=true: a bearer JWT is required; its "sub" claim is the identity.

Collaborators with process lifetime (rate limiter, generation client) are
built once and shared; per-request ones get the request's DB session.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Optional

from fastapi import Depends, Header, Request
from sqlalchemy.orm import Session

from lesson_tutor.core.config import settings
from lesson_tutor.core.errors import Unauthenticated
from lesson_tutor.core.security import identity_from_token
from lesson_tutor.db.session import get_db
from lesson_tutor.services.chat_service import ConversationOrchestrator
from lesson_tutor.services.llm_service import GenerationClient
from lesson_tutor.services.rate_limit import RateLimiter
from lesson_tutor.services.transcript_provider import MuxTranscriptProvider


def get_current_identity_optional(
    x_user_id: Optional[str] = Header(default=None, alias="X-User-Id"),
    authorization: Optional[str] = Header(default=None),
) -> Optional[str]:
    if settings.AUTH_ENABLED:
        if not authorization or not authorization.lower().startswith("bearer "):
            return None
        return identity_from_token(authorization.split(" ", 1)[1].strip())

    ident = str(x_user_id or "").strip()
    return ident or None


def require_identity(identity: Optional[str] = Depends(get_current_identity_optional)) -> str:
    if not identity:
        raise Unauthenticated()
    return identity


def get_rate_limiter(request: Request) -> RateLimiter:
    limiter = getattr(request.app.state, "rate_limiter", None)
    if limiter is None:
        limiter = RateLimiter()
        request.app.state.rate_limiter = limiter
    return limiter


@lru_cache(maxsize=1)
def get_generation_client() -> GenerationClient:
    return GenerationClient()


@lru_cache(maxsize=1)
def get_transcript_provider() -> MuxTranscriptProvider:
    return MuxTranscriptProvider()


def get_orchestrator(
    db: Session = Depends(get_db),
    rate_limiter: RateLimiter = Depends(get_rate_limiter),
    generation: GenerationClient = Depends(get_generation_client),
    transcript_provider: MuxTranscriptProvider = Depends(get_transcript_provider),
) -> ConversationOrchestrator:
    return ConversationOrchestrator(
        db,
        rate_limiter=rate_limiter,
        generation=generation,
        transcript_provider=transcript_provider,
    )
