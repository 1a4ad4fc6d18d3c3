"""Lesson-scoped tutor chat: the request pipeline behind ``ask`` and ``list_history``.

ask() runs these steps in order, none of them retried:

    RateChecked -> UserPersisted -> SummaryReady -> ContextBuilt
        -> Generated -> Parsed -> AssistantPersisted -> Done

Identity, entitlement, lesson lookup and the rate limit are checked before
anything is written. Once the user turn is stored it is never rolled back: if
generation fails afterwards the caller gets an apology, no assistant turn is
stored, and the thread keeps an unanswered user message.

Two concurrent questions on the same thread are not serialized; both read the
same history and may append in either order.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional, Protocol

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from lesson_tutor.core.config import settings
from lesson_tutor.core.errors import (
    GenerationUnavailable,
    InternalError,
    InvalidRequest,
    RateLimited,
    Unauthenticated,
)
from lesson_tutor.services.access_service import AccessService
from lesson_tutor.services.context_assembler import ContextAssembler
from lesson_tutor.services.conversation_store import ROLE_ASSISTANT, ROLE_USER, ConversationStore
from lesson_tutor.services.rate_limit import RateLimiter
from lesson_tutor.services.response_parser import ResponseParser, Suggestion
from lesson_tutor.services.source_resolver import SourceResolver, TranscriptProvider
from lesson_tutor.services.summary_cache import LessonSummaryStore, SummaryCache


logger = logging.getLogger(__name__)

APOLOGY_REPLY = "Sorry, something went wrong while generating an answer. Please try again."


class Generator(Protocol):
    def complete(self, messages: List[Dict[str, str]], *, max_output_tokens: int, temperature: float) -> str: ...


@dataclass(frozen=True)
class AskResult:
    answer: str
    suggestions: List[Suggestion] = field(default_factory=list)
    generated: bool = True
    error: Optional[GenerationUnavailable] = None


def _require_identity(identity: Optional[str]) -> str:
    ident = str(identity or "").strip()
    if not ident:
        raise Unauthenticated()
    return ident


class ConversationOrchestrator:
    def __init__(
        self,
        db: Session,
        *,
        rate_limiter: RateLimiter,
        generation: Generator,
        transcript_provider: Optional[TranscriptProvider] = None,
        parser: Optional[ResponseParser] = None,
    ):
        self.db = db
        self.rate_limiter = rate_limiter
        self.generation = generation
        self.access = AccessService(db)
        self.store = ConversationStore(db)
        self.summaries = SummaryCache(LessonSummaryStore(db), SourceResolver(transcript_provider))
        self.assembler = ContextAssembler(self.store)
        self.parser = parser or ResponseParser()

    @contextmanager
    def _db_guard(self) -> Iterator[None]:
        try:
            yield
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error("Persistence failure: %s: %s", type(e).__name__, str(e)[:200])
            raise InternalError() from e

    def list_history(
        self,
        identity: Optional[str],
        course_id: str,
        chapter_id: str,
        *,
        limit: Optional[int] = None,
    ) -> List[Dict[str, str]]:
        ident = _require_identity(identity)
        if not course_id or not chapter_id:
            raise InvalidRequest("Missing courseId/chapterId")

        with self._db_guard():
            self.access.ensure_access(ident, course_id)
            thread = self.store.find_thread(ident, chapter_id)
            if thread is None:
                return []
            rows = self.store.history(thread.id, int(limit or settings.CHAT_HISTORY_LIST_LIMIT))
        return [{"role": m.role, "content": m.content} for m in rows]

    def ask(self, identity: Optional[str], course_id: str, chapter_id: str, question: str) -> AskResult:
        ident = _require_identity(identity)
        q = (question or "").strip()
        if not course_id or not chapter_id or not q:
            raise InvalidRequest("Missing courseId/chapterId/message")

        with self._db_guard():
            self.access.ensure_access(ident, course_id)
            chapter = self.access.get_chapter(course_id, chapter_id)

        decision = self.rate_limiter.allow(
            f"ai-chat:{ident}", settings.CHAT_RATE_LIMIT, settings.CHAT_RATE_WINDOW_SEC
        )
        if not decision.allowed:
            logger.info("Rate limited identity=%s retry_after=%ss", ident, decision.retry_after_sec)
            raise RateLimited(decision.retry_after_sec)
        logger.debug("RateChecked identity=%s chapter=%s remaining=%d", ident, chapter.id, decision.remaining)

        with self._db_guard():
            thread = self.store.get_or_create_thread(ident, course_id, chapter.id)
            self.store.append(thread, ROLE_USER, q)
        logger.debug("UserPersisted identity=%s thread=%s", ident, thread.id)

        try:
            with self._db_guard():
                summary = self.summaries.get_or_build(chapter, self.generation.complete)
                logger.debug("SummaryReady chapter=%s", chapter.id)
                messages = self.assembler.build_context(
                    thread,
                    summary,
                    course_title=chapter.course.title,
                    chapter_title=chapter.title,
                )
            logger.debug("ContextBuilt thread=%s entries=%d", thread.id, len(messages))

            raw = self.generation.complete(
                messages,
                max_output_tokens=settings.CHAT_MAX_OUTPUT_TOKENS,
                temperature=settings.CHAT_TEMPERATURE,
            )
            logger.debug("Generated thread=%s", thread.id)
        except GenerationUnavailable as e:
            # The user turn stays; no assistant turn is written.
            logger.warning("Generation unavailable thread=%s: %s", thread.id, e.details or e.message)
            return AskResult(answer=APOLOGY_REPLY, suggestions=[], generated=False, error=e)

        parsed = self.parser.parse(raw)
        logger.debug("Parsed thread=%s kind=%s suggestions=%d", thread.id, parsed.kind, len(parsed.suggestions))

        with self._db_guard():
            self.store.append(thread, ROLE_ASSISTANT, parsed.answer)
        logger.debug("AssistantPersisted thread=%s", thread.id)

        return AskResult(answer=parsed.answer, suggestions=list(parsed.suggestions))
