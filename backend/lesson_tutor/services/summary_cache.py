"""Content-addressed cache of per-chapter lesson summaries.

The summary is regenerated only when the SHA-256 of the lesson source text
changes, so generation cost grows with content edits, not with request
volume. One row per chapter is shared by every learner.

Two concurrent misses for the same chapter may both generate; the upsert is
last-write-wins, which is fine because both summaries describe the same
source hash.
"""

from __future__ import annotations

import hashlib
import logging
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.orm import Session

from lesson_tutor.core.config import settings
from lesson_tutor.core.errors import GenerationUnavailable
from lesson_tutor.models.course import Chapter
from lesson_tutor.models.lesson_summary import LessonSummary
from lesson_tutor.services.llm_service import EMPTY_RESPONSE
from lesson_tutor.services.source_resolver import SourceResolver


logger = logging.getLogger(__name__)

# generate(messages, max_output_tokens=..., temperature=...) -> text
GenerateFn = Callable[..., str]

NO_SOURCE_HASH = "no-source"

SUMMARY_INSTRUCTION = (
    "Create a compact lesson summary for an AI tutor. "
    "Output: (1) 6-10 bullet key points, (2) key terms list, (3) 2-3 common misconceptions. "
    "Stay under 250 tokens."
)


def hash_text(text: str) -> str:
    return hashlib.sha256((text or "").encode("utf-8")).hexdigest()


def minimal_summary(chapter_title: str) -> str:
    return f"Lesson: {chapter_title}\nNo transcript/description available yet."


class LessonSummaryStore:
    def __init__(self, db: Session):
        self.db = db

    def get(self, chapter_id: str) -> Optional[LessonSummary]:
        stmt = (
            select(LessonSummary)
            .where(LessonSummary.chapter_id == chapter_id)
            .execution_options(populate_existing=True)
        )
        return self.db.execute(stmt).scalar_one_or_none()

    def put(self, chapter_id: str, summary_text: str, source_hash: str) -> None:
        """Write text and hash as one row in a single statement."""
        values = {
            "chapter_id": chapter_id,
            "summary_text": summary_text,
            "source_hash": source_hash,
            "updated_at": datetime.now(timezone.utc),
        }
        dialect = self.db.get_bind().dialect.name
        if dialect in {"postgresql", "sqlite"}:
            insert = pg_insert if dialect == "postgresql" else sqlite_insert
            stmt = insert(LessonSummary).values(**values)
            stmt = stmt.on_conflict_do_update(
                index_elements=[LessonSummary.chapter_id],
                set_={
                    "summary_text": stmt.excluded.summary_text,
                    "source_hash": stmt.excluded.source_hash,
                    "updated_at": stmt.excluded.updated_at,
                },
            )
            self.db.execute(stmt)
        else:
            self.db.merge(LessonSummary(**values))
        self.db.commit()


class SummaryCache:
    def __init__(
        self,
        store: LessonSummaryStore,
        resolver: SourceResolver,
        *,
        max_source_chars: Optional[int] = None,
        max_output_tokens: Optional[int] = None,
        temperature: Optional[float] = None,
    ):
        self.store = store
        self.resolver = resolver
        self.max_source_chars = int(max_source_chars or settings.SUMMARY_MAX_SOURCE_CHARS)
        self.max_output_tokens = int(max_output_tokens or settings.SUMMARY_MAX_OUTPUT_TOKENS)
        self.temperature = float(settings.SUMMARY_TEMPERATURE if temperature is None else temperature)

    def _summary_messages(self, chapter: Chapter, source_text: str) -> List[Dict[str, str]]:
        course_title = chapter.course.title if chapter.course is not None else ""
        return [
            {"role": "system", "content": SUMMARY_INSTRUCTION},
            {
                "role": "user",
                "content": f"Course: {course_title}\nLesson: {chapter.title}\n\nContent:\n{source_text}",
            },
        ]

    def get_or_build(
        self,
        chapter: Chapter,
        generate: GenerateFn,
        *,
        force_refresh: bool = False,
        preferred_language: Optional[str] = None,
    ) -> str:
        source = self.resolver.source(chapter, preferred_language)
        source_text = source.text[: self.max_source_chars].strip()
        stored = self.store.get(chapter.id)

        if not source_text:
            minimal = minimal_summary(chapter.title)
            if stored is None or stored.source_hash != NO_SOURCE_HASH or force_refresh:
                self.store.put(chapter.id, minimal, NO_SOURCE_HASH)
            return minimal

        source_hash = hash_text(source_text)

        # Checked before any external call: the dominant path.
        if not force_refresh and stored is not None and stored.source_hash == source_hash:
            logger.info("Lesson summary cache hit chapter=%s", chapter.id)
            return stored.summary_text

        logger.info(
            "Lesson summary cache miss chapter=%s source=%s chars=%d",
            chapter.id,
            "transcript" if source.transcript_text else "description",
            len(source_text),
        )
        try:
            raw = generate(
                self._summary_messages(chapter, source_text),
                max_output_tokens=self.max_output_tokens,
                temperature=self.temperature,
            )
        except GenerationUnavailable as e:
            # Only an empty summary falls back; an unreachable service propagates.
            if (e.details or {}).get("reason") != EMPTY_RESPONSE:
                raise
            raw = ""
        summary = (raw or "").strip() or f"Lesson: {chapter.title}\n{source.description_text or ''}".strip()

        self.store.put(chapter.id, summary, source_hash)
        return summary
