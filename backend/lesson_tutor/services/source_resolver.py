from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Protocol

from lesson_tutor.core.config import settings
from lesson_tutor.models.course import Chapter


logger = logging.getLogger(__name__)


class TranscriptProvider(Protocol):
    def fetch_transcript(
        self, *, asset_id: str, playback_id: str, preferred_language: Optional[str] = None
    ) -> Optional[str]: ...


@dataclass(frozen=True)
class LessonSource:
    chapter_id: str
    transcript_text: Optional[str]
    description_text: Optional[str]

    @property
    def text(self) -> str:
        return self.transcript_text or self.description_text or ""


class SourceResolver:
    """Best-available source text for a lesson: ready transcript, else the short description."""

    def __init__(
        self,
        provider: Optional[TranscriptProvider],
        *,
        description_max_chars: Optional[int] = None,
        preferred_language: Optional[str] = None,
    ):
        self.provider = provider
        self.description_max_chars = int(description_max_chars or settings.SUMMARY_DESCRIPTION_MAX_CHARS)
        self.preferred_language = preferred_language or settings.TRANSCRIPT_PREFERRED_LANGUAGE

    def _transcript(self, chapter: Chapter, preferred_language: Optional[str]) -> Optional[str]:
        media = getattr(chapter, "media", None)
        asset_id = getattr(media, "asset_id", None) if media is not None else None
        playback_id = getattr(media, "playback_id", None) if media is not None else None
        if self.provider is None or not asset_id or not playback_id:
            return None

        try:
            text = self.provider.fetch_transcript(
                asset_id=asset_id,
                playback_id=playback_id,
                preferred_language=preferred_language or self.preferred_language,
            )
        except Exception as e:
            # A failed fetch is treated exactly like "transcript not ready".
            logger.warning("Transcript provider error for chapter %s: %s", chapter.id, type(e).__name__)
            return None
        text = (text or "").strip()
        return text or None

    def source(self, chapter: Chapter, preferred_language: Optional[str] = None) -> LessonSource:
        description = (chapter.description or "")[: self.description_max_chars].strip()
        return LessonSource(
            chapter_id=chapter.id,
            transcript_text=self._transcript(chapter, preferred_language),
            description_text=description or None,
        )

    def resolve(self, chapter: Chapter, preferred_language: Optional[str] = None) -> str:
        return self.source(chapter, preferred_language).text
