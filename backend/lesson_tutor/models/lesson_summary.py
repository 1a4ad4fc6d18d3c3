from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from lesson_tutor.db.base_class import Base


class LessonSummary(Base):
    """Cached tutor summary of a chapter, shared by every learner of that chapter.

    ``source_hash`` is the digest of the exact source text ``summary_text`` was
    produced from; the two columns are only ever written together.
    """

    __tablename__ = "lesson_summaries"

    chapter_id: Mapped[str] = mapped_column(ForeignKey("chapters.id", ondelete="CASCADE"), primary_key=True)
    summary_text: Mapped[str] = mapped_column(Text, nullable=False)
    source_hash: Mapped[str] = mapped_column(String(64), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now()
    )
