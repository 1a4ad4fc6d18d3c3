"""Course catalogue rows.

These tables are owned by the course-management side of the product; the
tutoring core only reads them.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from lesson_tutor.db.base_class import Base


class Course(Base):
    __tablename__ = "courses"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    chapters: Mapped[list["Chapter"]] = relationship(back_populates="course")


class Chapter(Base):
    __tablename__ = "chapters"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    course_id: Mapped[str] = mapped_column(ForeignKey("courses.id", ondelete="CASCADE"), index=True, nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    course: Mapped[Course] = relationship(back_populates="chapters")
    media: Mapped["ChapterMedia | None"] = relationship(back_populates="chapter", uselist=False)


class ChapterMedia(Base):
    """Video-host identifiers for a chapter's lesson video."""

    __tablename__ = "chapter_media"

    id: Mapped[int] = mapped_column(primary_key=True)
    chapter_id: Mapped[str] = mapped_column(
        ForeignKey("chapters.id", ondelete="CASCADE"), unique=True, index=True, nullable=False
    )
    asset_id: Mapped[str | None] = mapped_column(String(128), nullable=True)
    playback_id: Mapped[str | None] = mapped_column(String(128), nullable=True)

    chapter: Mapped[Chapter] = relationship(back_populates="media")
