from __future__ import annotations

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from lesson_tutor.db.base import Base
from lesson_tutor.models.course import Chapter, ChapterMedia, Course
from lesson_tutor.models.purchase import Purchase


@pytest.fixture()
def engine():
    eng = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(eng)
    yield eng
    eng.dispose()


@pytest.fixture()
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


@pytest.fixture()
def db(session_factory):
    s = session_factory()
    try:
        yield s
    finally:
        s.close()


@pytest.fixture()
def seed_lesson(db):
    """Insert a course + chapter (+ optional media and purchase) and return the chapter."""

    def _seed(
        *,
        course_id: str = "course-1",
        chapter_id: str = "chapter-1",
        course_title: str = "Intro to Physics",
        chapter_title: str = "Newton's Laws",
        description: str | None = "Force equals mass times acceleration. Every action has an equal and opposite reaction.",
        asset_id: str | None = None,
        playback_id: str | None = None,
        purchasers: tuple[str, ...] = ("user-1",),
    ) -> Chapter:
        if db.get(Course, course_id) is None:
            db.add(Course(id=course_id, title=course_title))
        chapter = Chapter(id=chapter_id, course_id=course_id, title=chapter_title, description=description)
        db.add(chapter)
        if asset_id or playback_id:
            db.add(ChapterMedia(chapter_id=chapter_id, asset_id=asset_id, playback_id=playback_id))
        for ident in purchasers:
            db.add(Purchase(identity=ident, course_id=course_id))
        db.commit()
        db.refresh(chapter)
        return chapter

    return _seed
