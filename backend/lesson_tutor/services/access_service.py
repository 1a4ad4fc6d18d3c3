from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from lesson_tutor.core.errors import AccessDenied, NotFound
from lesson_tutor.models.course import Chapter
from lesson_tutor.models.purchase import Purchase


class AccessService:
    """Entitlement and lesson lookup over the catalogue tables."""

    def __init__(self, db: Session):
        self.db = db

    def has_access(self, identity: str, course_id: str) -> bool:
        stmt = select(Purchase.id).where(Purchase.identity == identity, Purchase.course_id == course_id).limit(1)
        return self.db.execute(stmt).first() is not None

    def ensure_access(self, identity: str, course_id: str) -> None:
        if not self.has_access(identity, course_id):
            raise AccessDenied()

    def get_chapter(self, course_id: str, chapter_id: str) -> Chapter:
        stmt = (
            select(Chapter)
            .where(Chapter.id == chapter_id, Chapter.course_id == course_id)
            .options(selectinload(Chapter.course), selectinload(Chapter.media))
        )
        chapter = self.db.execute(stmt).scalar_one_or_none()
        if chapter is None:
            raise NotFound()
        return chapter
