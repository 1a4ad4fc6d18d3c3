from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import List, Optional

from sqlalchemy import func, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from lesson_tutor.models.conversation import ConversationMessage, ConversationThread


ROLE_USER = "user"
ROLE_ASSISTANT = "assistant"
ROLES = {ROLE_USER, ROLE_ASSISTANT}


def _as_utc(dt: datetime) -> datetime:
    # SQLite hands back naive datetimes.
    return dt if dt.tzinfo is not None else dt.replace(tzinfo=timezone.utc)


class ConversationStore:
    """Append-only message log per (identity, chapter) thread."""

    def __init__(self, db: Session):
        self.db = db

    def find_thread(self, identity: str, chapter_id: str) -> Optional[ConversationThread]:
        stmt = select(ConversationThread).where(
            ConversationThread.identity == identity,
            ConversationThread.chapter_id == chapter_id,
        )
        return self.db.execute(stmt).scalar_one_or_none()

    def get_or_create_thread(self, identity: str, course_id: str, chapter_id: str) -> ConversationThread:
        values = {
            "identity": identity,
            "course_id": course_id,
            "chapter_id": chapter_id,
            "created_at": datetime.now(timezone.utc),
        }
        dialect = self.db.get_bind().dialect.name
        if dialect in {"postgresql", "sqlite"}:
            insert = pg_insert if dialect == "postgresql" else sqlite_insert
            stmt = insert(ConversationThread).values(**values).on_conflict_do_nothing(
                index_elements=["identity", "chapter_id"]
            )
            self.db.execute(stmt)
            self.db.commit()
        else:
            try:
                self.db.add(ConversationThread(**values))
                self.db.commit()
            except IntegrityError:
                # Lost the race against a concurrent first message.
                self.db.rollback()

        thread = self.find_thread(identity, chapter_id)
        if thread is None:  # pragma: no cover - only if the row was deleted in between
            raise LookupError(f"thread vanished for identity={identity} chapter={chapter_id}")
        return thread

    def append(self, thread: ConversationThread, role: str, content: str) -> ConversationMessage:
        if role not in ROLES:
            raise ValueError(f"unknown role: {role}")

        now = datetime.now(timezone.utc)
        last = self.db.execute(
            select(func.max(ConversationMessage.created_at)).where(ConversationMessage.thread_id == thread.id)
        ).scalar_one_or_none()
        if last is not None and now <= _as_utc(last):
            now = _as_utc(last) + timedelta(microseconds=1)

        msg = ConversationMessage(thread_id=thread.id, role=role, content=content, created_at=now)
        self.db.add(msg)
        self.db.commit()
        return msg

    def recent(self, thread_id: int, limit: int) -> List[ConversationMessage]:
        """Newest first."""
        stmt = (
            select(ConversationMessage)
            .where(ConversationMessage.thread_id == thread_id)
            .order_by(ConversationMessage.created_at.desc(), ConversationMessage.id.desc())
            .limit(max(0, int(limit)))
        )
        return list(self.db.execute(stmt).scalars().all())

    def history(self, thread_id: int, limit: int) -> List[ConversationMessage]:
        """The latest ``limit`` messages, oldest first."""
        rows = self.recent(thread_id, limit)
        rows.reverse()
        return rows
