from __future__ import annotations

from datetime import timezone

import pytest

from lesson_tutor.models.conversation import ConversationThread
from lesson_tutor.services.conversation_store import ROLE_ASSISTANT, ROLE_USER, ConversationStore


def test_get_or_create_thread_is_idempotent(db, seed_lesson):
    seed_lesson()
    store = ConversationStore(db)

    first = store.get_or_create_thread("user-1", "course-1", "chapter-1")
    second = store.get_or_create_thread("user-1", "course-1", "chapter-1")

    assert first.id == second.id
    assert db.query(ConversationThread).count() == 1


def test_threads_are_scoped_per_identity_and_chapter(db, seed_lesson):
    seed_lesson()
    seed_lesson(chapter_id="chapter-2", chapter_title="Energy", purchasers=())
    store = ConversationStore(db)

    a = store.get_or_create_thread("user-1", "course-1", "chapter-1")
    b = store.get_or_create_thread("user-1", "course-1", "chapter-2")
    c = store.get_or_create_thread("user-2", "course-1", "chapter-1")

    assert len({a.id, b.id, c.id}) == 3
    assert store.find_thread("user-3", "chapter-1") is None


def test_append_gives_strictly_increasing_timestamps(db, seed_lesson):
    seed_lesson()
    store = ConversationStore(db)
    thread = store.get_or_create_thread("user-1", "course-1", "chapter-1")

    msgs = [store.append(thread, ROLE_USER if i % 2 == 0 else ROLE_ASSISTANT, f"m{i}") for i in range(10)]

    stamps = [m.created_at if m.created_at.tzinfo else m.created_at.replace(tzinfo=timezone.utc) for m in msgs]
    assert all(a < b for a, b in zip(stamps, stamps[1:]))


def test_recent_is_newest_first_and_history_oldest_first(db, seed_lesson):
    seed_lesson()
    store = ConversationStore(db)
    thread = store.get_or_create_thread("user-1", "course-1", "chapter-1")
    for i in range(6):
        store.append(thread, ROLE_USER, f"m{i}")

    assert [m.content for m in store.recent(thread.id, 3)] == ["m5", "m4", "m3"]
    assert [m.content for m in store.history(thread.id, 3)] == ["m3", "m4", "m5"]
    assert [m.content for m in store.history(thread.id, 50)] == [f"m{i}" for i in range(6)]


def test_append_rejects_unknown_role(db, seed_lesson):
    seed_lesson()
    store = ConversationStore(db)
    thread = store.get_or_create_thread("user-1", "course-1", "chapter-1")

    with pytest.raises(ValueError):
        store.append(thread, "system", "nope")
