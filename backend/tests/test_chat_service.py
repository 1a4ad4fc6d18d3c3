from __future__ import annotations

import json
from types import SimpleNamespace

import pytest
from sqlalchemy.exc import SQLAlchemyError

from lesson_tutor.core.config import settings
from lesson_tutor.core.errors import (
    AccessDenied,
    GenerationUnavailable,
    InternalError,
    InvalidRequest,
    NotFound,
    RateLimited,
    Unauthenticated,
)
from lesson_tutor.models.conversation import ConversationMessage, ConversationThread
from lesson_tutor.models.lesson_summary import LessonSummary
from lesson_tutor.services.chat_service import APOLOGY_REPLY, ConversationOrchestrator
from lesson_tutor.services.conversation_store import ConversationStore
from lesson_tutor.services.llm_service import GenerationClient
from lesson_tutor.services.rate_limit import RateLimiter
from lesson_tutor.services.summary_cache import SUMMARY_INSTRUCTION, LessonSummaryStore


def _answer(text="Force is mass times acceleration.", suggestions=None):
    if suggestions is None:
        suggestions = [
            {"label": "Second law", "question": "Can you give an example of F = ma?"},
            {"label": "Third law", "question": "What is an action-reaction pair?"},
        ]
    return json.dumps({"answer": text, "suggestions": suggestions})


class _Generation:
    """Answers summary prompts and chat prompts separately; records every call."""

    def __init__(self, reply=None, summary="- F = ma", fail_on=None):
        self.reply = reply if reply is not None else _answer()
        self.summary = summary
        self.fail_on = fail_on
        self.summary_calls = []
        self.chat_calls = []

    def complete(self, messages, *, max_output_tokens, temperature):
        is_summary = messages[0]["content"] == SUMMARY_INSTRUCTION
        if self.fail_on == "summary" and is_summary or self.fail_on == "chat" and not is_summary:
            raise GenerationUnavailable(details={"reason": "APITimeoutError"})
        if is_summary:
            self.summary_calls.append(messages)
            return self.summary
        self.chat_calls.append(messages)
        return self.reply


def _orchestrator(db, generation, limiter=None):
    return ConversationOrchestrator(db, rate_limiter=limiter or RateLimiter(), generation=generation)


def _messages(db):
    return db.query(ConversationMessage).order_by(ConversationMessage.id).all()


def test_ask_end_to_end(db, seed_lesson):
    seed_lesson()
    generation = _Generation()
    orch = _orchestrator(db, generation)

    result = orch.ask("user-1", "course-1", "chapter-1", "  What is force?  ")

    assert result.generated is True
    assert result.error is None
    assert result.answer == "Force is mass times acceleration."
    assert [s.label for s in result.suggestions] == ["Second law", "Third law"]

    assert len(generation.summary_calls) == 1
    assert len(generation.chat_calls) == 1
    context = generation.chat_calls[0]
    assert context[0]["role"] == "system"
    assert "- F = ma" in context[0]["content"]
    assert context[1:] == [{"role": "user", "content": "What is force?"}]

    rows = _messages(db)
    assert [(m.role, m.content) for m in rows] == [
        ("user", "What is force?"),
        ("assistant", "Force is mass times acceleration."),
    ]


def test_second_ask_reuses_cached_summary_and_sees_history(db, seed_lesson):
    seed_lesson()
    generation = _Generation()
    orch = _orchestrator(db, generation)

    orch.ask("user-1", "course-1", "chapter-1", "What is force?")
    orch.ask("user-1", "course-1", "chapter-1", "And mass?")

    assert len(generation.summary_calls) == 1
    assert [m["content"] for m in generation.chat_calls[1][1:]] == [
        "What is force?",
        "Force is mass times acceleration.",
        "And mass?",
    ]
    assert db.query(ConversationThread).count() == 1


def test_plain_text_reply_is_stored_with_no_suggestions(db, seed_lesson):
    seed_lesson()
    orch = _orchestrator(db, _Generation(reply="Just prose, no JSON."))

    result = orch.ask("user-1", "course-1", "chapter-1", "Explain inertia")

    assert result.answer == "Just prose, no JSON."
    assert result.suggestions == []
    assert _messages(db)[-1].content == "Just prose, no JSON."


def test_suggestions_are_capped(db, seed_lesson):
    seed_lesson()
    many = [{"label": f"L{i}", "question": f"Q{i}?"} for i in range(9)]
    orch = _orchestrator(db, _Generation(reply=_answer(suggestions=many)))

    result = orch.ask("user-1", "course-1", "chapter-1", "More?")

    assert len(result.suggestions) == 5


@pytest.mark.parametrize("fail_on", ["summary", "chat"])
def test_generation_failure_keeps_user_turn_only(db, seed_lesson, fail_on):
    seed_lesson()
    orch = _orchestrator(db, _Generation(fail_on=fail_on))

    result = orch.ask("user-1", "course-1", "chapter-1", "What is force?")

    assert result.generated is False
    assert result.answer == APOLOGY_REPLY
    assert result.suggestions == []
    assert isinstance(result.error, GenerationUnavailable)
    assert [(m["role"], m["content"]) for m in orch.list_history("user-1", "course-1", "chapter-1")] == [
        ("user", "What is force?")
    ]


def test_rate_limited_request_persists_nothing(db, seed_lesson, monkeypatch):
    seed_lesson()
    monkeypatch.setattr(settings, "CHAT_RATE_LIMIT", 1)
    generation = _Generation()
    orch = _orchestrator(db, generation)

    orch.ask("user-1", "course-1", "chapter-1", "first")
    with pytest.raises(RateLimited) as exc:
        orch.ask("user-1", "course-1", "chapter-1", "second")

    assert exc.value.retry_after_sec >= 1
    assert [m.content for m in _messages(db) if m.role == "user"] == ["first"]
    assert len(generation.chat_calls) == 1


def test_unentitled_request_persists_nothing(db, seed_lesson):
    seed_lesson(purchasers=())
    generation = _Generation()
    orch = _orchestrator(db, generation)

    with pytest.raises(AccessDenied):
        orch.ask("user-1", "course-1", "chapter-1", "hello")
    with pytest.raises(AccessDenied):
        orch.list_history("user-1", "course-1", "chapter-1")

    assert _messages(db) == []
    assert db.query(ConversationThread).count() == 0
    assert db.query(LessonSummary).count() == 0
    assert generation.summary_calls == generation.chat_calls == []


def test_unknown_chapter_is_not_found(db, seed_lesson):
    seed_lesson()
    orch = _orchestrator(db, _Generation())

    with pytest.raises(NotFound):
        orch.ask("user-1", "course-1", "missing-chapter", "hello")
    assert _messages(db) == []


def test_rejected_requests_do_not_consume_rate_budget(db, seed_lesson, monkeypatch):
    seed_lesson()
    monkeypatch.setattr(settings, "CHAT_RATE_LIMIT", 1)
    limiter = RateLimiter()
    orch = _orchestrator(db, _Generation(), limiter=limiter)

    with pytest.raises(NotFound):
        orch.ask("user-1", "course-1", "missing-chapter", "hello")

    assert orch.ask("user-1", "course-1", "chapter-1", "hello").generated is True


@pytest.mark.parametrize("identity", [None, "", "   "])
def test_missing_identity_is_unauthenticated(db, seed_lesson, identity):
    seed_lesson()
    orch = _orchestrator(db, _Generation())

    with pytest.raises(Unauthenticated):
        orch.ask(identity, "course-1", "chapter-1", "hello")
    with pytest.raises(Unauthenticated):
        orch.list_history(identity, "course-1", "chapter-1")


def test_blank_question_is_invalid(db, seed_lesson):
    seed_lesson()
    orch = _orchestrator(db, _Generation())

    with pytest.raises(InvalidRequest):
        orch.ask("user-1", "course-1", "chapter-1", "   ")


def test_history_empty_before_first_question(db, seed_lesson):
    seed_lesson()
    orch = _orchestrator(db, _Generation())

    assert orch.list_history("user-1", "course-1", "chapter-1") == []


def test_history_is_per_identity(db, seed_lesson):
    seed_lesson(purchasers=("user-1", "user-2"))
    orch = _orchestrator(db, _Generation())

    orch.ask("user-1", "course-1", "chapter-1", "mine")

    assert len(orch.list_history("user-1", "course-1", "chapter-1")) == 2
    assert orch.list_history("user-2", "course-1", "chapter-1") == []


class _SdkClient:
    """Stands in for the OpenAI SDK client: a summary for summary prompts, nothing for chat prompts."""

    def __init__(self):
        self.chat = SimpleNamespace(completions=SimpleNamespace(create=self._create))

    def _create(self, *, model, messages, max_tokens, temperature):
        text = "- F = ma" if messages[0]["content"] == SUMMARY_INSTRUCTION else ""
        return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=text))])


def test_empty_answer_from_service_is_a_failed_generation(db, seed_lesson):
    seed_lesson()
    orch = _orchestrator(db, GenerationClient(client=_SdkClient()))

    result = orch.ask("user-1", "course-1", "chapter-1", "What is force?")

    assert result.generated is False
    assert result.answer == APOLOGY_REPLY
    assert result.error.details == {"reason": "empty_response"}
    assert orch.list_history("user-1", "course-1", "chapter-1") == [{"role": "user", "content": "What is force?"}]


def test_summary_write_failure_is_internal_and_keeps_user_turn(db, seed_lesson, monkeypatch):
    seed_lesson()
    generation = _Generation()
    orch = _orchestrator(db, generation)

    def _broken_put(self, chapter_id, summary_text, source_hash):
        raise SQLAlchemyError("disk I/O error")

    monkeypatch.setattr(LessonSummaryStore, "put", _broken_put)

    with pytest.raises(InternalError):
        orch.ask("user-1", "course-1", "chapter-1", "What is force?")

    assert db.in_transaction() is False
    assert len(generation.summary_calls) == 1
    assert generation.chat_calls == []
    assert [(m.role, m.content) for m in _messages(db)] == [("user", "What is force?")]


def test_message_write_failure_is_internal(db, seed_lesson, monkeypatch):
    seed_lesson()
    generation = _Generation()
    orch = _orchestrator(db, generation)

    def _broken_append(self, thread, role, content):
        raise SQLAlchemyError("connection reset")

    monkeypatch.setattr(ConversationStore, "append", _broken_append)

    with pytest.raises(InternalError):
        orch.ask("user-1", "course-1", "chapter-1", "What is force?")

    assert db.in_transaction() is False
    assert _messages(db) == []
    assert generation.summary_calls == generation.chat_calls == []
