from __future__ import annotations

from typing import Dict, List, Optional

from lesson_tutor.core.config import settings
from lesson_tutor.models.conversation import ConversationThread
from lesson_tutor.services.conversation_store import ConversationStore


TUTOR_SYSTEM_PROMPT = """You are an AI tutor for a paid course platform.

SCOPE RULE (strict):
- Only answer questions about this specific lesson: "{chapter_title}" in course "{course_title}".
- If the user's request is not clearly about this lesson, refuse briefly and ask them to rephrase using lesson concepts.

LESSON CONTEXT (trusted):
{lesson_summary}

STYLE:
- Be concise by default.
- If asked, explain step-by-step.
- If the question requires details not present in the lesson context, say so and suggest what to review in the lesson.

OUTPUT FORMAT:
Return ONE JSON object and nothing else:
{{"answer": "<your reply, markdown allowed>", "suggestions": [{{"label": "<2-4 words>", "question": "<a follow-up question about this lesson>"}}]}}
Give at most {max_suggestions} suggestions."""


def system_prompt(*, course_title: str, chapter_title: str, lesson_summary: str, max_suggestions: int) -> str:
    return TUTOR_SYSTEM_PROMPT.format(
        course_title=course_title,
        chapter_title=chapter_title,
        lesson_summary=lesson_summary,
        max_suggestions=int(max_suggestions),
    ).strip()


class ContextAssembler:
    """Builds the prompt: one system entry plus the last N turns of the thread.

    The window is a hard message count, not a token budget. Older turns drop
    out of the prompt but stay in the stored history.
    """

    def __init__(self, store: ConversationStore, *, window: Optional[int] = None, max_suggestions: Optional[int] = None):
        self.store = store
        self.window = int(window or settings.CHAT_HISTORY_WINDOW)
        self.max_suggestions = int(max_suggestions or settings.SUGGESTIONS_MAX)

    def build_context(
        self,
        thread: ConversationThread,
        summary: str,
        *,
        course_title: str,
        chapter_title: str,
    ) -> List[Dict[str, str]]:
        recent = self.store.recent(thread.id, self.window)
        recent.reverse()

        messages = [
            {
                "role": "system",
                "content": system_prompt(
                    course_title=course_title,
                    chapter_title=chapter_title,
                    lesson_summary=summary,
                    max_suggestions=self.max_suggestions,
                ),
            }
        ]
        messages.extend({"role": m.role, "content": m.content} for m in recent)
        return messages
