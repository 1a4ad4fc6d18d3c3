from lesson_tutor.models.course import Course, Chapter, ChapterMedia
from lesson_tutor.models.purchase import Purchase
from lesson_tutor.models.lesson_summary import LessonSummary
from lesson_tutor.models.conversation import ConversationThread, ConversationMessage

__all__ = [
    "Course",
    "Chapter",
    "ChapterMedia",
    "Purchase",
    "LessonSummary",
    "ConversationThread",
    "ConversationMessage",
]
