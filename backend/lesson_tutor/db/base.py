from lesson_tutor.db.base_class import Base

# Import every model so Base.metadata has all tables (Alembic autogenerate, create_all)
from lesson_tutor.models.course import Chapter, ChapterMedia, Course
from lesson_tutor.models.purchase import Purchase
from lesson_tutor.models.lesson_summary import LessonSummary
from lesson_tutor.models.conversation import ConversationMessage, ConversationThread
