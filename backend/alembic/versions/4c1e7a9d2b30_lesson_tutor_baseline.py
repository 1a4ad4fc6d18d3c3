"""lesson tutor baseline: catalogue, purchases, lesson summaries, conversations

Revision ID: 4c1e7a9d2b30
Revises:
Create Date: 2026-10-18 09:00:00.000000
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '4c1e7a9d2b30'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        'courses',
        sa.Column('id', sa.String(length=64), nullable=False),
        sa.Column('title', sa.String(length=255), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_table(
        'chapters',
        sa.Column('id', sa.String(length=64), nullable=False),
        sa.Column('course_id', sa.String(length=64), nullable=False),
        sa.Column('title', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=True),
        sa.ForeignKeyConstraint(['course_id'], ['courses.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_chapters_course_id'), 'chapters', ['course_id'], unique=False)

    op.create_table(
        'chapter_media',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('chapter_id', sa.String(length=64), nullable=False),
        sa.Column('asset_id', sa.String(length=128), nullable=True),
        sa.Column('playback_id', sa.String(length=128), nullable=True),
        sa.ForeignKeyConstraint(['chapter_id'], ['chapters.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_chapter_media_chapter_id'), 'chapter_media', ['chapter_id'], unique=True)

    op.create_table(
        'purchases',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('identity', sa.String(length=191), nullable=False),
        sa.Column('course_id', sa.String(length=64), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=True),
        sa.ForeignKeyConstraint(['course_id'], ['courses.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('identity', 'course_id', name='uq_purchases_identity_course'),
    )
    op.create_index(op.f('ix_purchases_identity'), 'purchases', ['identity'], unique=False)
    op.create_index(op.f('ix_purchases_course_id'), 'purchases', ['course_id'], unique=False)

    op.create_table(
        'lesson_summaries',
        sa.Column('chapter_id', sa.String(length=64), nullable=False),
        sa.Column('summary_text', sa.Text(), nullable=False),
        sa.Column('source_hash', sa.String(length=64), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
        sa.ForeignKeyConstraint(['chapter_id'], ['chapters.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('chapter_id'),
    )

    op.create_table(
        'conversation_threads',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('identity', sa.String(length=191), nullable=False),
        sa.Column('chapter_id', sa.String(length=64), nullable=False),
        sa.Column('course_id', sa.String(length=64), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['chapter_id'], ['chapters.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['course_id'], ['courses.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('identity', 'chapter_id', name='uq_conversation_threads_identity_chapter'),
    )
    op.create_index(op.f('ix_conversation_threads_identity'), 'conversation_threads', ['identity'], unique=False)
    op.create_index(op.f('ix_conversation_threads_chapter_id'), 'conversation_threads', ['chapter_id'], unique=False)
    op.create_index(op.f('ix_conversation_threads_course_id'), 'conversation_threads', ['course_id'], unique=False)

    op.create_table(
        'conversation_messages',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('thread_id', sa.Integer(), nullable=False),
        sa.Column('role', sa.String(length=16), nullable=False),
        sa.Column('content', sa.Text(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['thread_id'], ['conversation_threads.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_conversation_messages_thread_id'), 'conversation_messages', ['thread_id'], unique=False)
    op.create_index('ix_conversation_messages_thread_created', 'conversation_messages', ['thread_id', 'created_at'], unique=False)


def downgrade() -> None:
    op.drop_index('ix_conversation_messages_thread_created', table_name='conversation_messages')
    op.drop_index(op.f('ix_conversation_messages_thread_id'), table_name='conversation_messages')
    op.drop_table('conversation_messages')
    op.drop_index(op.f('ix_conversation_threads_course_id'), table_name='conversation_threads')
    op.drop_index(op.f('ix_conversation_threads_chapter_id'), table_name='conversation_threads')
    op.drop_index(op.f('ix_conversation_threads_identity'), table_name='conversation_threads')
    op.drop_table('conversation_threads')
    op.drop_table('lesson_summaries')
    op.drop_index(op.f('ix_purchases_course_id'), table_name='purchases')
    op.drop_index(op.f('ix_purchases_identity'), table_name='purchases')
    op.drop_table('purchases')
    op.drop_index(op.f('ix_chapter_media_chapter_id'), table_name='chapter_media')
    op.drop_table('chapter_media')
    op.drop_index(op.f('ix_chapters_course_id'), table_name='chapters')
    op.drop_table('chapters')
    op.drop_table('courses')
