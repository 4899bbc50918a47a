"""Lesson progress tracking models."""

from sqlalchemy import Column, Boolean, DateTime, ForeignKey, UniqueConstraint, Index, Uuid
import uuid

from app.core.database import Base


class Progress(Base):
    """Completion marker for one student/lesson pair."""
    __tablename__ = "progress"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    student_id = Column(Uuid, ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, index=True)
    lesson_id = Column(Uuid, ForeignKey("lessons.id", ondelete="CASCADE"), nullable=False)
    completed = Column(Boolean, nullable=False, default=False)
    completed_at = Column(DateTime)

    __table_args__ = (
        UniqueConstraint("student_id", "lesson_id"),
        Index("ix_progress_student_completed", "student_id", "completed"),
    )
