"""Progress schemas."""

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict

from app.schemas.gamification import BadgeEvaluationResult


class ProgressResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    student_id: UUID
    lesson_id: UUID
    completed: bool
    completed_at: Optional[datetime] = None


class LessonCompletionResult(BaseModel):
    """Outcome of completing a lesson."""
    student_id: UUID
    lesson_id: UUID
    already_completed: bool = False
    xp_awarded: int = 0
    evaluation: Optional[BadgeEvaluationResult] = None
