"""Dashboard schemas."""

from datetime import datetime
from typing import List
from uuid import UUID

from pydantic import BaseModel

from app.schemas.gamification import StudentBadgeResponse, StudentStats


class BadgeGoal(BaseModel):
    """A badge not yet held, with how close the student is."""
    badge_id: UUID
    name: str
    criterion_type: str
    target: float
    current: float
    progress_percentage: float


class StudentDashboard(BaseModel):
    student_id: UUID
    stats: StudentStats
    badges: List[StudentBadgeResponse]
    next_badges: List[BadgeGoal]
    last_updated: datetime


class AdminDashboard(BaseModel):
    total_students: int
    total_courses: int
    total_lessons: int
    total_enrollments: int
    lessons_completed: int
    badges_awarded: int
    total_xp_awarded: int
