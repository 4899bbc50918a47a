"""Parent/student link schemas."""

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field, field_validator


class StudentLinkRequest(BaseModel):
    student_email: str = Field(..., min_length=1)

    @field_validator("student_email")
    @classmethod
    def strip_email(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("student_email must not be blank")
        return v


class RecentBadge(BaseModel):
    badge_id: UUID
    name: str
    earned_at: Optional[datetime] = None


class LinkedStudentSummary(BaseModel):
    """What a parent sees for one linked student."""
    student_id: UUID
    full_name: str
    email: str
    xp_points: int
    courses_completed: int
    total_courses: int
    recent_badges: List[RecentBadge]
