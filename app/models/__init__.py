"""Data models for the LMS Progress Service."""

from app.models.lms import Profile, Course, Section, Lesson, Enrollment, ParentStudentLink, UserRole
from app.models.progress import Progress
from app.models.gamification import Badge, StudentBadge

__all__ = [
    "Profile",
    "Course",
    "Section",
    "Lesson",
    "Enrollment",
    "ParentStudentLink",
    "UserRole",
    "Progress",
    "Badge",
    "StudentBadge"
]
